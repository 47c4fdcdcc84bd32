"""Tests for two-phase planning and the confirmation gate."""

import io
from unittest.mock import Mock, patch

import pytest
from rich.console import Console

from git_workspace_keeper.exceptions import NotATerminalError, UserAbort
from git_workspace_keeper.services.fetch_service import FetchResult, FetchTarget
from git_workspace_keeper.core.planner import (
    InteractiveRenderer,
    PlainRenderer,
    TwoPhasePlanner,
    confirm_or_exit,
    failed_names,
    make_renderer,
)

TARGETS = {"api": FetchTarget("/ws/api"), "web": FetchTarget("/ws/web")}
RESULTS = {"api": FetchResult(0), "web": FetchResult(1, "boom")}


def capture_console(**kwargs):
    return Console(file=io.StringIO(), width=80, **kwargs)


class RecordingAssess:
    """Assessment callback that remembers which fetch failures it saw."""

    def __init__(self):
        self.calls = []

    def __call__(self, fetch_failed):
        self.calls.append(set(fetch_failed))
        return sorted(fetch_failed)


def format_plan(data):
    return "plan: " + (",".join(data) or "all fresh")


class TestTwoPhasePlanner:
    """Stale plan while fetching on a terminal, single plan elsewhere."""

    def test_plain_output_fetches_first_and_renders_once(self):
        fetch_service = Mock()
        fetch_service.fetch_with_progress.return_value = RESULTS
        console = capture_console()
        assess = RecordingAssess()

        data = TwoPhasePlanner(fetch_service, PlainRenderer(console)).run(assess, format_plan, TARGETS)

        assert data == ["web"]
        assert assess.calls == [{"web"}]
        fetch_service.fetch_all.assert_not_called()
        output = console.file.getvalue()
        assert output.count("plan:") == 1
        assert "[web] fetch failed" in output

    def test_interactive_output_renders_stale_then_fresh(self):
        fetch_service = Mock()
        fetch_service.fetch_all.return_value = RESULTS
        renderer = Mock(interactive=True, console=capture_console())
        assess = RecordingAssess()

        data = TwoPhasePlanner(fetch_service, renderer).run(assess, format_plan, TARGETS)

        assert data == ["web"]
        assert assess.calls == [set(), {"web"}]
        first, second = [call.args[0] for call in renderer.render.call_args_list]
        assert first.startswith("plan: all fresh")
        assert "Fetching 2 repos..." in first
        assert second == "plan: web"
        renderer.clear.assert_called_once()

    def test_no_fetch_assesses_once_from_local_refs(self):
        fetch_service = Mock()
        assess = RecordingAssess()
        renderer = PlainRenderer(capture_console())

        TwoPhasePlanner(fetch_service, renderer).run(assess, format_plan, TARGETS, should_fetch=False)

        assert assess.calls == [set()]
        fetch_service.fetch_with_progress.assert_not_called()
        fetch_service.fetch_all.assert_not_called()

    def test_report_repos_limits_failures_considered(self):
        fetch_service = Mock()
        fetch_service.fetch_with_progress.return_value = RESULTS
        assess = RecordingAssess()

        TwoPhasePlanner(fetch_service, PlainRenderer(capture_console())).run(
            assess, format_plan, TARGETS, report_repos=["api"]
        )
        assert assess.calls == [set()]

    def test_failed_names_counts_missing_results(self):
        assert failed_names(["api", "web", "lost"], RESULTS) == {"web", "lost"}


class TestRenderers:
    """Renderer selection and row counting."""

    def test_make_renderer_follows_terminal(self):
        assert isinstance(make_renderer(capture_console(force_terminal=True)), InteractiveRenderer)
        assert isinstance(make_renderer(capture_console(force_terminal=False)), PlainRenderer)

    def test_count_rows_includes_soft_wraps(self):
        renderer = InteractiveRenderer(Console(file=io.StringIO(), width=10))
        assert renderer.count_rows("abc") == 1
        assert renderer.count_rows("abc\n" + "x" * 25) == 4
        assert renderer.count_rows("[bold]abcdefghij[/bold]") == 1
        assert renderer.count_rows("one\n\nthree") == 3


class TestConfirmOrExit:
    """The gate in front of every mutation."""

    def test_yes_skips_prompt(self):
        console = capture_console()
        confirm_or_exit(console, "Rebase 2 repos?", yes=True)
        assert "Skipping confirmation (--yes)" in console.file.getvalue()

    def test_no_terminal_requires_yes(self):
        with pytest.raises(NotATerminalError):
            confirm_or_exit(capture_console(force_terminal=False), "Rebase 2 repos?")

    @pytest.mark.parametrize("answer", ["y", "YES", " yes "])
    def test_accepts_yes(self, answer):
        console = capture_console(force_terminal=True)
        with patch("git_workspace_keeper.core.planner.sys.stdin") as stdin, \
                patch.object(console, "input", return_value=answer):
            stdin.isatty.return_value = True
            confirm_or_exit(console, "Rebase 2 repos?")

    @pytest.mark.parametrize("answer", ["", "n", "nope"])
    def test_declines(self, answer):
        console = capture_console(force_terminal=True)
        with patch("git_workspace_keeper.core.planner.sys.stdin") as stdin, \
                patch.object(console, "input", return_value=answer):
            stdin.isatty.return_value = True
            with pytest.raises(UserAbort):
                confirm_or_exit(console, "Rebase 2 repos?")

    def test_interrupted_prompt_aborts(self):
        console = capture_console(force_terminal=True)
        with patch("git_workspace_keeper.core.planner.sys.stdin") as stdin, \
                patch.object(console, "input", side_effect=KeyboardInterrupt):
            stdin.isatty.return_value = True
            with pytest.raises(UserAbort):
                confirm_or_exit(console, "Rebase 2 repos?")
