"""Workspace commands: planning, confirmation and execution across repos."""
