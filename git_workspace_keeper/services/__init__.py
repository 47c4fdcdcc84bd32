"""Services that read and update repositories and the workspace."""
