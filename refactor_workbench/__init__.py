"""Refactor Workbench - deep links, session scoping and file tree hydration."""

__version__ = "0.1.0"
