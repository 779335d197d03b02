"""Errors raised at the backlog file boundary.

Core operations report expected failures through return values; these are
reserved for conditions that stop the process (missing or unreadable file).
"""

from __future__ import annotations


class BacklogError(Exception):
    """Base error for loading or saving a backlog file."""

    def __init__(self, message: str, path: str | None = None, location: str | None = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.location = location

    def __str__(self) -> str:
        parts = [p for p in (self.path, self.location) if p]
        loc = ":".join(parts) if parts else "<backlog>"
        return f"{loc}: {self.message}"


class BacklogNotFoundError(BacklogError):
    pass


class BacklogParseError(BacklogError):
    pass
