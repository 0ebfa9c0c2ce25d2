"""Exception hierarchy shared by the gitat utilities."""

from __future__ import annotations


class GitAtError(Exception):
    """Base class for every error raised by gitat."""


class NotARepository(GitAtError):
    """The working directory is not inside a git repository."""


class NotFound(GitAtError):
    """A revision, ref or commit does not resolve.

    This is an expected outcome (for example a search with no match) and is
    not treated as a failure by callers.
    """


class InvalidPattern(GitAtError):
    """A user supplied regular expression failed to compile."""

    def __init__(self, pattern: str, message: str):
        super().__init__(message)
        self.pattern = pattern
        self.message = message


class StoreError(GitAtError):
    """The visit log could not be read or written."""


class LockTimeout(StoreError):
    """Exclusive access to the visit log was not granted in time."""


class ConfigError(GitAtError):
    """The configuration file could not be parsed."""
