"""Commit and ref access built on GitPython."""

from .history import CommitRecord, CommitSubject, GitRepo, RefSubject, parse_subject
from .walker import HistoryWalker, walk

__all__ = [
    "CommitRecord",
    "CommitSubject",
    "GitRepo",
    "HistoryWalker",
    "RefSubject",
    "parse_subject",
    "walk",
]
