"""Commit message search."""

from .driver import find_first, search
from .matcher import PatternMatcher

__all__ = ["PatternMatcher", "find_first", "search"]
