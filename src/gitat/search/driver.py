"""Find the newest commit whose message matches a pattern."""

from __future__ import annotations

import logging
from typing import Iterable

from ..errors import NotFound
from ..git.history import CommitRecord, GitRepo
from ..git.walker import walk
from .matcher import PatternMatcher

logger = logging.getLogger(__name__)


def find_first(commits: Iterable[CommitRecord], matcher: PatternMatcher) -> CommitRecord:
    """Return the first commit of ``commits`` accepted by ``matcher``.

    Iteration stops at the match, so nothing past it is loaded.

    Raises
    ------
    NotFound:
        If ``commits`` runs out without a match
    """
    for record in commits:
        if matcher.matches(record):
            return record
    raise NotFound(f"no commit matches {matcher.pattern!r}")


def search(
    repo: GitRepo,
    start: str,
    pattern: str,
    summary_only: bool = False,
    ignore_case: bool = False,
) -> str:
    """Search the ancestry of ``start`` for the newest matching commit.

    Parameters
    ----------
    repo:
        Repository to search
    start:
        Revision expression the walk starts from, such as ``HEAD``
    pattern:
        Regular expression applied to commit messages
    summary_only:
        Only look at the first line of each message
    ignore_case:
        Match case-insensitively

    Returns
    -------
    Id of the matching commit

    Raises
    ------
    InvalidPattern:
        Before touching the repository, if ``pattern`` does not compile
    NotFound:
        If ``start`` does not resolve or no ancestor matches
    """
    matcher = PatternMatcher(pattern, summary_only=summary_only, ignore_case=ignore_case)
    head = repo.resolve(start)
    logger.debug("Searching %s (%s) for %r", start, head, pattern)
    return find_first(walk(repo, head), matcher).commit_id
