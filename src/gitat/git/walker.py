"""Lazy newest-first traversal of commit ancestry."""

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Dict, Iterator, List, Protocol, Set, Tuple

from ..errors import NotFound
from .history import CommitRecord

logger = logging.getLogger(__name__)


class CommitLoader(Protocol):
    def load(self, commit_id: str) -> CommitRecord:
        ...


class HistoryWalker:
    """Iterate over the ancestors of a commit, newest first.

    Commits come out ordered by committer time, descending, in the same
    order a default ``git log`` listing would use. A commit is held back
    while any child of it that has already been discovered is still waiting
    to be emitted, so clock skew between parent and child never puts an
    ancestor ahead of its descendants. Every commit is emitted at most once.

    The walker is a one-shot iterator. Build a new one to start over.

    Parameters
    ----------
    loader:
        Object with a ``load(commit_id)`` method, usually a ``GitRepo``
    start:
        Id of the first commit to emit

    Raises
    ------
    NotFound:
        On construction, if ``start`` does not load
    """

    def __init__(self, loader: CommitLoader, start: str):
        self._loader = loader
        self._counter = itertools.count()
        self._heap: List[Tuple[int, int, str]] = []
        self._records: Dict[str, CommitRecord] = {}
        self._seen: Set[str] = set()
        # Number of discovered, not yet emitted children per commit.
        self._waiting: Dict[str, int] = {}
        self._deferred: Set[str] = set()

        record = loader.load(start)
        self._discover(record)

    def __iter__(self) -> Iterator[CommitRecord]:
        return self

    def __next__(self) -> CommitRecord:
        while self._heap:
            _, _, commit_id = heapq.heappop(self._heap)
            if self._waiting.get(commit_id, 0):
                logger.debug("Deferring %s until its children are emitted", commit_id)
                self._deferred.add(commit_id)
                continue
            return self._emit(commit_id)
        raise StopIteration

    def _emit(self, commit_id: str) -> CommitRecord:
        record = self._records.pop(commit_id)
        for parent_id in set(record.parent_ids):
            if parent_id in self._waiting:
                self._release(parent_id)
        for parent_id in record.parent_ids:
            if parent_id in self._seen:
                continue
            try:
                parent = self._loader.load(parent_id)
            except NotFound:
                # Shallow clones cut history at grafted parents.
                logger.debug("Parent %s of %s is missing", parent_id, commit_id)
                self._seen.add(parent_id)
                continue
            self._discover(parent)
        return record

    def _discover(self, record: CommitRecord) -> None:
        self._seen.add(record.commit_id)
        self._records[record.commit_id] = record
        for parent_id in set(record.parent_ids):
            if parent_id not in self._seen or parent_id in self._records:
                self._waiting[parent_id] = self._waiting.get(parent_id, 0) + 1
        heapq.heappush(
            self._heap, (-record.committer_time, next(self._counter), record.commit_id)
        )

    def _release(self, commit_id: str) -> None:
        remaining = self._waiting[commit_id] - 1
        if remaining:
            self._waiting[commit_id] = remaining
            return
        del self._waiting[commit_id]
        if commit_id in self._deferred:
            self._deferred.discard(commit_id)
            record = self._records[commit_id]
            heapq.heappush(
                self._heap, (-record.committer_time, next(self._counter), commit_id)
            )


def walk(loader: CommitLoader, start: str) -> HistoryWalker:
    """Return a ``HistoryWalker`` over the ancestry of ``start``."""
    return HistoryWalker(loader, start)
