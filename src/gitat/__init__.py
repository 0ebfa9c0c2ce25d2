"""Git repository utilities.

``search`` finds the newest commit whose message matches a pattern, ``rank``
orders refs by commit date or by when they were last checked out, and
``record_visit`` feeds the visit log that ranking reads.
"""

from .errors import (
    ConfigError,
    GitAtError,
    InvalidPattern,
    LockTimeout,
    NotARepository,
    NotFound,
    StoreError,
)
from .git.history import CommitRecord, CommitSubject, GitRepo, RefSubject
from .hooks import handle_post_checkout, record_visit
from .ranking.ranker import RankedEntry, rank
from .search.driver import search
from .storage.visits import VisitLogStore, VisitRecord

__all__ = [
    "CommitRecord",
    "CommitSubject",
    "ConfigError",
    "GitAtError",
    "GitRepo",
    "InvalidPattern",
    "LockTimeout",
    "NotARepository",
    "NotFound",
    "RankedEntry",
    "RefSubject",
    "StoreError",
    "VisitLogStore",
    "VisitRecord",
    "handle_post_checkout",
    "rank",
    "record_visit",
    "search",
]
