"""Order refs and commits by how recently they were touched."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..config import DEFAULT_CONFIG, SORT_KEYS, LocalConfig
from ..errors import NotFound
from ..git.history import CommitRecord, CommitSubject, GitRepo, RefSubject, Subject
from ..git.walker import CommitLoader
from ..storage.visits import VisitLogStore, VisitRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RankedEntry:
    subject: Subject
    timestamp: int


def _commit_time(sort_key: str) -> Callable[[CommitRecord], int]:
    if sort_key == "committerdate":
        return lambda record: record.committer_time
    return lambda record: record.author_time


def _keep_newest(best: Dict[Subject, int], subject: Subject, timestamp: int) -> None:
    current = best.get(subject)
    if current is None or timestamp > current:
        best[subject] = timestamp


def rank_entries(
    loader: CommitLoader,
    refs: Sequence[Tuple[str, str]],
    visits: Iterable[VisitRecord],
    sort_key: str,
    commits: Iterable[str] = (),
    canonical: Optional[Callable[[Subject], Subject]] = None,
) -> List[RankedEntry]:
    """Merge refs, bare commits and visits into one newest-first list.

    Parameters
    ----------
    loader:
        Source of commit metadata, usually a ``GitRepo``
    refs:
        (ref name, tip commit id) bindings to rank
    visits:
        Every visit record available
    sort_key:
        ``committerdate`` or ``authordate`` rank ``refs`` and ``commits`` by
        the dates of their tip commit; ``visitdate`` ranks visited subjects by
        their latest visit and leaves out anything never visited.
    commits:
        Bare commit ids to rank alongside the refs, such as a detached HEAD
    canonical:
        Maps a subject onto the form it is de-duplicated under, for example
        ``main`` onto ``refs/heads/main``

    Returns
    -------
    Entries sorted by timestamp descending, then by subject name. No subject
    appears twice; the newest timestamp wins.
    """
    if sort_key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {sort_key}")
    canonical = canonical or (lambda subject: subject)
    tips: Dict[Subject, str] = {RefSubject(name): commit_id for name, commit_id in refs}
    best: Dict[Subject, int] = {}

    if sort_key == "visitdate":
        unresolved: Set[Subject] = set()
        for visit in visits:
            subject = canonical(visit.subject)
            if subject in unresolved:
                continue
            if subject not in best and not _resolves(loader, tips, subject):
                unresolved.add(subject)
                continue
            _keep_newest(best, subject, visit.timestamp)
    else:
        timestamp_of = _commit_time(sort_key)
        candidates = list(tips.items())
        candidates.extend((CommitSubject(commit_id), commit_id) for commit_id in commits)
        for subject, commit_id in candidates:
            try:
                record = loader.load(commit_id)
            except NotFound:
                logger.debug("Skipping %s: tip %s does not load", subject.name, commit_id)
                continue
            _keep_newest(best, canonical(subject), timestamp_of(record))

    entries = [RankedEntry(subject, timestamp) for subject, timestamp in best.items()]
    entries.sort(key=lambda entry: (-entry.timestamp, entry.subject.name, entry.subject.kind))
    return entries


def _resolves(loader: CommitLoader, tips: Dict[Subject, str], subject: Subject) -> bool:
    if isinstance(subject, RefSubject):
        return subject in tips
    try:
        loader.load(subject.name)
    except NotFound:
        logger.debug("Skipping visited commit %s: it does not load", subject.name)
        return False
    return True


def rank(
    repo: GitRepo,
    store: VisitLogStore,
    sort_key: Optional[str] = None,
    config: LocalConfig | None = None,
    prefixes: Optional[Sequence[str]] = None,
) -> List[RankedEntry]:
    """Rank the refs of ``repo`` together with its detached HEAD.

    Parameters
    ----------
    repo:
        Repository whose refs are ranked
    store:
        Visit log of the repository
    sort_key:
        One of ``committerdate``, ``authordate`` or ``visitdate``. Defaults to
        the configured key.
    config:
        Supplies the default sort key and ref namespaces
    prefixes:
        Ref namespaces to rank, overriding the configured ones. An empty
        sequence ranks every ref.

    Raises
    ------
    StoreError:
        If the visit log cannot be read. No partial ranking is returned.
    """
    active_config = config or DEFAULT_CONFIG
    key = sort_key or active_config.sort_key
    namespaces = active_config.ref_prefixes if prefixes is None else prefixes
    refs = repo.list_refs(namespaces)

    commits: List[str] = []
    head = repo.head_subject()
    if isinstance(head, CommitSubject):
        commits.append(head.name)

    visits = store.read_all() if key == "visitdate" else []
    return rank_entries(
        repo,
        refs,
        visits,
        key,
        commits=commits,
        canonical=repo.canonicalizer(),
    )
