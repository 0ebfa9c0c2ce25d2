"""What the post-checkout hook does: remember the checkout in the visit log."""

from __future__ import annotations

import logging
import time
from typing import Optional

from .git.history import GitRepo, Subject
from .storage.visits import VisitLogStore

logger = logging.getLogger(__name__)

# Third argument git passes to post-checkout for a branch (not file) checkout.
BRANCH_CHECKOUT = "1"


def record_visit(
    store: VisitLogStore,
    subject: Subject,
    at: Optional[int] = None,
    repo: Optional[GitRepo] = None,
) -> Subject:
    """Append a visit of ``subject`` to ``store``.

    Parameters
    ----------
    store:
        Visit log to append to
    subject:
        Ref or commit that was checked out
    at:
        Seconds since the epoch; defaults to now
    repo:
        When given, short ref names are expanded to the full ref they name

    Returns
    -------
    The subject as it was recorded
    """
    if repo is not None:
        subject = repo.canonicalizer()(subject)
    timestamp = int(time.time()) if at is None else int(at)
    store.record(subject, timestamp)
    logger.debug("Recorded visit of %s at %d", subject.name, timestamp)
    return subject


def handle_post_checkout(
    repo: GitRepo,
    store: VisitLogStore,
    previous_head: str,
    new_head: str,
    flag: str,
    at: Optional[int] = None,
) -> Optional[Subject]:
    """Record the checkout git just performed.

    Parameters
    ----------
    previous_head, new_head, flag:
        The three arguments git passes to the post-checkout hook

    Returns
    -------
    The recorded subject, or None when nothing was recorded (a file
    checkout, or HEAD on an unborn branch)
    """
    if flag != BRANCH_CHECKOUT:
        return None
    subject = repo.head_subject()
    if subject is None:
        logger.debug("HEAD is unborn after checkout to %s; nothing recorded", new_head)
        return None
    return record_visit(store, subject, at=at)
