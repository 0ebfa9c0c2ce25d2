"""Read-only access to commits and refs through GitPython."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Collection, List, Optional, Sequence, Tuple, Union

from git import Commit, Repo, TagObject
from git.exc import BadName, BadObject, InvalidGitRepositoryError, NoSuchPathError

from ..errors import NotARepository, NotFound

logger = logging.getLogger(__name__)

# Order in which git itself expands a short ref name.
_REF_RULES = ("refs/{}", "refs/tags/{}", "refs/heads/{}", "refs/remotes/{}")
_SHORT_PREFIXES = ("refs/heads/", "refs/tags/", "refs/remotes/", "refs/")


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """Metadata about a single commit."""

    commit_id: str
    parent_ids: Tuple[str, ...]
    committer_time: int
    author_time: int
    message: str

    @property
    def summary(self) -> str:
        """Return the first line of the message."""
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True, slots=True, order=True)
class RefSubject:
    """A ref name, such as ``refs/heads/main``."""

    name: str

    kind = "ref"

    @property
    def short_name(self) -> str:
        for prefix in _SHORT_PREFIXES:
            if self.name.startswith(prefix):
                return self.name[len(prefix):]
        return self.name


@dataclass(frozen=True, slots=True, order=True)
class CommitSubject:
    """A bare commit id, as left behind by a detached checkout."""

    name: str

    kind = "commit"

    @property
    def short_name(self) -> str:
        return self.name


Subject = Union[RefSubject, CommitSubject]


def is_commit_id(text: str) -> bool:
    """Return True when ``text`` looks like a full SHA-1 or SHA-256 hex id."""
    if len(text) not in (40, 64):
        return False
    try:
        bytes.fromhex(text)
    except ValueError:
        return False
    return True


def parse_subject(text: str) -> Subject:
    """Turn user or hook supplied text into a tagged subject."""
    if is_commit_id(text):
        return CommitSubject(text.lower())
    return RefSubject(text)


def expand_ref_name(name: str, existing: Collection[str]) -> str:
    """Expand a short ref name the way git does, if such a ref exists."""
    if name in existing:
        return name
    for rule in _REF_RULES:
        candidate = rule.format(name)
        if candidate in existing:
            return candidate
    return name


class GitRepo:
    """Wrapper around GitPython exposing the lookups gitat needs."""

    def __init__(self, repo_path: Path, search_parent_directories: bool = True):
        self.repo_path = Path(repo_path).resolve()
        try:
            self.repo = Repo(
                self.repo_path, search_parent_directories=search_parent_directories
            )
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise NotARepository(f"Not a git repository: {repo_path}") from e

    @property
    def git_dir(self) -> Path:
        """Return the git directory shared by all worktrees."""
        return Path(self.repo.common_dir)

    def resolve(self, revision: str) -> str:
        """Resolve a revision expression to a commit id.

        Parameters
        ----------
        revision:
            Anything ``git rev-parse`` accepts for a single revision

        Returns
        -------
        Hex id of the commit, after peeling annotated tags

        Raises
        ------
        NotFound:
            If the expression does not name a commit
        """
        try:
            obj = self.repo.rev_parse(revision)
            while isinstance(obj, TagObject):
                obj = obj.object
        except (BadName, BadObject, ValueError) as e:
            raise NotFound(f"needed a single revision: {revision}") from e

        if not isinstance(obj, Commit):
            raise NotFound(f"{revision} does not name a commit")
        return obj.hexsha

    def load(self, commit_id: str) -> CommitRecord:
        """Read the metadata of ``commit_id``.

        Raises
        ------
        NotFound:
            If the id is malformed, missing, or names a non-commit object
        """
        if not is_commit_id(commit_id):
            raise NotFound(f"not a full commit id: {commit_id}")
        try:
            binsha = bytes.fromhex(commit_id)
            info = self.repo.odb.info(binsha)
            object_type = info.type.decode("ascii") if isinstance(info.type, bytes) else info.type
            if object_type != Commit.type:
                raise NotFound(f"{commit_id} is a {object_type}, not a commit")
            commit = Commit(self.repo, binsha)
            message = commit.message
            record = CommitRecord(
                commit_id=commit.hexsha,
                parent_ids=tuple(parent.hexsha for parent in commit.parents),
                committer_time=int(commit.committed_date),
                author_time=int(commit.authored_date),
                message=message.decode("utf-8", errors="replace")
                if isinstance(message, bytes)
                else message,
            )
        except (BadName, BadObject, ValueError) as e:
            raise NotFound(f"no such commit: {commit_id}") from e
        return record

    def list_refs(self, prefixes: Optional[Sequence[str]] = None) -> List[Tuple[str, str]]:
        """Enumerate refs with the id they currently point at.

        Parameters
        ----------
        prefixes:
            Only refs whose full name starts with one of these are returned.
            ``None`` or an empty sequence returns every ref.

        Returns
        -------
        List of (ref name, object id) tuples sorted by ref name. Annotated
        tags are peeled to the object they tag.
        """
        refs: List[Tuple[str, str]] = []
        for ref in self.repo.refs:
            # Symbolic refs such as refs/remotes/origin/HEAD duplicate their target.
            if ref.path.endswith("/HEAD"):
                continue
            if prefixes and not ref.path.startswith(tuple(prefixes)):
                continue
            try:
                obj = ref.object
                while isinstance(obj, TagObject):
                    obj = obj.object
            except (BadName, BadObject, ValueError) as e:
                logger.debug("Skipping unreadable ref %s: %s", ref.path, e)
                continue
            refs.append((ref.path, obj.hexsha))
        refs.sort()
        return refs

    def canonicalizer(self) -> Callable[[Subject], Subject]:
        """Return a function mapping subjects onto their full ref names.

        The set of existing refs is read once, so the returned function is
        meant for a single ranking pass or a single recorded visit.
        """
        existing = {path for path, _ in self.list_refs()}

        def canonical(subject: Subject) -> Subject:
            if isinstance(subject, CommitSubject):
                return subject
            return RefSubject(expand_ref_name(subject.name, existing))

        return canonical

    def subject_for(self, text: str) -> Subject:
        """Turn a name typed by a user into the subject it refers to.

        Existing refs win, short names included. Anything else is resolved
        to the commit it names, so abbreviated ids and expressions such as
        ``HEAD~2`` are stored as full commit ids.

        Raises
        ------
        NotFound:
            If ``text`` names neither a ref nor a commit
        """
        subject = parse_subject(text)
        if isinstance(subject, CommitSubject):
            return subject
        existing = {path for path, _ in self.list_refs()}
        name = expand_ref_name(text, existing)
        if name in existing:
            return RefSubject(name)
        return CommitSubject(self.resolve(text))

    def head_subject(self) -> Optional[Subject]:
        """Return what HEAD currently points at.

        Returns
        -------
        A ``RefSubject`` for an attached HEAD, a ``CommitSubject`` for a
        detached one, or None for an unborn branch.
        """
        head = self.repo.head
        if head.is_detached:
            return CommitSubject(head.commit.hexsha)
        if not head.is_valid():
            return None
        return RefSubject(head.ref.path)
