from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest
from git import Actor, Repo

from gitat.config import LocalConfig
from gitat.errors import NotFound
from gitat.git.history import CommitRecord, GitRepo
from gitat.storage.visits import VisitLogStore

BASE_TIME = 1_600_000_000
ACTOR = Actor("Test Author", "author@example.com")


class FakeRepository:
    """In-memory stand-in for ``GitRepo`` with call accounting."""

    def __init__(self) -> None:
        self.commits: Dict[str, CommitRecord] = {}
        self.load_calls: List[str] = []
        self.resolve_calls: List[str] = []

    def add(
        self,
        commit_id: str,
        parents: Sequence[str] = (),
        time: int = 0,
        message: str = "",
        author_time: Optional[int] = None,
    ) -> CommitRecord:
        record = CommitRecord(
            commit_id=commit_id,
            parent_ids=tuple(parents),
            committer_time=time,
            author_time=time if author_time is None else author_time,
            message=message or f"Commit {commit_id}",
        )
        self.commits[commit_id] = record
        return record

    def load(self, commit_id: str) -> CommitRecord:
        self.load_calls.append(commit_id)
        try:
            return self.commits[commit_id]
        except KeyError:
            raise NotFound(commit_id) from None

    def resolve(self, revision: str) -> str:
        self.resolve_calls.append(revision)
        if revision not in self.commits:
            raise NotFound(revision)
        return revision


@pytest.fixture
def fake_repo() -> FakeRepository:
    return FakeRepository()


def make_commit(
    repo: Repo,
    message: str,
    offset: int,
    *,
    parents: Optional[list] = None,
    author_offset: Optional[int] = None,
    path: str = "file.txt",
):
    """Commit a change to ``path`` with deterministic dates."""
    target = Path(repo.working_tree_dir) / path
    target.write_text(f"{message}\n{offset}\n", encoding="utf-8")
    repo.index.add([path])
    commit_date = f"{BASE_TIME + offset} +0000"
    author_date = f"{BASE_TIME + (offset if author_offset is None else author_offset)} +0000"
    return repo.index.commit(
        message,
        parent_commits=parents,
        author=ACTOR,
        committer=ACTOR,
        author_date=author_date,
        commit_date=commit_date,
    )


@pytest.fixture
def git_repo(tmp_path) -> Repo:
    """An empty repository whose initial branch is ``main``."""
    path = tmp_path / "repo"
    path.mkdir()
    repo = Repo.init(path, initial_branch="main")
    with repo.config_writer() as writer:
        writer.set_value("user", "name", ACTOR.name)
        writer.set_value("user", "email", ACTOR.email)
    yield repo
    repo.close()


@pytest.fixture
def sample_repo(git_repo):
    """Three commits on ``main`` and a ``branch`` one commit ahead of them.

    Returns the repository and a dict of commit ids by name.
    """
    first = make_commit(git_repo, "Add foo\n\nThis commit gives maximum fooness.", 10)
    second = make_commit(git_repo, "Update bar\n\nThis commit gives maximum barness to content.", 20)
    third = make_commit(git_repo, "Add baz file", 30, path="baz.txt")
    git_repo.create_head("branch", second)
    git_repo.git.checkout("branch")
    fourth = make_commit(git_repo, "Tweak branch\n\nmaximum effort", 40, path="branch.txt")
    git_repo.git.checkout("main")
    ids = {
        "first": first.hexsha,
        "second": second.hexsha,
        "third": third.hexsha,
        "fourth": fourth.hexsha,
    }
    return git_repo, ids


@pytest.fixture
def config(tmp_path) -> LocalConfig:
    return LocalConfig(base_dir=tmp_path / "gitat-home", lock_attempts=3, lock_backoff=0.001)


@pytest.fixture
def store(tmp_path, config) -> VisitLogStore:
    with VisitLogStore(tmp_path / "visits" / "visits.log", config) as opened:
        yield opened


@pytest.fixture
def wrapped(sample_repo) -> GitRepo:
    repo, _ = sample_repo
    return GitRepo(Path(repo.working_tree_dir))
