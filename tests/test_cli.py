from __future__ import annotations

from pathlib import Path

import pytest

from gitat import cli


@pytest.fixture
def run(sample_repo, tmp_path):
    repo, _ = sample_repo
    config_path = tmp_path / "config.json"
    config_path.write_text('{"lock_attempts": 3, "lock_backoff": 0.001}', encoding="utf-8")

    def invoke(*argv: str) -> int:
        return cli.main([*argv, "--config", str(config_path), "-C", repo.working_tree_dir])

    return invoke


def test_at_prints_matching_commit(run, sample_repo, capsys) -> None:
    _, ids = sample_repo

    assert run("at", "maximum fooness") == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.strip() == ids["first"]


def test_at_with_revision_and_summary(run, sample_repo, capsys) -> None:
    _, ids = sample_repo

    assert run("at", "--summary", "branch", "Tweak") == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.strip() == ids["fourth"]


def test_at_without_match(run, capsys) -> None:
    assert run("at", "no such message") == cli.EXIT_NON_FATAL
    assert capsys.readouterr().err.strip() == "fatal: needed a single revision"


def test_at_quiet_without_match(run, capsys) -> None:
    assert run("at", "-q", "no such message") == cli.EXIT_NON_FATAL
    assert capsys.readouterr().err == ""


def test_at_invalid_pattern_is_fatal_even_when_quiet(run, capsys) -> None:
    assert run("at", "-q", "(broken") == cli.EXIT_FATAL
    assert capsys.readouterr().err.startswith("fatal: invalid regular expression: ")


def test_outside_repository(tmp_path, capsys) -> None:
    outside = tmp_path / "plain"
    outside.mkdir()
    config_path = tmp_path / "missing.json"

    code = cli.main(["at", "x", "--config", str(config_path), "-C", str(outside)])

    assert code == cli.EXIT_NO_REPOSITORY
    assert capsys.readouterr().err.startswith("fatal: Not a git repository")


def test_malformed_config(sample_repo, tmp_path, capsys) -> None:
    repo, _ = sample_repo
    config_path = tmp_path / "bad.json"
    config_path.write_text("[1, 2]", encoding="utf-8")

    code = cli.main(["at", "x", "--config", str(config_path), "-C", repo.working_tree_dir])

    assert code == cli.EXIT_FATAL


def test_visit_then_recent(run, capsys) -> None:
    assert run("visit", "branch", "--at", "100") == cli.EXIT_SUCCESS
    assert run("visit", "main", "--at", "200") == cli.EXIT_SUCCESS
    capsys.readouterr()

    assert run("recent", "--sort", "visitdate", "--timestamps") == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.splitlines() == ["200 main", "100 branch"]


def test_visit_abbreviated_commit_is_ranked(run, sample_repo, capsys) -> None:
    _, ids = sample_repo

    assert run("visit", ids["first"][:7], "--at", "300") == cli.EXIT_SUCCESS
    assert run("visit", "main", "--at", "200") == cli.EXIT_SUCCESS
    capsys.readouterr()

    assert run("recent", "--sort", "visitdate", "--timestamps") == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.splitlines() == [f"300 {ids['first']}", "200 main"]


def test_visit_unknown_subject(run, capsys) -> None:
    assert run("visit", "no-such-branch") == cli.EXIT_NON_FATAL
    assert capsys.readouterr().err.strip() == "fatal: no-such-branch is neither a ref nor a commit"


def test_wrongly_typed_config_is_fatal(sample_repo, tmp_path, capsys) -> None:
    repo, _ = sample_repo
    config_path = tmp_path / "typed.json"
    config_path.write_text('{"lock_attempts": "3"}', encoding="utf-8")

    code = cli.main(["recent", "--config", str(config_path), "-C", repo.working_tree_dir])

    assert code == cli.EXIT_FATAL
    assert capsys.readouterr().err.startswith("fatal: lock_attempts")


def test_recent_by_committer_date_with_count(run, capsys) -> None:
    assert run("recent", "--sort", "committerdate", "-n", "1") == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.splitlines() == ["branch"]


def test_hook_records_branch_checkout(run, capsys) -> None:
    assert run("hook", "post-checkout", "a" * 40, "b" * 40, "1") == cli.EXIT_SUCCESS
    assert run("hook", "post-checkout", "a" * 40, "b" * 40, "0") == cli.EXIT_SUCCESS
    assert run("recent", "--sort", "visitdate") == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.splitlines() == ["main"]


def test_compact(run, capsys) -> None:
    run("visit", "main", "--at", "1")
    run("visit", "main", "--at", "2")
    capsys.readouterr()

    assert run("compact") == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.startswith("Removed 1 superseded visit records")


def test_corrupt_log_is_fatal(run, sample_repo, capsys) -> None:
    repo, _ = sample_repo
    log = Path(repo.git_dir) / "gitat" / "visits.log"
    log.parent.mkdir(parents=True, exist_ok=True)
    log.write_bytes(b"definitely not a log")

    assert run("recent", "--sort", "visitdate") == cli.EXIT_FATAL
    assert "unknown header" in capsys.readouterr().err


def test_git_at_entry_point(sample_repo, tmp_path, capsys) -> None:
    repo, ids = sample_repo
    config_path = tmp_path / "none.json"

    code = cli.git_at(["-C", repo.working_tree_dir, "--config", str(config_path), "-s", "Update"])

    assert code == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.strip() == ids["second"]


def test_git_recent_entry_point(sample_repo, tmp_path, capsys) -> None:
    repo, _ = sample_repo
    config_path = tmp_path / "none.json"

    code = cli.git_recent(
        ["-C", repo.working_tree_dir, "--config", str(config_path), "--sort", "authordate"]
    )

    assert code == cli.EXIT_SUCCESS
    assert capsys.readouterr().out.splitlines() == ["branch", "main"]
