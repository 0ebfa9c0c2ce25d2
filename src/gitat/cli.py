"""Command line front-ends for the gitat utilities."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import Iterable, List

from .config import SORT_KEYS, LocalConfig
from .errors import (
    ConfigError,
    InvalidPattern,
    NotARepository,
    NotFound,
    StoreError,
)
from .git.history import GitRepo
from .hooks import handle_post_checkout, record_visit
from .ranking.ranker import rank
from .search.driver import search
from .storage.visits import VisitLogStore

EXIT_SUCCESS = 0
EXIT_NON_FATAL = 1
EXIT_FATAL = 2
EXIT_EXTERNAL_FAILED = 3
EXIT_NO_REPOSITORY = 4


def _open_store(repo: GitRepo, config: LocalConfig) -> VisitLogStore:
    return VisitLogStore.for_git_dir(repo.git_dir, config)


def _at(args: argparse.Namespace, repo: GitRepo, config: LocalConfig) -> int:
    """Print the newest commit whose message matches a pattern."""
    summary_only = args.summary or config.summary_only
    try:
        commit_id = search(
            repo,
            args.revision or "HEAD",
            args.pattern,
            summary_only=summary_only,
            ignore_case=args.ignore_case,
        )
    except InvalidPattern as e:
        print(f"fatal: invalid regular expression: {e.message}", file=sys.stderr)
        return EXIT_FATAL
    except NotFound:
        if not args.quiet:
            print("fatal: needed a single revision", file=sys.stderr)
        return EXIT_NON_FATAL

    if args.show:
        try:
            return subprocess.call(["git", "show", commit_id], cwd=repo.repo.working_tree_dir)
        except OSError as e:
            print(f"fatal: cannot run git show: {e}", file=sys.stderr)
            return EXIT_EXTERNAL_FAILED
    print(commit_id)
    return EXIT_SUCCESS


def _recent(args: argparse.Namespace, repo: GitRepo, config: LocalConfig) -> int:
    """Print refs and commits, most recently used first."""
    prefixes: List[str] | None = [] if args.all else None
    with _open_store(repo, config) as store:
        entries = rank(repo, store, sort_key=args.sort, config=config, prefixes=prefixes)

    if args.count is not None:
        entries = entries[: args.count]
    for entry in entries:
        if args.timestamps:
            print(f"{entry.timestamp} {entry.subject.short_name}")
        else:
            print(entry.subject.short_name)
    return EXIT_SUCCESS


def _visit(args: argparse.Namespace, repo: GitRepo, config: LocalConfig) -> int:
    """Record a visit of a ref or commit."""
    if args.subject:
        try:
            subject = repo.subject_for(args.subject)
        except NotFound:
            print(f"fatal: {args.subject} is neither a ref nor a commit", file=sys.stderr)
            return EXIT_NON_FATAL
    else:
        subject = repo.head_subject()
    if subject is None:
        print("fatal: HEAD does not point at a commit yet", file=sys.stderr)
        return EXIT_NON_FATAL
    with _open_store(repo, config) as store:
        record_visit(store, subject, at=args.at, repo=repo)
    return EXIT_SUCCESS


def _hook(args: argparse.Namespace, repo: GitRepo, config: LocalConfig) -> int:
    """Entry point for the post-checkout hook."""
    with _open_store(repo, config) as store:
        handle_post_checkout(repo, store, args.previous_head, args.new_head, args.flag)
    return EXIT_SUCCESS


def _compact(args: argparse.Namespace, repo: GitRepo, config: LocalConfig) -> int:
    """Drop superseded visit records."""
    with _open_store(repo, config) as store:
        removed = store.compact()
    print(f"Removed {removed} superseded visit records from {store.path}")
    return EXIT_SUCCESS


def _add_at_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-s", "--summary", action="store_true", help="Search only the commit summary"
    )
    parser.add_argument(
        "--show", action="store_true", help="Invoke git show to show the commit"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Exit 1 silently if no commit is found"
    )
    parser.add_argument(
        "-i", "--ignore-case", action="store_true", help="Match the pattern case-insensitively"
    )
    parser.add_argument("revision", nargs="?", help="Where to start searching (default: HEAD)")
    parser.add_argument("pattern", help="Regular expression matched against commit messages")
    parser.set_defaults(func=_at)


def _add_recent_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--sort",
        choices=SORT_KEYS,
        help="Timestamp to rank by (default: configured sort key)",
    )
    parser.add_argument("-n", "--count", type=int, help="Show at most this many entries")
    parser.add_argument(
        "--all", action="store_true", help="Rank every ref, not only the configured namespaces"
    )
    parser.add_argument(
        "--timestamps", action="store_true", help="Prefix each entry with its timestamp"
    )
    parser.set_defaults(func=_recent)


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        help="Path to a JSON configuration file (defaults to ~/.gitat/config.json)",
    )
    common.add_argument(
        "-C",
        dest="directory",
        type=Path,
        default=Path.cwd(),
        help="Run as if started in this directory",
    )
    common.add_argument("-v", "--verbose", action="store_true", help="Log debugging output")
    return common


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    common = _common_parser()
    subparsers = parser.add_subparsers(dest="command", required=True)

    at_parser = subparsers.add_parser(
        "at", parents=[common], help="Find a commit based on commit message"
    )
    _add_at_arguments(at_parser)

    recent_parser = subparsers.add_parser(
        "recent", parents=[common], help="List recently used refs"
    )
    _add_recent_arguments(recent_parser)

    visit_parser = subparsers.add_parser(
        "visit", parents=[common], help="Record a visit of a ref or commit"
    )
    visit_parser.add_argument("subject", nargs="?", help="Ref or commit id (default: HEAD)")
    visit_parser.add_argument("--at", type=int, help="Seconds since the epoch (default: now)")
    visit_parser.set_defaults(func=_visit)

    hook_parser = subparsers.add_parser("hook", help="Git hook entry points")
    hook_sub = hook_parser.add_subparsers(dest="hook_command", required=True)
    checkout_parser = hook_sub.add_parser(
        "post-checkout", parents=[common], help="Record a branch checkout"
    )
    checkout_parser.add_argument("previous_head")
    checkout_parser.add_argument("new_head")
    checkout_parser.add_argument("flag")
    checkout_parser.set_defaults(func=_hook)

    compact_parser = subparsers.add_parser(
        "compact", parents=[common], help="Compact the visit log"
    )
    compact_parser.set_defaults(func=_compact)

    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = LocalConfig.load(args.config)
        repo = GitRepo(args.directory)
    except ConfigError as e:
        print(f"fatal: {e}", file=sys.stderr)
        return EXIT_FATAL
    except NotARepository as e:
        print(f"fatal: {e}", file=sys.stderr)
        return EXIT_NO_REPOSITORY

    try:
        return args.func(args, repo, config)
    except StoreError as e:
        print(f"fatal: {e}", file=sys.stderr)
        return EXIT_FATAL


def git_at(argv: Iterable[str] | None = None) -> int:
    """``git-at`` executable: ``gitat at`` without the subcommand."""
    return main(["at", *(sys.argv[1:] if argv is None else argv)])


def git_recent(argv: Iterable[str] | None = None) -> int:
    """``git-recent`` executable: ``gitat recent`` without the subcommand."""
    return main(["recent", *(sys.argv[1:] if argv is None else argv)])


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
