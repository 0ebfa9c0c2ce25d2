from __future__ import annotations

import pytest

from gitat.errors import InvalidPattern
from gitat.git.history import CommitRecord
from gitat.search.matcher import PatternMatcher


def _record(message: str) -> CommitRecord:
    return CommitRecord("abc", (), 0, 0, message)


def test_full_message_mode_sees_the_body() -> None:
    matcher = PatternMatcher("fooness")

    assert matcher.matches(_record("Add foo\n\nmaximum fooness"))


def test_summary_mode_ignores_the_body() -> None:
    matcher = PatternMatcher("fooness", summary_only=True)

    assert not matcher.matches(_record("Add foo\n\nmaximum fooness"))
    assert matcher.matches(_record("fooness everywhere\n\nbody"))


def test_summary_mode_anchors_apply_to_first_line() -> None:
    matcher = PatternMatcher(r"^Add foo$", summary_only=True)

    assert matcher.matches(_record("Add foo\n\nmore"))


def test_patterns_are_searched_not_anchored() -> None:
    assert PatternMatcher(r"max.+\s+bar.*content").matches(
        _record("Update\n\nmaximum barness in the content")
    )


def test_ignore_case() -> None:
    assert not PatternMatcher("update").matches(_record("Update bar"))
    assert PatternMatcher("update", ignore_case=True).matches(_record("Update bar"))


def test_invalid_pattern_raises_with_details() -> None:
    with pytest.raises(InvalidPattern) as excinfo:
        PatternMatcher("(unbalanced")

    assert excinfo.value.pattern == "(unbalanced"
    assert "missing )" in excinfo.value.message
