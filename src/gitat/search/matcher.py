"""Regular expression predicates over commit messages."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..errors import InvalidPattern
from ..git.history import CommitRecord


@dataclass(slots=True)
class PatternMatcher:
    """Compiled commit message predicate.

    Attributes
    ----------
    pattern:
        Regular expression as typed by the user
    summary_only:
        Match against the first line of the message instead of all of it
    ignore_case:
        Compile the expression case-insensitively
    """

    pattern: str
    summary_only: bool = False
    ignore_case: bool = False
    _regex: "re.Pattern[str]" = field(init=False, repr=False)

    def __post_init__(self) -> None:
        flags = re.IGNORECASE if self.ignore_case else 0
        try:
            self._regex = re.compile(self.pattern, flags)
        except re.error as e:
            raise InvalidPattern(self.pattern, str(e)) from e

    def matches(self, record: CommitRecord) -> bool:
        text = record.summary if self.summary_only else record.message
        return self._regex.search(text) is not None
