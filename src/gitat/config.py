"""Configuration for the gitat command line utilities."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .errors import ConfigError

SORT_KEYS = ("committerdate", "authordate", "visitdate")


@dataclass(slots=True)
class LocalConfig:
    """Runtime configuration shared by the search, ranking and hook commands.

    Attributes
    ----------
    base_dir:
        Directory holding the optional ``config.json`` overrides. Defaults to
        ``~/.gitat``.
    visit_log_name:
        Location of the visit log, relative to the repository's common git
        directory so it never lands in tracked content.
    lock_attempts:
        Number of non-blocking attempts made to lock the visit log before
        giving up with ``LockTimeout``.
    lock_backoff:
        Initial sleep in seconds between lock attempts. Doubles after every
        failed attempt.
    compact_threshold:
        Record count above which ``record`` compacts the log, provided at
        least half the records are superseded. ``0`` disables automatic
        compaction.
    ref_prefixes:
        Ref namespaces offered to the recency ranking. An empty list means
        every ref.
    sort_key:
        Ranking key used when the caller does not choose one.
    summary_only:
        Whether pattern searches look at the summary line only by default.
    """

    base_dir: Path = field(default_factory=lambda: Path.home() / ".gitat")
    visit_log_name: str = "gitat/visits.log"
    lock_attempts: int = 8
    lock_backoff: float = 0.02
    compact_threshold: int = 5000
    ref_prefixes: List[str] = field(default_factory=lambda: ["refs/heads/"])
    sort_key: str = "visitdate"
    summary_only: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.base_dir, Path):
            raise ConfigError("base_dir must be a path")
        _expect(self.visit_log_name, str, "visit_log_name")
        _expect(self.lock_attempts, int, "lock_attempts")
        _expect(self.lock_backoff, (int, float), "lock_backoff")
        _expect(self.compact_threshold, int, "compact_threshold")
        _expect(self.sort_key, str, "sort_key")
        _expect(self.summary_only, bool, "summary_only")
        if not isinstance(self.ref_prefixes, list) or not all(
            isinstance(prefix, str) for prefix in self.ref_prefixes
        ):
            raise ConfigError("ref_prefixes must be a list of strings")

        if self.sort_key not in SORT_KEYS:
            raise ConfigError(
                f"Unknown sort key {self.sort_key!r}; expected one of {', '.join(SORT_KEYS)}"
            )
        if self.lock_attempts < 1:
            raise ConfigError("lock_attempts must be at least 1")
        if self.lock_backoff < 0:
            raise ConfigError("lock_backoff must not be negative")
        if self.compact_threshold < 0:
            raise ConfigError("compact_threshold must not be negative")

    def config_path(self) -> Path:
        """Return path to the JSON overrides file."""
        return self.base_dir / "config.json"

    def visit_log_path(self, git_dir: Path) -> Path:
        """Return the absolute path of the visit log for ``git_dir``."""
        return (Path(git_dir) / self.visit_log_name).resolve()

    @classmethod
    def load(cls, path: Path | None = None) -> "LocalConfig":
        """Build a configuration from defaults and the JSON overrides file.

        Parameters
        ----------
        path:
            Explicit overrides file. When omitted, ``config.json`` under the
            default ``base_dir`` is used if present.

        Returns
        -------
        The merged configuration

        Raises
        ------
        ConfigError:
            If the file exists but is not a JSON object
        """
        config = cls()
        target = path or config.config_path()
        if not target.exists():
            return config

        try:
            with open(target, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read {target}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{target} must contain a JSON object")

        return cls(**_known_fields(data))


def _known_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(LocalConfig)}
    values = {key: value for key, value in data.items() if key in names}
    if "base_dir" in values:
        if not isinstance(values["base_dir"], str):
            raise ConfigError("base_dir must be a string")
        values["base_dir"] = Path(values["base_dir"]).expanduser()
    return values


def _expect(value: Any, expected: type | Tuple[type, ...], name: str) -> None:
    # bool is an int subclass, but true and false are never counts.
    if isinstance(value, bool) and expected is not bool:
        raise ConfigError(f"{name} must not be a boolean")
    if not isinstance(value, expected):
        raise ConfigError(f"{name} has the wrong type: {value!r}")


DEFAULT_CONFIG = LocalConfig()
