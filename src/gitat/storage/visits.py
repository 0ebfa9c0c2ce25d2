"""Append-only log of checkouts, shared between processes.

The log lives next to the repository's git data and is written by the
post-checkout hook and read by the recency ranking. Every mutation happens
while holding an exclusive ``flock`` on a sidecar lock file; readers take a
shared lock so they never observe a half-written record.

File layout::

    header  : b"GITATVL" + version byte
    record  : kind (u8) | length (u16) | head crc32 (u32) | value (utf-8)
              | timestamp (i64) | crc32 (u32)

All integers are big-endian. The head checksum covers kind and length, so a
damaged length is never mistaken for a record running past the end of the
file. The trailing checksum covers the preceding bytes of the record, which
makes a torn write at the end of the file detectable.
"""

from __future__ import annotations

import fcntl
import logging
import os
import struct
import tempfile
import time
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

from ..config import DEFAULT_CONFIG, LocalConfig
from ..errors import LockTimeout, StoreError
from ..git.history import CommitSubject, RefSubject, Subject

logger = logging.getLogger(__name__)

MAGIC = b"GITATVL"
VERSION = 2
HEADER = MAGIC + bytes([VERSION])

KIND_REF = 1
KIND_COMMIT = 2

_PREFIX = struct.Struct(">BH")
_HEAD = struct.Struct(">BHI")
_SUFFIX = struct.Struct(">qI")
_MAX_VALUE = 0xFFFF
_MAX_BACKOFF = 0.25


@dataclass(frozen=True, slots=True)
class VisitRecord:
    """A checkout of ``subject`` at ``timestamp`` (seconds since the epoch)."""

    subject: Subject
    timestamp: int


def encode_record(record: VisitRecord) -> bytes:
    """Serialise ``record`` into its on-disk form."""
    kind = KIND_COMMIT if isinstance(record.subject, CommitSubject) else KIND_REF
    value = record.subject.name.encode("utf-8")
    if not value or len(value) > _MAX_VALUE:
        raise StoreError(f"Cannot store subject of {len(value)} bytes")
    try:
        prefix = _PREFIX.pack(kind, len(value))
        body = (
            prefix
            + struct.pack(">I", zlib.crc32(prefix))
            + value
            + struct.pack(">q", record.timestamp)
        )
    except struct.error as e:
        raise StoreError(f"Cannot store timestamp {record.timestamp}: {e}") from e
    return body + struct.pack(">I", zlib.crc32(body))


def decode_records(data: bytes) -> Tuple[List[VisitRecord], int]:
    """Parse the body of a log file.

    Parameters
    ----------
    data:
        File contents, header included

    Returns
    -------
    The decoded records and the offset just past the last intact record. The
    offset is smaller than ``len(data)`` when the final record is torn.

    Raises
    ------
    StoreError:
        If the header is wrong, a record head is damaged, or any record but
        the last fails its checksum
    """
    if len(data) < len(HEADER) and HEADER.startswith(data):
        return [], 0
    if data[: len(HEADER)] != HEADER:
        raise StoreError("Visit log has an unknown header")

    records: List[VisitRecord] = []
    offset = len(HEADER)
    end = len(data)
    while offset < end:
        if offset + _HEAD.size > end:
            break
        kind, length, head_checksum = _HEAD.unpack_from(data, offset)
        if zlib.crc32(data[offset : offset + _PREFIX.size]) != head_checksum:
            raise StoreError(f"Visit log record head damaged at offset {offset}")
        stop = offset + _HEAD.size + length + _SUFFIX.size
        if stop > end:
            break
        timestamp, checksum = _SUFFIX.unpack_from(data, stop - _SUFFIX.size)
        if zlib.crc32(data[offset : stop - 4]) != checksum:
            if stop == end:
                break
            raise StoreError(f"Visit log checksum mismatch at offset {offset}")
        value = data[offset + _HEAD.size : offset + _HEAD.size + length]
        records.append(VisitRecord(_make_subject(kind, value, offset), timestamp))
        offset = stop
    return records, offset


def _make_subject(kind: int, value: bytes, offset: int) -> Subject:
    try:
        name = value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise StoreError(f"Visit log holds undecodable subject at offset {offset}") from e
    if kind == KIND_REF:
        return RefSubject(name)
    if kind == KIND_COMMIT:
        return CommitSubject(name)
    raise StoreError(f"Visit log holds unknown subject kind {kind} at offset {offset}")


def latest_per_subject(records: List[VisitRecord]) -> List[VisitRecord]:
    """Keep the newest record of every subject, in first-seen order."""
    latest: Dict[Subject, VisitRecord] = {}
    for record in records:
        current = latest.get(record.subject)
        if current is None or record.timestamp > current.timestamp:
            latest[record.subject] = record
    return list(latest.values())


class VisitLogStore:
    """Persisted visit log of one repository.

    The store is opened with the path of its log file; nothing is touched on
    disk until the first operation. Use it as a context manager, or call
    ``close`` when done.

    Parameters
    ----------
    path:
        Location of the log file. Its directory is created on first write.
    config:
        Supplies lock retry and automatic compaction settings.
    """

    def __init__(self, path: Path, config: LocalConfig | None = None):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.config = config or DEFAULT_CONFIG
        self._closed = False

    @classmethod
    def for_git_dir(cls, git_dir: Path, config: LocalConfig | None = None) -> "VisitLogStore":
        """Open the store kept inside ``git_dir``."""
        active_config = config or DEFAULT_CONFIG
        return cls(active_config.visit_log_path(git_dir), active_config)

    def __enter__(self) -> "VisitLogStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._closed = True

    def record(self, subject: Subject, timestamp: int) -> None:
        """Append a visit of ``subject`` at ``timestamp``.

        A torn record left by a crashed writer is cut off before appending.
        When the log holds more than ``compact_threshold`` records and at
        least half of them are superseded, it is compacted in the same locked
        section.

        Raises
        ------
        LockTimeout:
            If the exclusive lock is not granted in time
        StoreError:
            If the log is corrupt or cannot be written
        """
        payload = encode_record(VisitRecord(subject, int(timestamp)))
        with self._locked(exclusive=True):
            records, valid = self._read_unlocked()
            try:
                fd = os.open(self.path, os.O_WRONLY | os.O_CREAT, 0o644)
                try:
                    if valid == 0:
                        os.ftruncate(fd, 0)
                        payload = HEADER + payload
                    elif valid < os.fstat(fd).st_size:
                        logger.warning(
                            "Discarding torn record at end of %s (offset %d)", self.path, valid
                        )
                        os.ftruncate(fd, valid)
                    os.lseek(fd, 0, os.SEEK_END)
                    os.write(fd, payload)
                    os.fsync(fd)
                finally:
                    os.close(fd)
            except OSError as e:
                raise StoreError(f"Cannot append to {self.path}: {e}") from e

            threshold = self.config.compact_threshold
            if threshold and len(records) + 1 > threshold:
                records.append(VisitRecord(subject, int(timestamp)))
                kept = latest_per_subject(records)
                # Only rewrite once at least half the log is superseded.
                if len(records) >= 2 * len(kept):
                    self._rewrite_unlocked(kept)

    def read_all(self) -> List[VisitRecord]:
        """Return every persisted record, oldest append first.

        Callers needing a time order sort by ``timestamp`` themselves.

        Raises
        ------
        LockTimeout:
            If a writer holds the log for too long
        StoreError:
            If the log exists but cannot be read or is corrupt
        """
        with self._locked(exclusive=False):
            records, _ = self._read_unlocked()
        return records

    def compact(self) -> int:
        """Drop all but the newest record of every subject.

        Returns
        -------
        Number of records removed
        """
        with self._locked(exclusive=True):
            records, _ = self._read_unlocked()
            if not records:
                return 0
            kept = latest_per_subject(records)
            self._rewrite_unlocked(kept)
        removed = len(records) - len(kept)
        logger.debug("Compacted %s: %d records removed, %d kept", self.path, removed, len(kept))
        return removed

    def _read_unlocked(self) -> Tuple[List[VisitRecord], int]:
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            return [], 0
        except OSError as e:
            raise StoreError(f"Cannot read {self.path}: {e}") from e
        records, valid = decode_records(data)
        if valid < len(data):
            logger.warning("Ignoring torn record at end of %s (offset %d)", self.path, valid)
        return records, valid

    def _rewrite_unlocked(self, records: List[VisitRecord]) -> None:
        payload = HEADER + b"".join(encode_record(record) for record in records)
        try:
            mode = os.stat(self.path).st_mode & 0o777
        except FileNotFoundError:
            mode = 0o644
        except OSError as e:
            raise StoreError(f"Cannot stat {self.path}: {e}") from e
        fd, temp_name = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                # mkstemp creates 0600 files; keep the log's own permissions.
                os.fchmod(f.fileno(), mode)
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_name, self.path)
        except OSError as e:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise StoreError(f"Cannot rewrite {self.path}: {e}") from e

    @contextmanager
    def _locked(self, exclusive: bool) -> Iterator[None]:
        """Hold the sidecar lock for the duration of the block.

        The lock is attempted without blocking, up to ``lock_attempts`` times,
        sleeping ``lock_backoff`` seconds after the first failure and doubling
        the sleep (up to a quarter second) after each further one.
        """
        if self._closed:
            raise StoreError(f"Visit log {self.path} is closed")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_path, "a+b")
        except OSError as e:
            raise StoreError(f"Cannot open lock file {self.lock_path}: {e}") from e

        try:
            self._acquire(handle, exclusive)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    def _acquire(self, handle, exclusive: bool) -> None:
        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        delay = self.config.lock_backoff
        attempts = self.config.lock_attempts
        for attempt in range(1, attempts + 1):
            try:
                fcntl.flock(handle.fileno(), mode | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if attempt == attempts:
                    break
                logger.debug("Visit log locked, retry %d/%d in %.3fs", attempt, attempts, delay)
                time.sleep(delay)
                delay = min(delay * 2, _MAX_BACKOFF)
            except OSError as e:
                raise StoreError(f"File locking error on {self.lock_path}: {e}") from e
        raise LockTimeout(f"Failed to lock {self.lock_path} after {attempts} attempts")
