"""Snapshot files and refresh lock markers.

Layout of a cache directory for a cache named ``Cache``::

    Cache2026-01-31 093000.pkl   snapshot payload (pickled mapping)
    Cache2026-01-31 093000.log   log of the refresh that produced it
    Cache.lck                    present only while a refresh is running
"""

import json
import os
import pickle
import tempfile
from collections.abc import Mapping, MutableMapping
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .models.snapshot import LockInfo

TIMESTAMP_FORMAT = "%Y-%m-%d %H%M%S"
SNAPSHOT_SUFFIX = ".pkl"
LOG_SUFFIX = ".log"
LOCK_SUFFIX = ".lck"

# Name used for loader results that are not a mapping
DEFAULT_VALUE_NAME = "data"


def format_timestamp(created: datetime) -> str:
    """Format a snapshot creation time for use in a file name."""
    return created.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse the timestamp segment of a snapshot file name.

    Raises:
        ValueError: If the value does not match TIMESTAMP_FORMAT
    """
    return datetime.strptime(value, TIMESTAMP_FORMAT)


def as_payload(result: Any) -> Dict[str, Any]:
    """Normalise a loader result into a mapping of named values."""
    if isinstance(result, Mapping):
        return {str(name): value for name, value in result.items()}
    return {DEFAULT_VALUE_NAME: result}


def bind(payload: Mapping, target: Any) -> None:
    """Bind the values of a snapshot into a namespace.

    Args:
        payload: Mapping of names to values
        target: Mutable mapping (e.g. a module's globals) or any object
            accepting attributes
    """
    if isinstance(target, MutableMapping):
        target.update(payload)
    else:
        for name, value in payload.items():
            setattr(target, name, value)


class SnapshotStore:
    """Reads and writes the files of one named cache."""

    def __init__(
        self,
        cache_dir: Union[str, Path] = "cache",
        cache_name: str = "Cache",
        suffix: str = SNAPSHOT_SUFFIX,
    ):
        """Initialize snapshot store.

        Args:
            cache_dir: Directory containing the cached data files
            cache_name: Name of the cache (file name prefix)
            suffix: Extension of snapshot files
        """
        self.cache_dir = Path(cache_dir).expanduser()
        self.cache_name = cache_name
        self.suffix = suffix

    def ensure_dir(self) -> Path:
        """Create the cache directory if needed."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        return self.cache_dir

    @property
    def lock_path(self) -> Path:
        """Path of the refresh lock marker."""
        return self.cache_dir / f"{self.cache_name}{LOCK_SUFFIX}"

    def snapshot_path(self, created: datetime) -> Path:
        """Path of the snapshot created at the given time."""
        return self.cache_dir / f"{self.cache_name}{format_timestamp(created)}{self.suffix}"

    def log_path(self, created: datetime) -> Path:
        """Path of the log for the refresh started at the given time."""
        return self.cache_dir / f"{self.cache_name}{format_timestamp(created)}{LOG_SUFFIX}"

    # === Snapshot I/O ===

    def write(self, payload: Mapping, created: datetime) -> Path:
        """Persist a payload as a new snapshot.

        The payload is written to a temporary file first and hard-linked
        into place, so a partially written snapshot never matches the naming
        pattern and an existing snapshot is never replaced.

        Args:
            payload: Mapping of named values
            created: Creation time encoded in the file name

        Returns:
            Path of the new snapshot

        Raises:
            FileExistsError: If a snapshot with this timestamp already exists
        """
        path = self.snapshot_path(created)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.cache_dir, prefix=f".{self.cache_name}", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                pickle.dump(dict(payload), f, protocol=pickle.HIGHEST_PROTOCOL)
            os.link(tmp_name, path)
        finally:
            Path(tmp_name).unlink(missing_ok=True)
        return path

    def read(self, path: Union[str, Path]) -> Dict[str, Any]:
        """Load the payload of a snapshot.

        Args:
            path: Snapshot file

        Returns:
            Mapping of named values
        """
        with open(path, "rb") as f:
            return pickle.load(f)

    # === Refresh lock ===

    def acquire_lock(self) -> bool:
        """Claim the refresh lock.

        Creation is atomic: if another process created the lock first this
        returns False instead of overwriting it.

        Returns:
            True if the lock was claimed by this call
        """
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False

        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(
                {"claimed_at": datetime.now().isoformat(), "pid": os.getpid()},
                f,
            )
        return True

    def release_lock(self) -> None:
        """Remove the refresh lock if present."""
        self.lock_path.unlink(missing_ok=True)

    def is_locked(self) -> bool:
        """Check whether a refresh is in progress."""
        return self.lock_path.exists()

    def lock_info(self, now: Optional[datetime] = None) -> Optional[LockInfo]:
        """Describe the current refresh lock.

        Args:
            now: Time used to compute the lock age (default: now)

        Returns:
            Lock information or None if no lock exists
        """
        path = self.lock_path
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return None

        claimed_at = datetime.fromtimestamp(mtime)
        pid = None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            claimed_at = datetime.fromisoformat(data["claimed_at"])
            pid = data.get("pid")
        except (OSError, ValueError, KeyError, TypeError):
            # Written by an older version or truncated; fall back to mtime
            pass

        now = now or datetime.now()
        return LockInfo(
            path=path,
            claimed_at=claimed_at,
            pid=pid,
            age_seconds=max((now - claimed_at).total_seconds(), 0.0),
        )
