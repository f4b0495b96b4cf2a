"""Snapshot inventory.

Scans a cache directory for the snapshots of one named cache and ranks them
by creation time, most recent first.
"""

import re
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from rich.console import Console

from .errors import ConfigurationError, InventoryParseError
from .frequencies import DEFAULT_STALE, StalenessPolicy, is_stale
from .models.snapshot import InventoryRecord
from .storage import SNAPSHOT_SUFFIX, parse_timestamp

AGE_UNITS = {
    "secs": 1,
    "mins": 60,
    "hours": 3600,
    "days": 86400,
    "weeks": 604800,
}

StaleSpec = Union[Mapping, Iterable[Tuple[str, StalenessPolicy]], None]


def _normalize_stale(stale: StaleSpec) -> List[Tuple[str, StalenessPolicy]]:
    """Validate the named staleness policies.

    Raises:
        ConfigurationError: On empty or duplicate names, or non-callables
    """
    if stale is None:
        return []

    pairs = list(stale.items()) if isinstance(stale, Mapping) else list(stale)
    seen = set()
    for entry in pairs:
        try:
            name, policy = entry
        except (TypeError, ValueError):
            raise ConfigurationError(
                "stale must map names to policies (e.g. stale={'hourly': hourly})"
            )
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(
                "stale must map names to policies (e.g. stale={'hourly': hourly})"
            )
        if name in seen:
            raise ConfigurationError(f"Duplicate staleness policy name '{name}'")
        if not callable(policy):
            raise ConfigurationError(f"Staleness policy '{name}' is not callable")
        seen.add(name)
    return pairs


def _name_pattern(cache_name: str, suffix: str) -> "re.Pattern[str]":
    return re.compile(
        rf"^{re.escape(cache_name)}(\d{{4}}-\d{{2}}-\d{{2}}.*){re.escape(suffix)}$"
    )


def cache_info(
    cache_dir: Union[str, Path] = "cache",
    cache_name: str = "Cache",
    units: str = "mins",
    stale: StaleSpec = DEFAULT_STALE,
    now: Optional[datetime] = None,
    suffix: str = SNAPSHOT_SUFFIX,
    console: Optional[Console] = None,
) -> List[InventoryRecord]:
    """List the snapshots of a cache.

    Args:
        cache_dir: Directory containing the cached files
        cache_name: Name of the cache
        units: Units for the age column (secs, mins, hours, days, weeks)
        stale: Named staleness policies to evaluate for every snapshot,
            or None to skip them
        now: Reference time for ages and for policies accepting ``now``
            (default: now)
        suffix: Extension of snapshot files
        console: Console used for warnings about unreadable file names

    Returns:
        Inventory records sorted by creation time, most recent first
    """
    if units not in AGE_UNITS:
        raise ConfigurationError(
            f"Unknown age units '{units}'. Use one of {', '.join(AGE_UNITS)}"
        )
    policies = _normalize_stale(stale)

    base_dir = Path(cache_dir).expanduser()
    if not base_dir.is_dir():
        return []

    now = now or datetime.now()
    pattern = _name_pattern(cache_name, suffix)
    records = []

    for path in base_dir.iterdir():
        match = pattern.match(path.name)
        if not match or not path.is_file():
            continue

        try:
            created = parse_timestamp(match.group(1))
        except ValueError:
            error = InventoryParseError(
                f"Cannot parse timestamp of cache file {path.name}; ignoring it",
                path=path,
            )
            (console or Console(stderr=True)).print(
                f"[yellow]Warning:[/yellow] {error}"
            )
            continue

        records.append(
            InventoryRecord(
                path=path,
                created=created,
                age=(now - created).total_seconds() / AGE_UNITS[units],
                units=units,
                stale={name: is_stale(policy, created, now) for name, policy in policies},
            )
        )

    records.sort(key=lambda record: record.created, reverse=True)
    return records


def current_snapshot(
    cache_dir: Union[str, Path] = "cache",
    cache_name: str = "Cache",
    suffix: str = SNAPSHOT_SUFFIX,
    console: Optional[Console] = None,
) -> Optional[InventoryRecord]:
    """Get the most recent snapshot of a cache, if any."""
    records = cache_info(
        cache_dir, cache_name, stale=None, suffix=suffix, console=console
    )
    return records[0] if records else None
