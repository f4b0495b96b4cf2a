"""Staleness policies.

A policy is any callable taking the creation time of a snapshot and returning
True when that snapshot is stale and should be reloaded. The calendar policies
(hourly, daily, ...) compare local wall-clock buckets, so a snapshot created
at 9:59 is stale under ``hourly`` at 10:01. Use :func:`n_minutes` and friends
to refresh after a fixed amount of elapsed time instead.

All datetimes are naive and interpreted in system local time.
"""

import inspect
import re
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Union

from .errors import ConfigurationError

StalenessPolicy = Callable[[datetime], bool]


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now()


def _accepts_now(policy: Callable[..., bool]) -> bool:
    try:
        parameters = inspect.signature(policy).parameters.values()
    except (TypeError, ValueError):
        return False
    return any(
        p.name == "now" or p.kind is inspect.Parameter.VAR_KEYWORD for p in parameters
    )


def is_stale(
    policy: Callable[..., bool], timestamp: datetime, now: Optional[datetime] = None
) -> bool:
    """Evaluate a policy, passing ``now`` through when the policy accepts it.

    Plain one-argument policies are evaluated against the current time.
    """
    if now is not None and _accepts_now(policy):
        return bool(policy(timestamp, now=now))
    return bool(policy(timestamp))


def always(timestamp: datetime, now: Optional[datetime] = None) -> bool:
    """Always stale, forcing a refresh on every call."""
    return True


def hourly(timestamp: datetime, now: Optional[datetime] = None) -> bool:
    """Stale once the clock has moved into a different hour.

    Args:
        timestamp: Creation time of the snapshot
        now: Time to compare against (default: current local time)

    Returns:
        True if the snapshot is stale
    """
    now = _now(now)
    return (now.year, now.month, now.day, now.hour) != (
        timestamp.year,
        timestamp.month,
        timestamp.day,
        timestamp.hour,
    )


def daily(timestamp: datetime, now: Optional[datetime] = None) -> bool:
    """Stale once the clock has moved into a different day."""
    now = _now(now)
    return now.date() != timestamp.date()


def weekly(timestamp: datetime, now: Optional[datetime] = None) -> bool:
    """Stale once the clock has moved into a different ISO week."""
    now = _now(now)
    return now.isocalendar()[:2] != timestamp.isocalendar()[:2]


def monthly(timestamp: datetime, now: Optional[datetime] = None) -> bool:
    """Stale once the clock has moved into a different month."""
    now = _now(now)
    return (now.year, now.month) != (timestamp.year, timestamp.month)


def yearly(timestamp: datetime, now: Optional[datetime] = None) -> bool:
    """Stale once the clock has moved into a different year."""
    now = _now(now)
    return now.year != timestamp.year


def n_minutes(minutes: float) -> Callable[..., bool]:
    """Build a policy that goes stale after a number of minutes.

    The snapshot is stale when strictly more than ``minutes`` have elapsed,
    so a snapshot exactly ``minutes`` old is still fresh.

    Args:
        minutes: Minimum number of minutes between refreshes

    Returns:
        Staleness policy
    """
    if minutes <= 0:
        raise ConfigurationError(f"Refresh interval must be positive, got {minutes}")
    limit = timedelta(minutes=minutes)

    def policy(timestamp: datetime, now: Optional[datetime] = None) -> bool:
        return _now(now) - timestamp > limit

    policy.__name__ = f"n_minutes({minutes:g})"
    return policy


def n_hours(hours: float) -> Callable[..., bool]:
    """Build a policy that goes stale after a number of hours."""
    return n_minutes(60 * hours)


def n_days(days: float) -> Callable[..., bool]:
    """Build a policy that goes stale after a number of days."""
    return n_minutes(24 * 60 * days)


FREQUENCIES: Dict[str, StalenessPolicy] = {
    "always": always,
    "now": always,
    "hourly": hourly,
    "daily": daily,
    "weekly": weekly,
    "monthly": monthly,
    "yearly": yearly,
}

DEFAULT_STALE: Dict[str, StalenessPolicy] = {
    "hourly": hourly,
    "daily": daily,
    "weekly": weekly,
    "monthly": monthly,
    "yearly": yearly,
}

_INTERVAL_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*([mhd])$")
_INTERVAL_FACTORIES = {"m": n_minutes, "h": n_hours, "d": n_days}


def get_frequency(frequency: Union[str, StalenessPolicy]) -> StalenessPolicy:
    """Resolve a frequency name such as ``"daily"`` or ``"30m"`` to a policy.

    Args:
        frequency: Built-in name, interval (``<n>m``, ``<n>h``, ``<n>d``)
            or an existing policy callable

    Returns:
        Staleness policy

    Raises:
        ConfigurationError: If the name is not recognised
    """
    if callable(frequency):
        return frequency

    key = str(frequency).strip().lower()
    if key in FREQUENCIES:
        return FREQUENCIES[key]

    match = _INTERVAL_PATTERN.match(key)
    if match:
        value, unit = match.groups()
        return _INTERVAL_FACTORIES[unit](float(value))

    raise ConfigurationError(
        f"Unknown frequency '{frequency}'. Use one of "
        f"{', '.join(sorted(FREQUENCIES))} or an interval like 30m, 6h, 2d"
    )
