"""datacache - disk-backed memoization for periodically refreshed data.

Provides:
- Snapshots of loader results stored as timestamped files
- Calendar and interval staleness policies
- Background refresh in a detached worker, guarded by a lock marker
"""

__version__ = "0.3.0"

from .cache import DataCache, data_cache
from .errors import ConfigurationError, DataCacheError, InventoryParseError, LoadError
from .frequencies import (
    always,
    daily,
    get_frequency,
    hourly,
    is_stale,
    monthly,
    n_days,
    n_hours,
    n_minutes,
    weekly,
    yearly,
)
from .inventory import cache_info, current_snapshot
from .models import InventoryRecord, LockInfo, RefreshOutcome, RefreshStatus
from .refresh import ForkExecutor, RefreshCoordinator, ThreadExecutor
from .storage import SnapshotStore

__all__ = [
    "DataCache",
    "data_cache",
    "ConfigurationError",
    "DataCacheError",
    "InventoryParseError",
    "LoadError",
    "always",
    "hourly",
    "daily",
    "weekly",
    "monthly",
    "yearly",
    "n_minutes",
    "n_hours",
    "n_days",
    "get_frequency",
    "is_stale",
    "cache_info",
    "current_snapshot",
    "InventoryRecord",
    "LockInfo",
    "RefreshOutcome",
    "RefreshStatus",
    "ForkExecutor",
    "RefreshCoordinator",
    "ThreadExecutor",
    "SnapshotStore",
]
