"""Data models for datacache."""

from .snapshot import InventoryRecord, LockInfo
from .refresh import RefreshOutcome, RefreshStatus

__all__ = [
    "InventoryRecord",
    "LockInfo",
    "RefreshOutcome",
    "RefreshStatus",
]
