"""Snapshot inventory models for datacache."""

from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, computed_field


class InventoryRecord(BaseModel):
    """One snapshot found in the cache directory."""

    path: Path
    created: datetime = Field(description="Creation time parsed from the file name")
    age: float = Field(description="Age of the snapshot in `units`")
    units: str = Field(default="mins")
    stale: Dict[str, bool] = Field(
        default_factory=dict,
        description="Staleness per named policy",
    )

    @computed_field
    @property
    def file_name(self) -> str:
        """File name of the snapshot."""
        return self.path.name


class LockInfo(BaseModel):
    """State of a refresh lock marker."""

    path: Path
    claimed_at: datetime
    pid: Optional[int] = None
    age_seconds: float = Field(ge=0)
