"""Refresh outcome models for datacache."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RefreshStatus(str, Enum):
    """How a refresh attempt ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    DEFERRED = "deferred"
    SPAWNED = "spawned"


class RefreshOutcome(BaseModel):
    """Result of one refresh attempt."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: RefreshStatus
    created: Optional[datetime] = None
    snapshot: Optional[Path] = None
    error: Optional[BaseException] = None
    lock_age_seconds: Optional[float] = Field(
        default=None,
        description="Age of the lock held by another process (deferred only)",
    )

    @property
    def succeeded(self) -> bool:
        """True if a new snapshot was written."""
        return self.status == RefreshStatus.COMPLETED
