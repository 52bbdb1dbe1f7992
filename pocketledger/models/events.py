"""
Change Event Model

Every successful repository mutation produces exactly one ChangeEvent,
delivered synchronously to observers before the mutating call returns.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from pocketledger.models.base import local_now


class ChangeKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


class ChangeEvent(BaseModel):
    """What changed, in which family, and whether it reached storage."""
    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=local_now)
    family: str = Field(..., description="Entity family key, e.g. 'transactions'")
    kind: ChangeKind
    ids: tuple[UUID, ...] = Field(..., min_length=1)
    version: int = Field(..., ge=0, description="Collection version after the change")
    persisted: bool = Field(
        default=True,
        description="False when the store write failed; memory still changed"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "family": self.family,
            "kind": self.kind.value,
            "ids": [str(record_id) for record_id in self.ids],
            "version": self.version,
            "persisted": self.persisted,
        }
