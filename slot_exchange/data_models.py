# data_models.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SlotStatus(str, Enum):
    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"
    # locked by exactly one in-flight swap request
    RESERVED = "RESERVED"


class SwapStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Decision(str, Enum):
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


class Direction(str, Enum):
    SENT = "SENT"
    RECEIVED = "RECEIVED"
    ALL = "ALL"


@dataclass
class Slot:
    """A time-bound calendar slot owned by one user."""
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    owner_id: int
    status: SlotStatus = SlotStatus.BUSY

    @classmethod
    def from_record(cls, record) -> "Slot":
        return cls(
            id=record["id"],
            title=record["title"],
            start_time=record["start_time"],
            end_time=record["end_time"],
            owner_id=record["owner_id"],
            status=SlotStatus(record["status"]),
        )


@dataclass
class SwapRequest:
    """A proposal to exchange the owners of two slots."""
    id: str
    offered_slot_id: str
    target_slot_id: str
    requester_id: int
    target_owner_id: int
    created_at: datetime
    status: SwapStatus = SwapStatus.PENDING
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "SwapRequest":
        return cls(
            id=record["id"],
            offered_slot_id=record["offered_slot_id"],
            target_slot_id=record["target_slot_id"],
            requester_id=record["requester_id"],
            target_owner_id=record["target_owner_id"],
            created_at=record["created_at"],
            status=SwapStatus(record["status"]),
            resolved_at=record["resolved_at"],
        )

    @property
    def slot_ids(self):
        return (self.offered_slot_id, self.target_slot_id)
