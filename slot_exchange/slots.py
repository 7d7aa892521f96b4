# slots.py
import logging
from datetime import datetime, timezone
from typing import List, Optional

from slot_exchange.data_models import Slot, SlotStatus
from slot_exchange.errors import Forbidden, InvalidRequest
from slot_exchange.slot_store import SlotStore

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SlotService:
    """Owner-facing slot operations: create, list, toggle availability, delete."""

    def __init__(self, slot_store: SlotStore):
        self.slot_store = slot_store

    async def create_slot(self, owner_id: int, title: str, start_time: datetime, end_time: datetime,
                          swappable: bool = False) -> Slot:
        if not title or not title.strip():
            raise InvalidRequest("Missing fields: title is required")
        start_time, end_time = _as_utc(start_time), _as_utc(end_time)
        if start_time >= end_time:
            raise InvalidRequest("Start time must be before end time")
        if start_time <= datetime.now(timezone.utc):
            raise InvalidRequest("Start time must be in the future")

        status = SlotStatus.SWAPPABLE if swappable else SlotStatus.BUSY
        slot = await self.slot_store.create(owner_id, title.strip(), start_time, end_time, status)
        logger.info(f"📅 Slot {slot.id} created by user {owner_id} ({status.value})")
        return slot

    async def list_my_slots(self, owner_id: int) -> List[Slot]:
        return await self.slot_store.list_for_owner(owner_id)

    async def list_marketplace(self, user_id: int) -> List[Slot]:
        """Other users' slots that are currently open for swapping."""
        return await self.slot_store.list_swappable(excluding_owner_id=user_id)

    async def _get_owned(self, owner_id: int, slot_id: str) -> Slot:
        slot = await self.slot_store.get(slot_id)
        if slot.owner_id != owner_id:
            raise Forbidden("Forbidden: you do not own this slot")
        return slot

    async def set_swappable(self, owner_id: int, slot_id: str, swappable: bool) -> Slot:
        slot = await self._get_owned(owner_id, slot_id)
        if slot.status == SlotStatus.RESERVED:
            raise InvalidRequest("Slot is locked by a pending swap request")

        target = SlotStatus.SWAPPABLE if swappable else SlotStatus.BUSY
        if slot.status == target:
            return slot
        # Races against a concurrent proposal surface as Conflict.
        return await self.slot_store.conditional_transition(slot.id, slot.status, target)

    async def update_details(self, owner_id: int, slot_id: str, title: Optional[str] = None,
                             start_time: Optional[datetime] = None,
                             end_time: Optional[datetime] = None) -> Slot:
        slot = await self._get_owned(owner_id, slot_id)
        values = self._detail_values(slot, title, start_time, end_time)
        if not values:
            return slot
        return await self.slot_store.update_details(slot.id, **values)

    async def edit_slot(self, owner_id: int, slot_id: str, title: Optional[str] = None,
                        start_time: Optional[datetime] = None, end_time: Optional[datetime] = None,
                        status: Optional[SlotStatus] = None) -> Slot:
        """
        Apply detail edits and an availability change together. Every check
        runs before the first write and the writes share one transaction, so a
        rejected status change leaves the details untouched.
        """
        slot = await self._get_owned(owner_id, slot_id)
        if status is not None:
            status = SlotStatus(status)
            if status == SlotStatus.RESERVED:
                raise InvalidRequest("Slots are only reserved by swap requests")
            if slot.status == SlotStatus.RESERVED:
                raise InvalidRequest("Slot is locked by a pending swap request")
        values = self._detail_values(slot, title, start_time, end_time)

        async with self.slot_store.db.transaction():
            # Status first: the guarded write takes the lock before anything else.
            if status is not None and status != slot.status:
                slot = await self.slot_store.conditional_transition(slot.id, slot.status, status)
            if values:
                slot = await self.slot_store.update_details(slot.id, **values)
        return slot

    def _detail_values(self, slot: Slot, title: Optional[str], start_time: Optional[datetime],
                       end_time: Optional[datetime]) -> dict:
        values = {}
        if title is not None:
            if not title.strip():
                raise InvalidRequest("Title cannot be empty")
            values["title"] = title.strip()
        if start_time is not None:
            values["start_time"] = _as_utc(start_time)
        if end_time is not None:
            values["end_time"] = _as_utc(end_time)
        if not values:
            return values

        new_start = values.get("start_time", _as_utc(slot.start_time))
        new_end = values.get("end_time", _as_utc(slot.end_time))
        if new_start >= new_end:
            raise InvalidRequest("Start time must be before end time")
        return values

    async def delete_slot(self, owner_id: int, slot_id: str) -> None:
        slot = await self._get_owned(owner_id, slot_id)
        if slot.status == SlotStatus.RESERVED:
            logger.warning(f"⚠️ Reserved slot {slot.id} deleted by owner; its swap request is orphaned")
        await self.slot_store.delete(slot.id)
