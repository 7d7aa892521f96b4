# slot_store.py
import logging
import uuid
from datetime import datetime
from typing import List

from databases import Database

from slot_exchange.data_models import Slot, SlotStatus
from slot_exchange.errors import Conflict, NotFound
from slot_exchange.models import slots

logger = logging.getLogger(__name__)


class SlotStore:
    """Owns the slot records. All status changes go through a compare-and-set."""

    def __init__(self, db: Database):
        self.db = db

    async def get(self, slot_id: str) -> Slot:
        record = await self.db.fetch_one(slots.select().where(slots.c.id == slot_id))
        if record is None:
            raise NotFound(f"Slot {slot_id} not found")
        return Slot.from_record(record)

    async def create(self, owner_id: int, title: str, start_time: datetime, end_time: datetime,
                     status: SlotStatus = SlotStatus.BUSY) -> Slot:
        slot = Slot(
            id=uuid.uuid4().hex,
            title=title,
            start_time=start_time,
            end_time=end_time,
            owner_id=owner_id,
            status=status,
        )
        query = slots.insert().values(
            id=slot.id,
            title=slot.title,
            start_time=slot.start_time,
            end_time=slot.end_time,
            owner_id=slot.owner_id,
            status=slot.status.value,
        )
        await self.db.execute(query)
        return slot

    async def conditional_transition(self, slot_id: str, expected: SlotStatus, new: SlotStatus) -> Slot:
        """
        Move a slot from `expected` to `new` in a single guarded write.

        Raises Conflict when the stored status is not `expected` at the moment
        of the write, NotFound when the slot is gone.
        """
        query = (
            slots.update()
            .where(slots.c.id == slot_id, slots.c.status == expected.value)
            .values(status=new.value)
            .returning(slots.c.id)
        )
        if await self.db.fetch_one(query) is None:
            current = await self.get(slot_id)
            logger.warning(
                f"⚔️ Slot {slot_id} transition {expected.value}->{new.value} lost: status is {current.status.value}"
            )
            raise Conflict(f"Slot {slot_id} is {current.status.value}, expected {expected.value}")
        return await self.get(slot_id)

    async def transfer_ownership(self, slot_id: str, new_owner: int, new_status: SlotStatus) -> None:
        # Only called inside a transaction that has already validated and locked the slot.
        query = slots.update().where(slots.c.id == slot_id).values(owner_id=new_owner, status=new_status.value)
        await self.db.execute(query)

    async def update_details(self, slot_id: str, **values) -> Slot:
        await self.db.execute(slots.update().where(slots.c.id == slot_id).values(**values))
        return await self.get(slot_id)

    async def delete(self, slot_id: str) -> None:
        await self.db.execute(slots.delete().where(slots.c.id == slot_id))

    async def list_for_owner(self, owner_id: int) -> List[Slot]:
        query = slots.select().where(slots.c.owner_id == owner_id).order_by(slots.c.start_time)
        return [Slot.from_record(r) for r in await self.db.fetch_all(query)]

    async def list_swappable(self, excluding_owner_id: int) -> List[Slot]:
        query = slots.select().where(
            slots.c.owner_id != excluding_owner_id,
            slots.c.status == SlotStatus.SWAPPABLE.value,
        ).order_by(slots.c.start_time)
        return [Slot.from_record(r) for r in await self.db.fetch_all(query)]
