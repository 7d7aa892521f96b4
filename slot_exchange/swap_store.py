# swap_store.py
import logging
import uuid
from datetime import datetime, timezone
from typing import AsyncIterator, Iterable, Optional

import sqlalchemy
from databases import Database

from slot_exchange.data_models import SwapRequest, SwapStatus
from slot_exchange.errors import Conflict, NotFound
from slot_exchange.models import swap_requests

logger = logging.getLogger(__name__)


class SwapRequestStore:
    """Owns swap request records. Requests are never deleted."""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, offered_slot_id: str, target_slot_id: str,
                     requester_id: int, target_owner_id: int) -> SwapRequest:
        swap = SwapRequest(
            id=uuid.uuid4().hex,
            offered_slot_id=offered_slot_id,
            target_slot_id=target_slot_id,
            requester_id=requester_id,
            target_owner_id=target_owner_id,
            created_at=datetime.now(timezone.utc),
        )
        query = swap_requests.insert().values(
            id=swap.id,
            offered_slot_id=swap.offered_slot_id,
            target_slot_id=swap.target_slot_id,
            requester_id=swap.requester_id,
            target_owner_id=swap.target_owner_id,
            status=swap.status.value,
            created_at=swap.created_at,
        )
        await self.db.execute(query)
        return swap

    async def get(self, swap_id: str) -> SwapRequest:
        record = await self.db.fetch_one(swap_requests.select().where(swap_requests.c.id == swap_id))
        if record is None:
            raise NotFound("Swap request not found")
        return SwapRequest.from_record(record)

    async def has_pending_for(self, slot_ids: Iterable[str]) -> bool:
        """True when a PENDING request references any of the given slots."""
        slot_ids = list(slot_ids)
        query = sqlalchemy.select(swap_requests.c.id).where(
            swap_requests.c.status == SwapStatus.PENDING.value,
            sqlalchemy.or_(
                swap_requests.c.offered_slot_id.in_(slot_ids),
                swap_requests.c.target_slot_id.in_(slot_ids),
            ),
        ).limit(1)
        return await self.db.fetch_one(query) is not None

    async def conditional_resolve(self, swap_id: str, new_status: SwapStatus) -> None:
        """Flip PENDING -> new_status; Conflict if the request is no longer PENDING."""
        query = (
            swap_requests.update()
            .where(swap_requests.c.id == swap_id, swap_requests.c.status == SwapStatus.PENDING.value)
            .values(status=new_status.value, resolved_at=datetime.now(timezone.utc))
            .returning(swap_requests.c.id)
        )
        if await self.db.fetch_one(query) is None:
            logger.warning(f"⚔️ Swap request {swap_id} was resolved concurrently")
            raise Conflict("Swap request already processed")

    async def iterate(self, requester_id: Optional[int] = None,
                      target_owner_id: Optional[int] = None) -> AsyncIterator[SwapRequest]:
        """
        Stream requests matching either filter. With both given, a request
        matches when it satisfies at least one of them.
        """
        conditions = []
        if requester_id is not None:
            conditions.append(swap_requests.c.requester_id == requester_id)
        if target_owner_id is not None:
            conditions.append(swap_requests.c.target_owner_id == target_owner_id)

        query = swap_requests.select()
        if conditions:
            query = query.where(sqlalchemy.or_(*conditions))
        async for record in self.db.iterate(query):
            yield SwapRequest.from_record(record)
