# exchange.py
import logging

from databases import Database

from slot_exchange.data_models import SlotStatus, SwapRequest
from slot_exchange.errors import Conflict, Forbidden, InvalidRequest, NotFound, ServerFault, SwapError
from slot_exchange.slot_store import SlotStore
from slot_exchange.swap_store import SwapRequestStore

logger = logging.getLogger(__name__)


class ExchangeCoordinator:
    """Validates swap proposals and reserves both slots in one transaction."""

    def __init__(self, db: Database, slot_store: SlotStore, swap_store: SwapRequestStore):
        self.db = db
        self.slot_store = slot_store
        self.swap_store = swap_store

    async def propose_swap(self, requester_id: int, offered_slot_id: str, target_slot_id: str) -> SwapRequest:
        """
        Create a PENDING swap request for two SWAPPABLE slots and move both to
        RESERVED. Preconditions are checked in order and the first failure wins.
        Either all three writes commit or none do.
        """
        try:
            offered = await self.slot_store.get(offered_slot_id)
            target = await self.slot_store.get(target_slot_id)
        except NotFound:
            raise NotFound("Slot(s) not found")

        if offered.owner_id != requester_id:
            raise Forbidden("You do not own the offered slot")
        if target.owner_id == requester_id:
            raise InvalidRequest("You cannot request a swap with your own event")
        if offered.status != SlotStatus.SWAPPABLE or target.status != SlotStatus.SWAPPABLE:
            raise InvalidRequest("Slot is not available for swapping")
        if await self.swap_store.has_pending_for((offered.id, target.id)):
            raise InvalidRequest("Swap request already exists for one of these slots")

        try:
            async with self.db.transaction():
                # The conditional writes come first so the transaction holds the write lock from its first statement.
                await self.slot_store.conditional_transition(offered.id, SlotStatus.SWAPPABLE, SlotStatus.RESERVED)
                await self.slot_store.conditional_transition(target.id, SlotStatus.SWAPPABLE, SlotStatus.RESERVED)
                if await self.swap_store.has_pending_for((offered.id, target.id)):
                    raise InvalidRequest("Swap request already exists for one of these slots")
                swap = await self.swap_store.create(
                    offered_slot_id=offered.id,
                    target_slot_id=target.id,
                    requester_id=requester_id,
                    target_owner_id=target.owner_id,
                )
        except NotFound:
            # a slot vanished between validation and the write group
            raise Conflict("Slot is no longer available for swapping")
        except SwapError:
            raise
        except Exception as exc:
            logger.exception(f"❌ Swap proposal {offered.id} -> {target.id} failed")
            raise ServerFault("Swap request could not be created") from exc

        logger.info(
            f"🔁 Swap {swap.id} proposed: user {requester_id} offers {offered.id} for {target.id} (owner {target.owner_id})"
        )
        return swap
