# resolution.py
import logging

from databases import Database

from slot_exchange.data_models import Decision, SlotStatus, SwapRequest, SwapStatus
from slot_exchange.errors import Conflict, InvalidRequest, NotFound, ServerFault, SwapError
from slot_exchange.slot_store import SlotStore
from slot_exchange.swap_store import SwapRequestStore

logger = logging.getLogger(__name__)


class ResolutionEngine:
    """Applies the target owner's accept/reject decision to a pending swap."""

    def __init__(self, db: Database, slot_store: SlotStore, swap_store: SwapRequestStore):
        self.db = db
        self.slot_store = slot_store
        self.swap_store = swap_store

    async def resolve_swap(self, responder_id: int, swap_request_id: str, decision: Decision) -> SwapRequest:
        """
        Accept or reject a PENDING swap request.

        Requests the responder cannot act on are reported as NotFound. On
        ACCEPT the two slots exchange owners and become BUSY; on REJECT they go
        back to SWAPPABLE. If a referenced slot has disappeared the whole
        transaction is rolled back, the request stays PENDING and a
        ServerFault is raised.
        """
        try:
            decision = Decision(decision)
        except ValueError:
            raise InvalidRequest(f"Invalid decision: {decision}")
        swap = await self.swap_store.get(swap_request_id)
        if swap.target_owner_id != responder_id:
            raise NotFound("Swap request not found")
        if swap.status != SwapStatus.PENDING:
            raise InvalidRequest("Swap request already processed")

        new_status = SwapStatus.ACCEPTED if decision == Decision.ACCEPT else SwapStatus.REJECTED
        try:
            async with self.db.transaction():
                # Re-verifies PENDING inside the transaction; only one resolution can commit.
                await self.swap_store.conditional_resolve(swap.id, new_status)
                if decision == Decision.ACCEPT:
                    await self._exchange_owners(swap)
                else:
                    await self._release_slots(swap)
        except Conflict:
            raise InvalidRequest("Swap request already processed")
        except NotFound as exc:
            logger.error(f"❌ Swap {swap.id} references a missing slot, left PENDING: {exc.reason}")
            raise ServerFault("A slot referenced by this swap request no longer exists")
        except SwapError:
            raise
        except Exception as exc:
            logger.exception(f"❌ Resolving swap {swap.id} failed")
            raise ServerFault("Swap request could not be resolved") from exc

        logger.info(f"✅ Swap {swap.id} {new_status.value.lower()} by user {responder_id}")
        return await self.swap_store.get(swap.id)

    async def _exchange_owners(self, swap: SwapRequest) -> None:
        offered = await self.slot_store.get(swap.offered_slot_id)
        target = await self.slot_store.get(swap.target_slot_id)
        for slot in (offered, target):
            if slot.status != SlotStatus.RESERVED:
                raise ServerFault(f"Slot {slot.id} is {slot.status.value}, expected RESERVED")
        await self.slot_store.transfer_ownership(offered.id, target.owner_id, SlotStatus.BUSY)
        await self.slot_store.transfer_ownership(target.id, offered.owner_id, SlotStatus.BUSY)

    async def _release_slots(self, swap: SwapRequest) -> None:
        for slot_id in swap.slot_ids:
            try:
                await self.slot_store.conditional_transition(slot_id, SlotStatus.RESERVED, SlotStatus.SWAPPABLE)
            except Conflict as exc:
                raise ServerFault(exc.reason)
