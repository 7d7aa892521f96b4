# queries.py
from typing import AsyncIterator

from slot_exchange.data_models import Direction, SwapRequest
from slot_exchange.swap_store import SwapRequestStore


class RequestQueryService:
    """Read-only views over a user's sent and received swap requests."""

    def __init__(self, swap_store: SwapRequestStore):
        self.swap_store = swap_store

    def list_requests(self, user_id: int, direction: Direction = Direction.ALL) -> AsyncIterator[SwapRequest]:
        direction = Direction(direction)
        if direction == Direction.SENT:
            return self.swap_store.iterate(requester_id=user_id)
        if direction == Direction.RECEIVED:
            return self.swap_store.iterate(target_owner_id=user_id)
        return self.swap_store.iterate(requester_id=user_id, target_owner_id=user_id)
