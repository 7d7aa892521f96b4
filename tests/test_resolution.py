import asyncio

import pytest

from slot_exchange.data_models import Decision, SlotStatus, SwapStatus
from slot_exchange.errors import InvalidRequest, NotFound, ServerFault
from slot_exchange.models import slots
from conftest import U1, U2, U3


@pytest.fixture
async def proposal(coordinator, make_slot):
    e1 = await make_slot(U1, title="Alice Meeting")
    e2 = await make_slot(U2, title="Bob Meeting", hours_ahead=48)
    swap = await coordinator.propose_swap(U1, e1.id, e2.id)
    return e1, e2, swap


async def test_accept_exchanges_owners(resolver, slot_store, proposal):
    e1, e2, swap = proposal

    resolved = await resolver.resolve_swap(U2, swap.id, Decision.ACCEPT)

    assert resolved.status == SwapStatus.ACCEPTED
    assert resolved.resolved_at is not None
    first, second = await slot_store.get(e1.id), await slot_store.get(e2.id)
    assert first.owner_id == U2
    assert second.owner_id == U1
    assert first.status == SlotStatus.BUSY
    assert second.status == SlotStatus.BUSY


async def test_reject_restores_availability(resolver, slot_store, proposal):
    e1, e2, swap = proposal

    resolved = await resolver.resolve_swap(U2, swap.id, Decision.REJECT)

    assert resolved.status == SwapStatus.REJECTED
    first, second = await slot_store.get(e1.id), await slot_store.get(e2.id)
    assert (first.owner_id, second.owner_id) == (U1, U2)
    assert first.status == SlotStatus.SWAPPABLE
    assert second.status == SlotStatus.SWAPPABLE


async def test_decision_accepts_plain_strings(resolver, proposal):
    _, _, swap = proposal
    resolved = await resolver.resolve_swap(U2, swap.id, "REJECT")
    assert resolved.status == SwapStatus.REJECTED


async def test_unknown_decision_is_invalid(resolver, proposal):
    _, _, swap = proposal
    with pytest.raises(InvalidRequest):
        await resolver.resolve_swap(U2, swap.id, "MAYBE")


async def test_unknown_request_is_not_found(resolver):
    with pytest.raises(NotFound):
        await resolver.resolve_swap(U2, "nope", Decision.ACCEPT)


@pytest.mark.parametrize("outsider", [U1, U3])
async def test_only_target_owner_can_see_request(resolver, swap_store, proposal, outsider):
    _, _, swap = proposal
    with pytest.raises(NotFound):
        await resolver.resolve_swap(outsider, swap.id, Decision.ACCEPT)
    assert (await swap_store.get(swap.id)).status == SwapStatus.PENDING


@pytest.mark.parametrize("first", [Decision.ACCEPT, Decision.REJECT])
@pytest.mark.parametrize("second", [Decision.ACCEPT, Decision.REJECT])
async def test_resolution_is_terminal(resolver, proposal, first, second):
    _, _, swap = proposal
    await resolver.resolve_swap(U2, swap.id, first)
    with pytest.raises(InvalidRequest, match="already processed"):
        await resolver.resolve_swap(U2, swap.id, second)


async def test_concurrent_resolutions_only_one_commits(resolver, slot_store, swap_store, proposal):
    e1, e2, swap = proposal

    results = await asyncio.gather(
        resolver.resolve_swap(U2, swap.id, Decision.ACCEPT),
        resolver.resolve_swap(U2, swap.id, Decision.REJECT),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidRequest)

    final = await swap_store.get(swap.id)
    first, second = await slot_store.get(e1.id), await slot_store.get(e2.id)
    if final.status == SwapStatus.ACCEPTED:
        assert (first.owner_id, second.owner_id) == (U2, U1)
        assert first.status == second.status == SlotStatus.BUSY
    else:
        assert (first.owner_id, second.owner_id) == (U1, U2)
        assert first.status == second.status == SlotStatus.SWAPPABLE


async def test_accept_with_deleted_slot_keeps_request_pending(resolver, slot_store, swap_store, proposal):
    e1, e2, swap = proposal
    await slot_store.delete(e1.id)

    with pytest.raises(ServerFault):
        await resolver.resolve_swap(U2, swap.id, Decision.ACCEPT)

    assert (await swap_store.get(swap.id)).status == SwapStatus.PENDING
    untouched = await slot_store.get(e2.id)
    assert untouched.owner_id == U2
    assert untouched.status == SlotStatus.RESERVED


async def test_reject_with_deleted_slot_keeps_request_pending(resolver, slot_store, swap_store, proposal):
    e1, e2, swap = proposal
    await slot_store.delete(e2.id)

    with pytest.raises(ServerFault):
        await resolver.resolve_swap(U2, swap.id, Decision.REJECT)

    assert (await swap_store.get(swap.id)).status == SwapStatus.PENDING
    assert (await slot_store.get(e1.id)).status == SlotStatus.RESERVED


async def test_accept_with_unreserved_slot_keeps_request_pending(db, resolver, slot_store, swap_store, proposal):
    e1, e2, swap = proposal
    await db.execute(slots.update().where(slots.c.id == e2.id).values(status=SlotStatus.BUSY.value))

    with pytest.raises(ServerFault):
        await resolver.resolve_swap(U2, swap.id, Decision.ACCEPT)

    assert (await swap_store.get(swap.id)).status == SwapStatus.PENDING
    first, second = await slot_store.get(e1.id), await slot_store.get(e2.id)
    assert (first.owner_id, second.owner_id) == (U1, U2)
    assert first.status == SlotStatus.RESERVED
    assert second.status == SlotStatus.BUSY
