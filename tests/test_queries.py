import pytest

from slot_exchange.data_models import Decision, Direction
from conftest import U1, U2, U3


@pytest.fixture
async def requests(coordinator, resolver, make_slot):
    # U1 -> U2 (pending), U3 -> U1 (rejected)
    a = await coordinator.propose_swap(U1, (await make_slot(U1)).id, (await make_slot(U2)).id)
    b = await coordinator.propose_swap(U3, (await make_slot(U3)).id, (await make_slot(U1)).id)
    await resolver.resolve_swap(U1, b.id, Decision.REJECT)
    return a, b


async def _ids(iterator):
    return {swap.id async for swap in iterator}


async def test_sent(queries, requests):
    sent, _ = requests
    assert await _ids(queries.list_requests(U1, Direction.SENT)) == {sent.id}


async def test_received(queries, requests):
    _, received = requests
    assert await _ids(queries.list_requests(U1, Direction.RECEIVED)) == {received.id}


async def test_all_is_the_default(queries, requests):
    assert await _ids(queries.list_requests(U1)) == {r.id for r in requests}


async def test_direction_accepts_strings(queries, requests):
    sent, _ = requests
    assert await _ids(queries.list_requests(U1, "SENT")) == {sent.id}


async def test_uninvolved_user_sees_nothing(queries, requests):
    assert await _ids(queries.list_requests(99)) == set()
    assert await _ids(queries.list_requests(U2, Direction.SENT)) == set()
