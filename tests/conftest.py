import os
import tempfile
from datetime import datetime, timedelta, timezone

# Point the app at a throwaway database before any slot_exchange import
_tmpdir = tempfile.mkdtemp(prefix="slot_exchange_")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_tmpdir}/api.db")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from databases import Database
from sqlalchemy import create_engine

from slot_exchange.data_models import SlotStatus
from slot_exchange.database import metadata
from slot_exchange.exchange import ExchangeCoordinator
from slot_exchange.queries import RequestQueryService
from slot_exchange.resolution import ResolutionEngine
from slot_exchange.slot_store import SlotStore
from slot_exchange.slots import SlotService
from slot_exchange.swap_store import SwapRequestStore

U1, U2, U3 = 1, 2, 3


@pytest.fixture
async def db(tmp_path):
    url = f"sqlite:///{tmp_path / 'engine.db'}"
    sync_engine = create_engine(url)
    metadata.create_all(bind=sync_engine)
    sync_engine.dispose()

    database = Database(url)
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture
def slot_store(db):
    return SlotStore(db)


@pytest.fixture
def swap_store(db):
    return SwapRequestStore(db)


@pytest.fixture
def coordinator(db, slot_store, swap_store):
    return ExchangeCoordinator(db, slot_store, swap_store)


@pytest.fixture
def resolver(db, slot_store, swap_store):
    return ResolutionEngine(db, slot_store, swap_store)


@pytest.fixture
def queries(swap_store):
    return RequestQueryService(swap_store)


@pytest.fixture
def slot_service(slot_store):
    return SlotService(slot_store)


@pytest.fixture
def make_slot(slot_store):
    async def _make(owner_id, status=SlotStatus.SWAPPABLE, title="Meeting", hours_ahead=24):
        start = datetime.now(timezone.utc) + timedelta(hours=hours_ahead)
        return await slot_store.create(owner_id, title, start, start + timedelta(hours=1), status)
    return _make
