import os
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# In-memory DB and no advisory provider for tests
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["LLM_PROVIDER"] = "auto"
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["DATABASE_URL"] = ""
os.environ["SEED_DEMO_PATIENTS"] = "false"

from hospflow.database import close_db, init_db
from hospflow.main import app
from hospflow.models.patient import Patient

BRT = timezone(timedelta(hours=-3))
NOW = datetime(2024, 1, 20, 10, 0, tzinfo=BRT)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_patient():
    """Build a corridor patient with sensible defaults; keyword arguments override fields."""

    def _make(**fields) -> Patient:
        data = {
            "id": "p1",
            "name": "Maria Silva",
            "medical_record": "123456",
            "age": 70,
            "corridor": "Corridor 1",
            "specialty": "Internal Medicine",
            "has_bracelet": True,
            "has_bed_identification": True,
            "created_at": NOW - timedelta(days=1),
        }
        data.update(fields)
        return Patient(**data)

    return _make


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import hospflow.database as db_mod

    if db_mod._db is not None:
        try:
            await db_mod._db.close()
        except Exception:
            pass
    db_mod._db = None

    # Override module-level config directly (avoids fragile importlib.reload)
    db_mod.DATABASE_PATH = ":memory:"
    db_mod.DATABASE_URL = ""
    db_mod.SEED_DEMO_PATIENTS = False

    await init_db()
    database = await db_mod.get_db()
    yield database
    await close_db()


@pytest.fixture
def client(db):
    """Provide a synchronous TestClient for HTTP and WebSocket tests."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(db):
    """Provide an async httpx client for async HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
