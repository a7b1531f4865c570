from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import AsyncIterator, Iterable, Sequence
from urllib.parse import urlparse

import aiosqlite

from hospflow.config import DATABASE_MAX_CONNECTIONS, DATABASE_PATH, DATABASE_URL, SEED_DEMO_PATIENTS

try:  # Optional: only required when DATABASE_URL is set (Postgres)
    import asyncpg  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    asyncpg = None

logger = logging.getLogger(__name__)


def _translate_query(query: str) -> str:
    # Convert SQLite-style ? placeholders to asyncpg-style $1, $2, ...
    if "$1" in query:
        return query
    idx = 1
    out = []
    for ch in query:
        if ch == "?":
            out.append(f"${idx}")
            idx += 1
        else:
            out.append(ch)
    return "".join(out)


class DatabaseAdapter:
    engine: str

    async def execute(self, query: str, params: Sequence | None = None) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_one(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def fetch_all(self, query: str, params: Sequence | None = None):  # pragma: no cover - interface
        raise NotImplementedError

    async def commit(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def executescript(self, script: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def transaction(self):  # pragma: no cover - interface
        """Async context manager: every write inside commits together or not at all."""
        raise NotImplementedError


@dataclass
class SQLiteAdapter(DatabaseAdapter):
    conn: aiosqlite.Connection
    engine: str = "sqlite"
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        await self.conn.execute(query, params or ())

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        await self.conn.executemany(query, seq_params)

    async def fetch_one(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchone()

    async def fetch_all(self, query: str, params: Sequence | None = None):
        cursor = await self.conn.execute(query, params or ())
        return await cursor.fetchall()

    async def commit(self) -> None:
        await self.conn.commit()

    async def close(self) -> None:
        await self.conn.close()

    async def executescript(self, script: str) -> None:
        await self.conn.executescript(script)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SQLiteAdapter]:
        # One shared connection: writers take turns so a commit never flushes another writer's half-done work.
        async with self._lock:
            try:
                yield self
            except BaseException:
                await self.conn.rollback()
                raise
            else:
                await self.conn.commit()


@dataclass
class _PostgresConnection:
    """A single pooled connection held for the duration of a transaction."""

    conn: "asyncpg.Connection"  # type: ignore[name-defined]

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        await self.conn.execute(_translate_query(query), *(params or ()))

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        await self.conn.executemany(_translate_query(query), seq_params)

    async def fetch_one(self, query: str, params: Sequence | None = None):
        return await self.conn.fetchrow(_translate_query(query), *(params or ()))

    async def fetch_all(self, query: str, params: Sequence | None = None):
        return await self.conn.fetch(_translate_query(query), *(params or ()))


@dataclass
class PostgresAdapter(DatabaseAdapter):
    pool: "asyncpg.Pool"  # type: ignore[name-defined]
    engine: str = "postgres"

    async def execute(self, query: str, params: Sequence | None = None) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(_translate_query(query), *(params or ()))

    async def executemany(self, query: str, seq_params: Iterable[Sequence]) -> None:
        async with self.pool.acquire() as conn:
            await conn.executemany(_translate_query(query), seq_params)

    async def fetch_one(self, query: str, params: Sequence | None = None):
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(_translate_query(query), *(params or ()))

    async def fetch_all(self, query: str, params: Sequence | None = None):
        async with self.pool.acquire() as conn:
            return await conn.fetch(_translate_query(query), *(params or ()))

    async def commit(self) -> None:
        # asyncpg autocommits per statement unless an explicit transaction is used.
        return

    async def close(self) -> None:
        await self.pool.close()

    async def executescript(self, script: str) -> None:
        # Not supported for Postgres; callers should split statements.
        raise NotImplementedError

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[_PostgresConnection]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield _PostgresConnection(conn)


_db: DatabaseAdapter | None = None


async def get_db() -> DatabaseAdapter:
    global _db
    if _db is None:
        if DATABASE_URL:
            if DATABASE_URL.startswith("sqlite"):
                sqlite_path = _sqlite_path_from_url(DATABASE_URL) or DATABASE_PATH
                conn = await aiosqlite.connect(sqlite_path)
                conn.row_factory = aiosqlite.Row
                _db = SQLiteAdapter(conn)
                logger.info("Connected to SQLite database at %s", sqlite_path)
            else:
                if asyncpg is None:
                    raise RuntimeError(
                        "DATABASE_URL is set but asyncpg is not installed. "
                        "Install asyncpg or unset DATABASE_URL."
                    )
                pool = await asyncpg.create_pool(
                    dsn=DATABASE_URL,
                    min_size=1,
                    max_size=DATABASE_MAX_CONNECTIONS,
                )
                _db = PostgresAdapter(pool)
                logger.info("Connected to Postgres database")
        else:
            conn = await aiosqlite.connect(DATABASE_PATH)
            conn.row_factory = aiosqlite.Row
            _db = SQLiteAdapter(conn)
            logger.info("Connected to SQLite database at %s", DATABASE_PATH)
    return _db


def _sqlite_path_from_url(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path or ""
    if not path or path == "/":
        return ""
    # sqlite:////absolute/path.db -> keep absolute path
    if url.startswith("sqlite:////"):
        return path
    # sqlite:///relative.db -> strip leading slash
    if path.startswith("/"):
        return path[1:]
    return path


SQLITE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        data TEXT NOT NULL
    );
"""

POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        data JSONB NOT NULL
    );
    """,
]


async def init_db() -> None:
    db = await get_db()

    if db.engine == "sqlite":
        await db.executescript(SQLITE_SCHEMA)
    else:
        for stmt in POSTGRES_SCHEMA:
            await db.execute(stmt)

    await db.commit()

    if SEED_DEMO_PATIENTS:
        await _seed_demo_patients(db)


async def close_db() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None


async def _seed_demo_patients(db: DatabaseAdapter) -> None:
    """Seed a few corridor patients for UI previews."""
    from hospflow.models.patient import Patient, PatientStatus, Pendency, Situation
    from hospflow.services.patient_store import to_document

    now = datetime.now(UTC)
    demo = [
        Patient(
            id="demo-stretcher",
            name="Joana Almeida",
            medical_record="100231",
            sex="Female",
            age=78,
            corridor="Corridor 1 | Main",
            specialty="General Surgery",
            situation=Situation.STRETCHER,
            pendencies=Pendency.AWAITING_CT_SCAN,
            diagnosis="Acute abdomen under investigation",
            mobility="Bedridden",
            venous_access="MSE " + (now - timedelta(days=5)).strftime("%d/%m"),
            has_bracelet=True,
            has_bed_identification=False,
            created_at=now - timedelta(hours=20),
            created_by="seed",
        ),
        Patient(
            id="demo-chair",
            name="Carlos Pereira",
            medical_record="100874",
            sex="Male",
            age=54,
            corridor="Corridor 2 | Annex",
            specialty="Internal Medicine",
            situation=Situation.CHAIR,
            pendencies=Pendency.NO_MEDICAL_PRESCRIPTION,
            diagnosis="Community-acquired pneumonia",
            mobility="Walks",
            venous_access="MSD " + now.strftime("%d/%m"),
            has_bracelet=False,
            has_bed_identification=False,
            created_at=now - timedelta(hours=6),
            created_by="seed",
        ),
        Patient(
            id="demo-discharge",
            name="Rita Souza",
            medical_record="099512",
            sex="Female",
            age=66,
            corridor="Corridor 1 | Main",
            specialty="Orthopedics",
            status=PatientStatus.DISCHARGED,
            pendencies=Pendency.AWAITING_SOCIAL_WORKER,
            diagnosis="Femur fracture, post-op",
            mobility="Assisted",
            has_bracelet=True,
            has_bed_identification=True,
            created_at=now - timedelta(days=2),
            created_by="seed",
        ),
    ]

    existing_rows = await db.fetch_all(
        "SELECT id FROM patients WHERE id IN ('demo-stretcher', 'demo-chair', 'demo-discharge')"
    )
    existing = {row["id"] for row in existing_rows}
    rows = [(p.id, to_document(p)) for p in demo if p.id not in existing]
    if not rows:
        return

    async with db.transaction() as tx:
        await tx.executemany("INSERT INTO patients (id, data) VALUES (?, ?)", rows)
    logger.info("Seeded %d demo patients", len(rows))
