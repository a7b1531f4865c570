import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hospflow.database import close_db, get_db, init_db
from hospflow.errors import register_exception_handlers
from hospflow.routers import advisory, patients, pendencies, search, transfers
from hospflow.services.llm import get_llm_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting HospFlow...")
    await init_db()
    logger.info("Database initialized")
    yield
    await close_db()
    logger.info("HospFlow shut down")


app = FastAPI(
    title="HospFlow",
    description="Patient flow for hospital overflow corridors",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(patients.router)
app.include_router(pendencies.router)
app.include_router(transfers.router)
app.include_router(advisory.router)
app.include_router(search.router)


@app.get("/health")
async def health():
    db = await get_db()
    return {
        "status": "ok",
        "database": db.engine,
        "advisory": get_llm_client().provider,
    }
