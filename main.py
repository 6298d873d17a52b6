import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.assets.views import router as assets_router
from config import MODE, settings
from db import ConnectionFactory, init_db

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    connections = ConnectionFactory(settings.DATABASE_URL, echo=settings.DEBUG)
    if MODE in ("local", "test"):
        # Other environments are migrated with Alembic
        await init_db(connections.engine)
    app.state.connections = connections
    logger.info("asset inventory started (mode=%s)", MODE)
    yield
    await connections.dispose()


app = FastAPI(
    title="Asset Inventory API",
    description="API for managing datacenter assets, their placement, power chains and groups",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(assets_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health", tags=["system"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}
