import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clientdesk.config import settings
from clientdesk.database import create_tables
from clientdesk.middleware.exceptions import register_exception_handlers
from clientdesk.routers import client_assets, comments, health, progress, uploads

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("clientdesk")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables in development; Alembic owns other environments."""
    if settings.environment == "development":
        await create_tables()
        logger.info("Development tables ensured")
    yield


app = FastAPI(
    title="ClientDesk",
    description="Client progress tracking: steps, package milestones and annotations",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(progress.router, prefix="/api", tags=["progress"])
app.include_router(comments.router, prefix="/api/progress", tags=["comments"])
app.include_router(client_assets.router, prefix="/api/clients", tags=["client-assets"])
app.include_router(uploads.router, prefix="/api/uploads", tags=["uploads"])
