from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import schemas, settings
from .errors import JournalError, NotAuthenticated, RateLimited
from .routers import comments, entries, search, stats, system, users

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    return cfg


def run_migrations() -> None:
    logger.info("Running Alembic migrations...")
    try:
        command.upgrade(_alembic_config(), "head")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise
    logger.info("run_migrations: Completed successfully.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations()
    else:
        logger.info("RUN_MIGRATIONS_ON_STARTUP is off, skipping migrations.")
    logger.info("OldJournal API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="OldJournal API",
    version="1.0.0",
    description="Journals, friends lists and threaded comments",
    lifespan=lifespan,
)

# In production, set CORS_ORIGINS environment variable to comma-separated list of allowed origins
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
if cors_origins_str == "*":
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )
cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight requests for 10 minutes
)


@app.exception_handler(JournalError)
async def journal_error_handler(request: Request, exc: JournalError) -> JSONResponse:
    """Render service errors as RFC 7807 problem details."""
    problem = schemas.Problem(
        title=exc.title,
        status=exc.status_code,
        detail=exc.detail,
        errors=getattr(exc, "errors", None) or None,
    )

    headers: dict[str, str] = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, NotAuthenticated):
        headers["WWW-Authenticate"] = "Bearer"

    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(exclude_none=True),
        headers=headers,
        media_type="application/problem+json",
    )


app.include_router(system.router)
app.include_router(users.router)
app.include_router(entries.router)
app.include_router(comments.router)
app.include_router(search.router)
app.include_router(stats.router)


# Serve uploaded files (avatars) from local storage
storage_path = Path(settings.STORAGE_ROOT)
storage_path.mkdir(parents=True, exist_ok=True)
app.mount(settings.STORAGE_URL_PREFIX, StaticFiles(directory=str(storage_path)), name="storage")
logger.info(f"Mounted storage at {settings.STORAGE_URL_PREFIX} from {storage_path}")
