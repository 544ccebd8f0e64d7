"""FastAPI application for the salon cycles backend."""

import logging
import os
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .migrations import run_database_migrations
from .routers import (
    admin_router,
    auth_router,
    cycles_router,
    products_router,
    services_router,
)

LOGGER = logging.getLogger(__name__)

ALLOWED_ORIGINS_ENV = "BACKEND_ALLOWED_ORIGINS"
AUTO_MIGRATE_ENV = "AUTO_MIGRATE"
LOCALHOST_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1|0\.0\.0\.0)(:\d+)?$"

# Front-end dev servers (Vite and CRA).
DEFAULT_ALLOWED_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


def _split_raw_origins(raw_value: str) -> list[str]:
    """Split a raw origin string using commas or whitespace as separators."""

    return [origin for origin in re.split(r"[\s,]+", raw_value) if origin]


def _resolve_allowed_origins() -> list[str]:
    configured = {
        origin.rstrip("/")
        for origin in _split_raw_origins(os.getenv(ALLOWED_ORIGINS_ENV, ""))
        if origin.rstrip("/")
    }
    return sorted(configured or DEFAULT_ALLOWED_ORIGINS)


def ensure_database_is_ready() -> None:
    """Apply pending schema migrations unless ``AUTO_MIGRATE`` is off."""

    raw = os.getenv(AUTO_MIGRATE_ENV)
    if raw is not None and raw.strip().lower() not in {"1", "true", "yes", "on"}:
        LOGGER.info("Automatic schema migrations disabled via %s", AUTO_MIGRATE_ENV)
        return
    LOGGER.info("Ensuring database schema is up to date before serving requests")
    run_database_migrations()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_database_is_ready()
    yield


app = FastAPI(title="Salon Cycles API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_resolve_allowed_origins(),
    allow_origin_regex=LOCALHOST_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(cycles_router, prefix="/cycles", tags=["cycles"])
app.include_router(services_router, prefix="/services", tags=["services"])
app.include_router(products_router, prefix="/products", tags=["products"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])


@app.get("/", tags=["health"])
def read_root() -> dict[str, str]:
    """Return a simple health check response."""
    return {"status": "ok"}
