# backend/aerolms/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import session_scope
from .apps.training.catalog import synchronize_catalog
from .apps.training.router import router as training_router

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ]


def _sync_on_startup_enabled() -> bool:
    return os.getenv("TRAINING_SYNC_ON_STARTUP", "1").strip().lower() in {"1", "true", "yes", "on"}


def run_startup_sync() -> None:
    """Synchronize the training catalog once; failures are logged, never raised."""
    try:
        with session_scope() as db:
            synchronize_catalog(db)
    except Exception:
        logger.exception("Training catalog sync failed at startup")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if _sync_on_startup_enabled():
        run_startup_sync()
    yield


app = FastAPI(title="AeroLMS API", version="1.0.0", lifespan=lifespan)
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "AeroLMS backend is running"}

@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}

app.include_router(training_router)
