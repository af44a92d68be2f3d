"""
hoodkeeper.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn hoodkeeper.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from hoodkeeper.api.deps import get_engine  # noqa: E402
from hoodkeeper.api.routes.districts import router as districts_router  # noqa: E402
from hoodkeeper.api.routes.sync import router as sync_router  # noqa: E402
from hoodkeeper.errors import (  # noqa: E402
    ConfigurationError,
    HoodkeeperError,
    UpstreamError,
)

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine."""
    engine = get_engine()
    logger.info("Hoodkeeper API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Hoodkeeper API shutting down")


app = FastAPI(
    title="Hoodkeeper API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HoodkeeperError)
async def hoodkeeper_error_handler(request: Request, exc: HoodkeeperError):
    if isinstance(exc, UpstreamError):
        status_code = 502
    else:
        status_code = 500
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error on %s: %s", request.url.path, exc.message)
    return JSONResponse(exc.to_dict(), status_code=status_code)


app.include_router(sync_router, prefix="/api")
app.include_router(districts_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
