"""
FastAPI Application Entry Point.

Usage:
    koko openai --ip 0.0.0.0 --port 3000

    # or directly, configured from config/settings.yaml and KOKO_* variables
    uvicorn koko_tts.main:create_app --factory --port 3000
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool

from koko_tts import __version__
from koko_tts.api.dependencies import get_pool
from koko_tts.api.openai_compat import router as openai_router
from koko_tts.api.routes import router
from koko_tts.core.logging import configure_logging, get_logger, success

_LOG = get_logger("koko.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # load every instance before the first request
    pool = await run_in_threadpool(get_pool)
    success(_LOG, "server_ready", instances=len(pool), voices=len(pool.voices()))
    yield


def create_app() -> FastAPI:
    """Configure logging and build the application."""
    configure_logging()

    app = FastAPI(title="koko", version=__version__, lifespan=lifespan)
    app.include_router(router)           # /health, /metrics
    app.include_router(openai_router)    # /v1/audio/speech, /v1/audio/voices, /v1/models
    return app
