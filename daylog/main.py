"""daylog FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from daylog import config
from daylog.observability import initialize as initialize_observability, shutdown as shutdown_observability
from daylog.routers.log import log_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("daylog")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("daylog starting up")
    initialize_observability(app)
    yield
    logger.info("daylog shutting down")
    shutdown_observability(app)


app = FastAPI(
    title="daylog API",
    description="Parse plain-text day logs into time-tracking sessions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(log_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}
