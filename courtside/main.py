"""Courtside FastAPI application.

Live basketball game ingestion, strategy signal evaluation and
historical backtesting.
"""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from courtside import __version__
from courtside.api.routes import backtest, games, health, signals
from courtside.config import get_settings
from courtside.services.state_store import StateConflictError

settings = get_settings()

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(
        "starting_courtside",
        version=__version__,
        state_backend=settings.state_backend,
    )
    yield
    logger.info("shutting_down_courtside")


# Create FastAPI application
app = FastAPI(
    title="Courtside",
    description="Live strategy signals and backtesting for basketball games",
    version=__version__,
    lifespan=lifespan,
)

# Include API routers
app.include_router(health.router)
app.include_router(games.router)
app.include_router(signals.router)
app.include_router(backtest.router)


@app.exception_handler(StateConflictError)
async def state_conflict_handler(request: Request, exc: StateConflictError):
    """Concurrent writers kept beating this request to the same key."""
    logger.error("state_conflict", path=request.url.path, key=exc.key)
    return JSONResponse(
        status_code=409,
        content={"detail": "Concurrent update conflict, retry the request"},
    )
