"""FastAPI server exposing the engine over REST.

Provides:
- /api/genome: the genome document, trait series and pulse analysis
- /api/journal: the recent journal tail
- /api/encounters, /api/contact, /api/molt: the stimulus subsystems
- /api/live: the autonomous decision loop and self-rewrite
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from lobster import __version__
from lobster.api.actions import router as actions_router
from lobster.api.genome import journal_router
from lobster.api.genome import router as genome_router
from lobster.api.live import router as live_router
from lobster.logging_config import configure_logging
from lobster.store.genome_store import GenomeNotFoundError, GenomeStoreError
from lobster.store.journal import JournalError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager: configure logging on startup."""
    configure_logging()
    logger.info("Lobster server starting (version %s)", __version__)
    yield
    logger.info("Lobster server stopped")


app = FastAPI(
    title="Lobster",
    description="Autonomous subject simulation engine",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(genome_router)
app.include_router(journal_router)
app.include_router(actions_router)
app.include_router(live_router)


@app.exception_handler(GenomeNotFoundError)
async def genome_not_found(request: Request, exc: GenomeNotFoundError) -> JSONResponse:
    logger.warning("Genome not found for %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(GenomeStoreError)
async def genome_store_error(request: Request, exc: GenomeStoreError) -> JSONResponse:
    logger.error("Genome store failure for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Genome store failure: {exc}"},
    )


@app.exception_handler(JournalError)
async def journal_error(request: Request, exc: JournalError) -> JSONResponse:
    logger.error("Journal failure for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Journal failure: {exc}"},
    )


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
