"""Read-only endpoints: the genome document, trait series, pulse analysis and journal."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from lobster.api.schemas import JournalResponse, PulseResponse, TraitHistoryResponse
from lobster.config import EngineSettings, get_settings
from lobster.engine.pulse import analyze, trait_history
from lobster.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/genome", tags=["genome"])
journal_router = APIRouter(prefix="/api/journal", tags=["journal"])


@router.get(
    "",
    responses={
        200: {"description": "Genome document"},
        404: {"description": "No genome document exists"},
    },
)
def get_genome(runtime: Runtime = Depends(get_runtime)) -> dict[str, Any]:
    """Return the full genome document as stored on disk."""
    with runtime.lock:
        genome = runtime.genome_store.load()
    return genome.to_document()


@router.get("/traits/history", response_model=list[TraitHistoryResponse])
def get_trait_history(runtime: Runtime = Depends(get_runtime)) -> list[TraitHistoryResponse]:
    """Return each trait's value series reconstructed from the mutation log."""
    with runtime.lock:
        genome = runtime.genome_store.load()
    return [TraitHistoryResponse.model_validate(s) for s in trait_history(genome)]


@router.get("/pulse", response_model=PulseResponse)
def get_pulse(runtime: Runtime = Depends(get_runtime)) -> PulseResponse:
    """Return per-trait velocity and status."""
    with runtime.lock:
        genome = runtime.genome_store.load()
    return PulseResponse.model_validate(analyze(genome))


@journal_router.get("/recent", response_model=JournalResponse)
def get_recent_journal(
    chars: int | None = Query(default=None, ge=100, description="Characters to return"),
    runtime: Runtime = Depends(get_runtime),
    settings: EngineSettings = Depends(get_settings),
) -> JournalResponse:
    """Return the tail of the journal, opening at a section heading.

    ``chars`` defaults to the configured ``recent_journal_chars``.
    """
    with runtime.lock:
        text = runtime.journal.recent(chars or settings.recent_journal_chars)
        decisions = runtime.journal.count_decisions()
        reflections = runtime.journal.count_reflections()
    return JournalResponse(text=text, decisions=decisions, reflections=reflections)
