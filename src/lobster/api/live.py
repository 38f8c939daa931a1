"""API endpoints for the autonomous decision loop."""

import logging

from fastapi import APIRouter, Depends, Query

from lobster.api.schemas import (
    CycleResponse,
    DecisionBody,
    LiveStatusResponse,
    LowestTrait,
    RewriteResponse,
)
from lobster.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/live", tags=["live"])


@router.get("/status", response_model=LiveStatusResponse)
def get_status(runtime: Runtime = Depends(get_runtime)) -> LiveStatusResponse:
    """Summarize the subject's state as the decision loop sees it."""
    with runtime.lock:
        live = runtime.live.status()
    key, value = live.lowest
    return LiveStatusResponse.model_validate(
        {**vars(live), "lowest": LowestTrait(key=key, value=value)},
        from_attributes=True,
    )


@router.post("/evaluate", response_model=DecisionBody)
def evaluate(runtime: Runtime = Depends(get_runtime)) -> DecisionBody:
    """Decide without acting."""
    with runtime.lock:
        decision = runtime.live.evaluate()
    return DecisionBody.model_validate(decision)


@router.post("/execute", response_model=CycleResponse)
def execute(body: DecisionBody, runtime: Runtime = Depends(get_runtime)) -> CycleResponse:
    """Carry out a decision, typically one returned by evaluate."""
    with runtime.lock:
        result = runtime.live.execute(body.to_decision())
    return CycleResponse.model_validate(result)


@router.post("/cycle", response_model=list[CycleResponse])
def cycle(
    count: int = Query(default=1, ge=1, le=100, description="Number of evaluate+execute cycles"),
    runtime: Runtime = Depends(get_runtime),
) -> list[CycleResponse]:
    """Run one or more full decision cycles."""
    with runtime.lock:
        results = runtime.live.run_cycles(count)
    logger.info("Ran %d decision cycles", len(results))
    return [CycleResponse.model_validate(r) for r in results]


@router.post("/rewrite", response_model=RewriteResponse)
def rewrite(runtime: Runtime = Depends(get_runtime)) -> RewriteResponse:
    """Let the decision loop rewrite its own weights, subject to cooldown."""
    with runtime.lock:
        result = runtime.live.rewrite()
    return RewriteResponse.model_validate(result)
