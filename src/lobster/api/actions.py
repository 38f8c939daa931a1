"""API endpoints for the stimulus subsystems: encounters, contact and molt.

Each POST is a full load -> mutate -> save operation on the genome, held
under the runtime lock.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from lobster.api.schemas import (
    ContactResponse,
    ContactStatusResponse,
    EncounterResponse,
    MoltReadinessResponse,
    MoltResponse,
    SpeakRequest,
    SpeakResponse,
)
from lobster.engine.encounter import EncounterEngine, UnknownEncounterType
from lobster.engine.molt import MoltNotReady
from lobster.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["actions"])


@router.get("/encounters", response_model=list[str])
def list_encounters() -> list[str]:
    """List the encounter variants."""
    return [t.value for t in EncounterEngine.types()]


@router.post(
    "/encounters/{encounter_type}",
    response_model=EncounterResponse,
    responses={
        200: {"description": "Encounter run"},
        400: {"description": "Unknown encounter type"},
        404: {"description": "No genome document exists"},
    },
)
def run_encounter(encounter_type: str, runtime: Runtime = Depends(get_runtime)) -> EncounterResponse:
    """Run one encounter against the subject.

    Raises:
        HTTPException: 400 if the encounter type is unknown.
    """
    try:
        with runtime.lock:
            result = runtime.encounters.run(encounter_type)
    except UnknownEncounterType as e:
        logger.warning("Rejected encounter: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return EncounterResponse.model_validate(result)


@router.get("/contact", response_model=ContactStatusResponse)
def get_contact(runtime: Runtime = Depends(get_runtime)) -> ContactStatusResponse:
    with runtime.lock:
        return ContactStatusResponse.model_validate(runtime.contact.status())


@router.post("/contact/attempt", response_model=ContactResponse)
def attempt_contact(runtime: Runtime = Depends(get_runtime)) -> ContactResponse:
    """Attempt contact at the current depth."""
    with runtime.lock:
        result = runtime.contact.attempt()
    return ContactResponse.model_validate(result)


@router.post(
    "/contact/speak",
    response_model=SpeakResponse,
    responses={422: {"description": "Empty message"}},
)
def speak(request: SpeakRequest, runtime: Runtime = Depends(get_runtime)) -> SpeakResponse:
    """Deliver a free-text message from the external party."""
    with runtime.lock:
        result = runtime.contact.speak(request.message)
    return SpeakResponse.model_validate(result)


@router.get("/molt", response_model=MoltReadinessResponse)
def get_molt_readiness(runtime: Runtime = Depends(get_runtime)) -> MoltReadinessResponse:
    with runtime.lock:
        return MoltReadinessResponse.model_validate(runtime.molt.check_readiness())


@router.post(
    "/molt",
    response_model=MoltResponse,
    responses={
        200: {"description": "Molt performed"},
        409: {"description": "Subject is not ready to molt"},
    },
)
def perform_molt(runtime: Runtime = Depends(get_runtime)) -> MoltResponse:
    """Molt the subject.

    Raises:
        HTTPException: 409 with the failing readiness reason.
    """
    try:
        with runtime.lock:
            result = runtime.molt.perform()
    except MoltNotReady as e:
        logger.info("Molt refused: %s", e.reason)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.reason) from e
    return MoltResponse.model_validate(result)
