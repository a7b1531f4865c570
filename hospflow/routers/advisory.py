from fastapi import APIRouter

from hospflow.models.advisory import (
    AdvisoryNarrative,
    HandoverRequest,
    PrioritizationResult,
    PrioritizeRequest,
)
from hospflow.models.workflow import CensusReport
from hospflow.services import advisory, patients
from hospflow.services.venous_access import hospital_now

router = APIRouter(prefix="/api", tags=["advisory"])


@router.get("/census", response_model=CensusReport)
async def census():
    """Occupancy indicators for the active corridor population."""
    return await patients.census_report()


@router.post("/advisory/prioritize", response_model=PrioritizationResult)
async def prioritize(body: PrioritizeRequest | None = None):
    """Rank patients waiting for a bed by advisory score.

    Degrades to the unranked list when the advisory service is unavailable,
    and reports ``stale`` when the patient set changed while it was running.
    """
    situation = body.situation if body else None
    return await advisory.prioritize(lambda: patients.load_eligible(situation), hospital_now())


@router.post("/advisory/handover", response_model=AdvisoryNarrative)
async def shift_handover(body: HandoverRequest):
    return await advisory.shift_handover(body.corridor, await patients.load_active())


@router.get("/advisory/unit-summary", response_model=AdvisoryNarrative)
async def unit_summary():
    return await advisory.unit_summary(await patients.census_report())
