from fastapi import APIRouter

from hospflow.models.workflow import DietResolutionBody, MutationResult, PendencyBoard
from hospflow.services import pendency, patients
from hospflow.services.venous_access import hospital_now

router = APIRouter(prefix="/api/pendencies", tags=["pendencies"])


@router.get("", response_model=PendencyBoard)
async def pendency_board():
    """Active patients grouped into the Safety, Exams, Prescription and Admin buckets."""
    return await patients.pendency_board()


@router.post("/{patient_id}/safety", response_model=MutationResult)
async def resolve_safety(patient_id: str):
    return await patients.apply(patient_id, pendency.resolve_safety)


@router.post("/{patient_id}/diet", response_model=MutationResult)
async def resolve_diet(patient_id: str, body: DietResolutionBody | None = None):
    tags = body.tags if body else []
    return await patients.apply(patient_id, lambda p: pendency.resolve_diet(p, tags))


@router.post("/{patient_id}/prescription", response_model=MutationResult)
async def resolve_prescription(patient_id: str):
    return await patients.apply(patient_id, pendency.resolve_prescription)


@router.post("/{patient_id}/social-worker", response_model=MutationResult)
async def resolve_social_worker(patient_id: str):
    return await patients.apply(patient_id, pendency.resolve_social_worker)


@router.post("/{patient_id}/clear", response_model=MutationResult)
async def clear_pendency(patient_id: str):
    """Clear the open pendency, e.g. when exam results arrive."""
    return await patients.apply(patient_id, pendency.resolve_pendency)


@router.post("/{patient_id}/finalize-discharge", response_model=MutationResult)
async def finalize_discharge(patient_id: str):
    now = hospital_now()
    return await patients.apply(patient_id, lambda p: pendency.finalize_discharge(p, now), now)
