from fastapi import APIRouter, status

from hospflow.models.patient import PatientCreate, PatientUpdate, PatientView
from hospflow.models.workflow import BulkRequest, BulkResult, MutationResult, RetentionGroup
from hospflow.services import bulk, patients
from hospflow.services.projection import View

router = APIRouter(prefix="/api/patients", tags=["patients"])


@router.post("", response_model=PatientView, status_code=status.HTTP_201_CREATED)
async def admit_patient(body: PatientCreate):
    """Admit a patient to an overflow corridor."""
    return await patients.admit_patient(body)


@router.get("", response_model=list[PatientView])
async def list_patients(view: View = View.ACTIVE, q: str = "", specialty: str | None = None):
    """List patients in one view, filtered by name/record and specialty, sorted by name."""
    return await patients.list_patients(view, q, specialty)


@router.post("/bulk-discharge", response_model=BulkResult)
async def bulk_discharge(body: BulkRequest):
    """Discharge and finalize every selected patient in one transaction."""
    return await bulk.bulk_discharge(body.ids)


@router.post("/bulk-delete", response_model=BulkResult)
async def bulk_delete(body: BulkRequest):
    """Permanently remove every selected record in one transaction."""
    return await bulk.bulk_delete(body.ids)


@router.get("/retention", response_model=list[RetentionGroup])
async def retention():
    """Record ids grouped by admission month, for manual cleanup."""
    return await patients.retention_report()


@router.get("/{patient_id}", response_model=PatientView)
async def get_patient(patient_id: str):
    return await patients.read_patient(patient_id)


@router.patch("/{patient_id}", response_model=MutationResult)
async def update_patient(patient_id: str, body: PatientUpdate):
    return await patients.update_patient(patient_id, body)


@router.delete("/{patient_id}", response_model=MutationResult)
async def delete_patient(patient_id: str):
    return await patients.delete_patient(patient_id)
