from fastapi import APIRouter

from hospflow.models.patient import PatientView
from hospflow.models.workflow import FinalizeTransferBody, MutationResult, TransferRequestBody
from hospflow.services import patients, transfer
from hospflow.services.venous_access import hospital_now

router = APIRouter(prefix="/api/transfers", tags=["transfers"])


@router.get("", response_model=list[PatientView])
async def transfer_queue():
    """Patients waiting for a transfer to be finalized."""
    return await patients.transfer_queue()


@router.post("/{patient_id}/request", response_model=MutationResult)
async def request_transfer(patient_id: str, body: TransferRequestBody):
    return await patients.apply(
        patient_id, lambda p: transfer.request_transfer(p, body.sector, body.bed)
    )


@router.post("/{patient_id}/finalize", response_model=MutationResult)
async def finalize_transfer(patient_id: str, body: FinalizeTransferBody | None = None):
    """Seal the transfer. External transfers need the receiving facility in ``destination``."""
    now = hospital_now()
    destination = body.destination if body else None
    return await patients.apply(
        patient_id, lambda p: transfer.finalize_transfer(p, now, destination), now
    )


@router.post("/{patient_id}/cancel", response_model=MutationResult)
async def cancel_transfer(patient_id: str):
    return await patients.apply(patient_id, transfer.cancel_transfer)
