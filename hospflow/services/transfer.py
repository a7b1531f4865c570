"""Transfer state machine: Active -> Requested -> Finalized, with cancel back to Active.

Each transition is a pure function over ``Patient``. Attempting a transition
that would leave the record where it already is returns the record
unchanged, so callers can retry safely and ``transferred_at`` is never
overwritten.
"""

import logging
from datetime import datetime

from hospflow.errors import GuardViolation, ValidationError
from hospflow.models.patient import (
    AUTO_TRANSFER_STATUSES,
    Patient,
    PatientStatus,
    TransferPhase,
)

logger = logging.getLogger(__name__)


def is_auto_eligible(patient: Patient) -> bool:
    """Transfer statuses that go straight to finalize without a request."""
    return patient.status in AUTO_TRANSFER_STATUSES


def awaiting_finalize(patient: Patient) -> bool:
    if patient.transfer_phase == TransferPhase.REQUESTED:
        return True
    return patient.transfer_phase == TransferPhase.ACTIVE and is_auto_eligible(patient)


def request_transfer(patient: Patient, sector: str, bed: str) -> Patient:
    if patient.transfer_phase == TransferPhase.REQUESTED:
        return patient
    if patient.transfer_phase == TransferPhase.FINALIZED:
        raise GuardViolation("Patient has already been transferred", patient_id=patient.id)
    if is_auto_eligible(patient):
        raise GuardViolation(
            f"Status {patient.status.value} is finalized directly, no transfer request needed",
            patient_id=patient.id,
        )

    sector = (sector or "").strip().upper()
    bed = (bed or "").strip()
    if not sector or not bed:
        raise ValidationError("Destination sector and bed are required", patient_id=patient.id)

    logger.info("Transfer requested for %s to %s bed %s", patient.id, sector, bed)
    return patient.model_copy(update={
        "transfer_phase": TransferPhase.REQUESTED,
        "transfer_destination_sector": sector,
        "transfer_destination_bed": bed,
    })


def cancel_transfer(patient: Patient) -> Patient:
    """Withdraw a request. Destination fields stay for a later re-request."""
    if patient.transfer_phase == TransferPhase.ACTIVE:
        return patient
    if patient.transfer_phase == TransferPhase.FINALIZED:
        raise GuardViolation("A finalized transfer cannot be cancelled", patient_id=patient.id)
    logger.info("Transfer request cancelled for %s", patient.id)
    return patient.model_copy(update={"transfer_phase": TransferPhase.ACTIVE})


def _check_finalizable(patient: Patient) -> None:
    if not awaiting_finalize(patient):
        raise GuardViolation(
            "Transfer must be requested before it can be finalized",
            patient_id=patient.id,
        )


def finalize_external_transfer(patient: Patient, destination: str | None, now: datetime) -> Patient:
    """Seal a transfer to another facility.

    The receiving facility is usually only confirmed at departure, so it is
    captured here and replaces whatever bed was noted at request time.
    """
    if patient.transfer_phase == TransferPhase.FINALIZED:
        return patient
    _check_finalizable(patient)
    destination = (destination or "").strip().upper()
    if not destination:
        raise ValidationError("External transfer needs the receiving facility", patient_id=patient.id)

    logger.info("External transfer finalized for %s to %s", patient.id, destination)
    return patient.model_copy(update={
        "transfer_phase": TransferPhase.FINALIZED,
        "transferred_at": now,
        "transfer_destination_bed": destination,
    })


def finalize_transfer(patient: Patient, now: datetime, destination: str | None = None) -> Patient:
    if patient.transfer_phase == TransferPhase.FINALIZED:
        return patient
    if patient.status == PatientStatus.TRANSFER_EXTERNAL:
        return finalize_external_transfer(patient, destination, now)
    _check_finalizable(patient)

    logger.info("Internal transfer finalized for %s", patient.id)
    return patient.model_copy(update={
        "transfer_phase": TransferPhase.FINALIZED,
        "transferred_at": now,
    })
