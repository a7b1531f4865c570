"""Pendency buckets and the actions that resolve them.

A patient can sit in several buckets at once: a missing bracelet and a
missing prescription are two separate blockers even though ``pendencies``
holds a single value. Every resolution returns a new ``Patient`` and never
touches the store.
"""

import logging
from datetime import datetime
from typing import Iterable

from hospflow.errors import GuardViolation
from hospflow.models.patient import Patient, PatientStatus, Pendency, TransferPhase
from hospflow.models.workflow import AdminState, Bucket

logger = logging.getLogger(__name__)

DEFAULT_DIET = "Free"

EXAM_PENDENCIES = frozenset({
    Pendency.AWAITING_LAB_EXAM,
    Pendency.AWAITING_CT_SCAN,
    Pendency.AWAITING_XRAY,
    Pendency.AWAITING_ULTRASOUND,
    Pendency.EXAMS_DONE_AWAITING_RESULT,
})

PRESCRIPTION_PENDENCIES = frozenset({
    Pendency.NO_MEDICAL_PRESCRIPTION,
    Pendency.NO_DIET,
})


def buckets_for(patient: Patient) -> set[Bucket]:
    buckets: set[Bucket] = set()
    if not patient.has_bracelet or not patient.has_bed_identification:
        buckets.add(Bucket.SAFETY)
    if patient.pendencies in EXAM_PENDENCIES:
        buckets.add(Bucket.EXAMS)
    if patient.pendencies in PRESCRIPTION_PENDENCIES:
        buckets.add(Bucket.PRESCRIPTION)
    if patient.pendencies == Pendency.AWAITING_SOCIAL_WORKER or patient.status == PatientStatus.DISCHARGED:
        buckets.add(Bucket.ADMIN)
    return buckets


def has_open_pendency(patient: Patient) -> bool:
    return (
        patient.pendencies != Pendency.NONE
        or not patient.has_bracelet
        or not patient.has_bed_identification
    )


def admin_state(patient: Patient) -> AdminState | None:
    """Tell apart the Admin-bucket cases; None outside that bucket."""
    awaiting_social = patient.pendencies == Pendency.AWAITING_SOCIAL_WORKER
    if patient.status == PatientStatus.DISCHARGED:
        if awaiting_social:
            return AdminState.DISCHARGED_AWAITING_SOCIAL_WORKER
        return AdminState.READY_TO_FINALIZE
    if awaiting_social:
        return AdminState.AWAITING_SOCIAL_WORKER
    return None


def classify(patients: Iterable[Patient]) -> dict[Bucket, list[Patient]]:
    """Group the active patients by bucket, preserving input order."""
    board: dict[Bucket, list[Patient]] = {bucket: [] for bucket in Bucket}
    for patient in patients:
        if patient.is_transferred:
            continue
        for bucket in buckets_for(patient):
            board[bucket].append(patient)
    return board


def _require_active(patient: Patient, action: str) -> None:
    if patient.transfer_phase == TransferPhase.FINALIZED:
        raise GuardViolation(
            f"Cannot {action}: patient already left the corridor",
            patient_id=patient.id,
        )


def resolve_safety(patient: Patient) -> Patient:
    _require_active(patient, "resolve safety identification")
    if patient.has_bracelet and patient.has_bed_identification:
        return patient
    return patient.model_copy(update={"has_bracelet": True, "has_bed_identification": True})


def resolve_diet(patient: Patient, tags: Iterable[str] = ()) -> Patient:
    _require_active(patient, "resolve diet")
    diet = list(dict.fromkeys(tag.strip() for tag in tags if tag and tag.strip()))
    return patient.model_copy(update={
        "diet": diet or [DEFAULT_DIET],
        "pendencies": Pendency.NONE,
    })


def resolve_prescription(patient: Patient) -> Patient:
    _require_active(patient, "resolve prescription")
    return patient.model_copy(update={"pendencies": Pendency.NONE, "has_prescription": True})


def resolve_social_worker(patient: Patient) -> Patient:
    _require_active(patient, "resolve social worker review")
    return patient.model_copy(update={"pendencies": Pendency.NONE})


def resolve_pendency(patient: Patient) -> Patient:
    """Clear whatever single pendency is open (exam results arrived, etc.)."""
    _require_active(patient, "clear pendency")
    if patient.pendencies == Pendency.NONE:
        return patient
    return patient.model_copy(update={"pendencies": Pendency.NONE})


def finalize_discharge(patient: Patient, now: datetime) -> Patient:
    if patient.transfer_phase == TransferPhase.FINALIZED:
        return patient
    if patient.status != PatientStatus.DISCHARGED:
        raise GuardViolation(
            f"Discharge can only be finalized for status {PatientStatus.DISCHARGED.value}, "
            f"patient is {patient.status.value}",
            patient_id=patient.id,
        )
    if patient.pendencies == Pendency.AWAITING_SOCIAL_WORKER:
        logger.warning(
            "Finalizing discharge for %s with social worker review still open", patient.id
        )
    return patient.model_copy(update={
        "transfer_phase": TransferPhase.FINALIZED,
        "transferred_at": now,
    })
