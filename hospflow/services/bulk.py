"""Batched discharge and delete over a selected set of patients.

Both operations are all-or-nothing at the store: every write happens in a
single transaction, so a failure leaves the working set as it was.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from hospflow.errors import ValidationError
from hospflow.models.patient import Patient, PatientStatus, Pendency, TransferPhase
from hospflow.models.workflow import BulkResult, RetentionGroup
from hospflow.services import patient_store
from hospflow.services.venous_access import hospital_now

logger = logging.getLogger(__name__)


def _require_ids(ids: Iterable[str]) -> list[str]:
    unique = list(dict.fromkeys(i for i in ids if i))
    if not unique:
        raise ValidationError("Select at least one patient")
    return unique


def discharge_override(patient: Patient, now: datetime) -> Patient:
    """Discharge and finalize in one step, skipping the Admin pendency gate.

    This is the coordinator's bulk path. Unlike ``finalize_discharge`` it does
    not require the patient to already be Discharged and it does not wait for
    open pendencies; every bypass is logged.
    """
    if patient.pendencies != Pendency.NONE:
        logger.warning(
            "Bulk discharge override for %s with open pendency %s",
            patient.id, patient.pendencies.value,
        )
    return patient.model_copy(update={
        "status": PatientStatus.DISCHARGED,
        "transfer_phase": TransferPhase.FINALIZED,
        "transferred_at": now,
    })


async def bulk_discharge(ids: Iterable[str], now: datetime | None = None) -> BulkResult:
    ids = _require_ids(ids)
    now = now or hospital_now()

    by_id = {p.id: p for p in await patient_store.load_all_patients()}
    result = BulkResult()
    updated: list[Patient] = []
    for patient_id in ids:
        patient = by_id.get(patient_id)
        if patient is None or patient.is_transferred:
            result.skipped.append(patient_id)
            continue
        if patient.pendencies != Pendency.NONE:
            result.bypassed.append(patient_id)
        updated.append(discharge_override(patient, now).model_copy(update={"updated_at": now}))
        result.affected.append(patient_id)

    await patient_store.save_patients(updated)
    logger.info(
        "Bulk discharge: %d discharged, %d skipped, %d with open pendencies",
        len(result.affected), len(result.skipped), len(result.bypassed),
    )
    return result


async def bulk_delete(ids: Iterable[str]) -> BulkResult:
    ids = _require_ids(ids)
    existing = await patient_store.delete_patients(ids)
    found = set(existing)
    return BulkResult(
        affected=[i for i in ids if i in found],
        skipped=[i for i in ids if i not in found],
    )


def retention_groups(patients: Iterable[Patient]) -> list[RetentionGroup]:
    """Record ids grouped by creation month, newest month first."""
    months: dict[str, list[str]] = defaultdict(list)
    for patient in patients:
        months[patient.created_at.strftime("%Y-%m")].append(patient.id)
    return [RetentionGroup(month=month, ids=ids) for month, ids in sorted(months.items(), reverse=True)]


@dataclass
class Selection:
    """Which visible rows are ticked for a bulk action. Never touches records."""

    ids: list[str] = field(default_factory=list)

    def toggle(self, patient_id: str) -> None:
        if patient_id in self.ids:
            self.ids.remove(patient_id)
        else:
            self.ids.append(patient_id)

    def toggle_all(self, visible_ids: Iterable[str]) -> None:
        visible = list(visible_ids)
        if visible and len(self.ids) == len(visible) and set(self.ids) == set(visible):
            self.ids = []
        else:
            self.ids = visible

    def clear(self) -> None:
        self.ids = []

    def __len__(self) -> int:
        return len(self.ids)
