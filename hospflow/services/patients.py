"""Corridor actions over stored records.

Each action loads one record, runs a pure transition from ``pendency`` or
``transfer`` over it, and writes it back only if something changed. Actions
on an id that is not stored are reported as ``found=False`` and change nothing.
"""

import logging
import uuid
from datetime import datetime
from typing import Callable

from hospflow.models.patient import Patient, PatientCreate, PatientUpdate, PatientView, Situation
from hospflow.models.workflow import CensusReport, MutationResult, PendencyBoard, RetentionGroup
from hospflow.services import patient_store
from hospflow.services.bulk import retention_groups
from hospflow.services.census import census
from hospflow.services.pendency import admin_state, classify
from hospflow.services.projection import (
    View,
    eligible_for_prioritization,
    project,
    sort_by_name,
    to_view,
)
from hospflow.services.transfer import awaiting_finalize
from hospflow.services.venous_access import hospital_now

logger = logging.getLogger(__name__)

Transition = Callable[[Patient], Patient]

# Nullable on Patient, so an explicit null in a direct edit clears them.
CLEARABLE_FIELDS = frozenset({"age"})


async def admit_patient(body: PatientCreate, now: datetime | None = None) -> PatientView:
    now = now or hospital_now()
    patient = Patient(
        id=str(uuid.uuid4()),
        created_at=now,
        updated_at=now,
        **body.model_dump(),
    )
    await patient_store.save_patient(patient)
    logger.info("Admitted patient %s to %s", patient.id, patient.corridor or "unassigned corridor")
    return to_view(patient, now)


async def list_patients(
    view: View = View.ACTIVE,
    query: str = "",
    specialty: str | None = None,
    now: datetime | None = None,
) -> list[PatientView]:
    now = now or hospital_now()
    patients = await patient_store.load_all_patients()
    return [to_view(p, now) for p in project(patients, view, query, specialty)]


async def read_patient(patient_id: str, now: datetime | None = None) -> PatientView:
    patient = await patient_store.get_patient(patient_id)
    return to_view(patient, now or hospital_now())


async def apply(patient_id: str, transition: Transition, now: datetime | None = None) -> MutationResult:
    """Run ``transition`` against the stored record and persist the result."""
    now = now or hospital_now()
    patient = await patient_store.find_patient(patient_id)
    if patient is None:
        logger.info("Ignoring action on unknown patient %s", patient_id)
        return MutationResult(id=patient_id, found=False)

    updated = transition(patient)
    if updated == patient:
        return MutationResult(id=patient_id, patient=to_view(patient, now))

    updated = updated.model_copy(update={"updated_at": now})
    await patient_store.save_patient(updated)
    return MutationResult(id=patient_id, changed=True, patient=to_view(updated, now))


async def update_patient(patient_id: str, body: PatientUpdate, now: datetime | None = None) -> MutationResult:
    changes = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field in CLEARABLE_FIELDS
    }
    return await apply(patient_id, lambda p: p.model_copy(update=changes) if changes else p, now)


async def delete_patient(patient_id: str) -> MutationResult:
    existing = await patient_store.delete_patients([patient_id])
    return MutationResult(id=patient_id, found=bool(existing), changed=bool(existing))


async def pendency_board(now: datetime | None = None) -> PendencyBoard:
    now = now or hospital_now()
    patients = sort_by_name(await patient_store.load_all_patients())
    board = classify(patients)
    views = {p.id: to_view(p, now) for p in patients if not p.is_transferred}
    states = {}
    for patient in patients:
        state = admin_state(patient)
        if state is not None and not patient.is_transferred:
            states[patient.id] = state
    return PendencyBoard(
        **{bucket.value: [views[p.id] for p in members] for bucket, members in board.items()},
        admin_states=states,
    )


async def transfer_queue(now: datetime | None = None) -> list[PatientView]:
    now = now or hospital_now()
    patients = await patient_store.load_all_patients()
    return [to_view(p, now) for p in sort_by_name(p for p in patients if awaiting_finalize(p))]


async def census_report(now: datetime | None = None) -> CensusReport:
    return census(await patient_store.load_all_patients(), now or hospital_now())


async def retention_report() -> list[RetentionGroup]:
    return retention_groups(await patient_store.load_all_patients())


async def load_eligible(situation: Situation | None = None) -> list[Patient]:
    return eligible_for_prioritization(await patient_store.load_all_patients(), situation)


async def load_active() -> list[Patient]:
    return [p for p in await patient_store.load_all_patients() if not p.is_transferred]
