"""Record Store: one JSON document per patient, keyed by id.

This is the only place where the transfer lifecycle is flattened into the
legacy ``is_transfer_requested``/``is_transferred`` document flags and read back.
Writes are last-write-wins; multi-record writes share one transaction.
"""

import json
import logging
from typing import Iterable

from pydantic import ValidationError as PydanticValidationError

from hospflow.database import get_db
from hospflow.errors import NotFound, ValidationError
from hospflow.models.patient import Patient, TransferPhase

logger = logging.getLogger(__name__)

_UPSERT = (
    "INSERT INTO patients (id, data) VALUES (?, ?) "
    "ON CONFLICT (id) DO UPDATE SET data = excluded.data"
)


def to_document(patient: Patient) -> str:
    data = patient.model_dump(mode="json", exclude={"transfer_phase"})
    return json.dumps(data)


def _phase_from_flags(data: dict) -> TransferPhase:
    if data.get("is_transferred"):
        return TransferPhase.FINALIZED
    if data.get("is_transfer_requested"):
        return TransferPhase.REQUESTED
    return TransferPhase.ACTIVE


def from_document(raw: str | dict) -> Patient:
    data = json.loads(raw) if isinstance(raw, str) else dict(raw)
    data["transfer_phase"] = _phase_from_flags(data)
    data.pop("is_transferred", None)
    data.pop("is_transfer_requested", None)
    return Patient.model_validate(data)


async def load_all_patients() -> list[Patient]:
    db = await get_db()
    rows = await db.fetch_all("SELECT id, data FROM patients")
    patients = []
    for row in rows:
        try:
            patients.append(from_document(row["data"]))
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            logger.error("Skipping unreadable patient document %s: %s", row["id"], exc)
    return patients


async def find_patient(patient_id: str) -> Patient | None:
    db = await get_db()
    row = await db.fetch_one("SELECT data FROM patients WHERE id = ?", (patient_id,))
    if not row:
        return None
    try:
        return from_document(row["data"])
    except (json.JSONDecodeError, PydanticValidationError) as exc:
        logger.error("Unreadable patient document %s: %s", patient_id, exc)
        return None


async def get_patient(patient_id: str) -> Patient:
    patient = await find_patient(patient_id)
    if patient is None:
        raise NotFound(f"Patient {patient_id} not found", patient_id=patient_id)
    return patient


async def save_patient(patient: Patient) -> None:
    db = await get_db()
    async with db.transaction() as tx:
        await tx.execute(_UPSERT, (patient.id, to_document(patient)))


async def save_patients(patients: Iterable[Patient]) -> None:
    rows = [(p.id, to_document(p)) for p in patients]
    if not rows:
        return
    db = await get_db()
    async with db.transaction() as tx:
        await tx.executemany(_UPSERT, rows)


def _unique_ids(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(i for i in ids if i))


async def delete_patients(ids: Iterable[str]) -> list[str]:
    """Remove every listed record in one transaction; returns the ids that existed.

    Ids that are not stored are ignored.
    """
    ids = _unique_ids(ids)
    if not ids:
        raise ValidationError("At least one patient id is required")

    placeholders = ", ".join("?" for _ in ids)
    db = await get_db()
    async with db.transaction() as tx:
        rows = await tx.fetch_all(f"SELECT id FROM patients WHERE id IN ({placeholders})", ids)
        existing = [row["id"] for row in rows]
        await tx.executemany("DELETE FROM patients WHERE id = ?", [(i,) for i in ids])
    logger.info("Deleted %d patient records", len(existing))
    return existing
