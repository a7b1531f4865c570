"""Tests for bulk discharge/delete and selection (hospflow/services/bulk.py)."""

from datetime import datetime, timedelta, timezone

import pytest

from hospflow.errors import ValidationError
from hospflow.models.patient import PatientStatus, Pendency, TransferPhase
from hospflow.services import bulk, patient_store
from hospflow.services.bulk import Selection
from hospflow.services.venous_access import hospital_now


async def test_bulk_delete_empty_rejected(db):
    with pytest.raises(ValidationError):
        await bulk.bulk_delete([])


async def test_bulk_delete_removes_exactly_selected(db, make_patient):
    await patient_store.save_patients([make_patient(id=i) for i in ("a", "b", "c")])

    result = await bulk.bulk_delete(["a", "b", "missing"])

    assert result.affected == ["a", "b"]
    assert result.skipped == ["missing"]
    remaining = await patient_store.load_all_patients()
    assert [p.id for p in remaining] == ["c"]


async def test_bulk_discharge_empty_rejected(db):
    with pytest.raises(ValidationError):
        await bulk.bulk_discharge([])


async def test_bulk_discharge_bypasses_social_worker(db, make_patient, now, caplog):
    await patient_store.save_patients([
        make_patient(id="sw", pendencies=Pendency.AWAITING_SOCIAL_WORKER),
        make_patient(id="ok"),
    ])

    with caplog.at_level("WARNING", logger="hospflow.services.bulk"):
        result = await bulk.bulk_discharge(["sw", "ok"], now)

    assert sorted(result.affected) == ["ok", "sw"]
    assert result.bypassed == ["sw"]
    assert "sw" in caplog.text
    stored = await patient_store.get_patient("sw")
    assert stored.status == PatientStatus.DISCHARGED
    assert stored.is_transferred is True
    assert stored.transferred_at == now
    assert stored.pendencies == Pendency.AWAITING_SOCIAL_WORKER


async def test_bulk_discharge_skips_unknown_and_finalized(db, make_patient, now):
    earlier = now - timedelta(days=2)
    await patient_store.save_patients([
        make_patient(id="gone", transfer_phase=TransferPhase.FINALIZED, transferred_at=earlier),
        make_patient(id="here"),
    ])

    result = await bulk.bulk_discharge(["gone", "here", "nobody"], now)

    assert result.affected == ["here"]
    assert result.skipped == ["gone", "nobody"]
    gone = await patient_store.get_patient("gone")
    assert gone.transferred_at == earlier


def test_retention_groups_newest_first(make_patient):
    groups = bulk.retention_groups([
        make_patient(id="a", created_at=datetime(2023, 11, 3, tzinfo=timezone.utc)),
        make_patient(id="b", created_at=datetime(2024, 1, 5, tzinfo=timezone.utc)),
        make_patient(id="c", created_at=datetime(2023, 11, 20, tzinfo=timezone.utc)),
    ])
    assert [(g.month, g.ids) for g in groups] == [("2024-01", ["b"]), ("2023-11", ["a", "c"])]


class TestSelection:
    def test_toggle(self):
        sel = Selection()
        sel.toggle("a")
        sel.toggle("b")
        sel.toggle("a")
        assert sel.ids == ["b"]

    def test_toggle_all_selects_then_clears(self):
        sel = Selection()
        sel.toggle_all(["a", "b"])
        assert len(sel) == 2
        sel.toggle_all(["a", "b"])
        assert len(sel) == 0

    def test_toggle_all_from_partial_selects_all(self):
        sel = Selection(["a"])
        sel.toggle_all(["a", "b", "c"])
        assert sel.ids == ["a", "b", "c"]

    def test_clear(self):
        sel = Selection(["a", "b"])
        sel.clear()
        assert sel.ids == []


async def test_bulk_discharge_stamps_hospital_clock(db, make_patient):
    await patient_store.save_patient(make_patient(id="a"))

    await bulk.bulk_discharge(["a"])

    stored = await patient_store.get_patient("a")
    assert stored.transferred_at.utcoffset() == hospital_now().utcoffset()
