"""Tests for list views, search and debouncing (hospflow/services/projection.py)."""

import asyncio
from datetime import timedelta

from hospflow.models.patient import PatientStatus, Pendency, Situation, TransferPhase
from hospflow.services import projection
from hospflow.services.projection import SearchDebouncer, SearchQuery, View


def _ids(patients):
    return [p.id for p in patients]


def test_transferred_never_in_active_view(make_patient, now):
    patients = [
        make_patient(id="a", name="Ana"),
        make_patient(id="b", name="Bruno", transfer_phase=TransferPhase.FINALIZED, transferred_at=now),
        make_patient(id="c", name="Caio", transfer_phase=TransferPhase.REQUESTED),
    ]
    assert _ids(projection.project(patients, View.ACTIVE)) == ["a", "c"]
    assert _ids(projection.project(patients, View.HISTORY)) == ["b"]
    assert _ids(projection.project(patients, View.TRANSFERS)) == ["c"]


def test_transfers_view_includes_auto_eligible(make_patient):
    patients = [
        make_patient(id="ext", name="Eva", status=PatientStatus.TRANSFER_EXTERNAL),
        make_patient(id="plain", name="Lia"),
    ]
    assert _ids(projection.project(patients, View.TRANSFERS)) == ["ext"]


def test_sorted_by_name_case_insensitive(make_patient):
    patients = [
        make_patient(id="1", name="joão"),
        make_patient(id="2", name="Ana"),
        make_patient(id="3", name="bia"),
    ]
    assert _ids(projection.project(patients)) == ["2", "3", "1"]


def test_query_matches_name_social_name_and_record(make_patient):
    patients = [
        make_patient(id="1", name="Maria Souza", medical_record="555001"),
        make_patient(id="2", name="Jose", social_name="Josefina", medical_record="777"),
    ]
    assert _ids(projection.project(patients, query="maria")) == ["1"]
    assert _ids(projection.project(patients, query="JOSEFINA")) == ["2"]
    assert _ids(projection.project(patients, query="5500")) == ["1"]
    assert _ids(projection.project(patients, query="  ")) == ["2", "1"]


def test_specialty_filter(make_patient):
    patients = [
        make_patient(id="1", name="A", specialty="Orthopedics"),
        make_patient(id="2", name="B", specialty="Internal Medicine"),
    ]
    assert _ids(projection.project(patients, specialty="Orthopedics")) == ["1"]


def test_eligible_for_prioritization(make_patient, now):
    patients = [
        make_patient(id="s", name="A", situation=Situation.STRETCHER),
        make_patient(id="c", name="B", situation=Situation.CHAIR),
        make_patient(id="r", name="C", transfer_phase=TransferPhase.REQUESTED),
        make_patient(id="x", name="D", status=PatientStatus.TRANSFER_SECONDARY),
        make_patient(id="f", name="E", transfer_phase=TransferPhase.FINALIZED, transferred_at=now),
    ]
    assert _ids(projection.eligible_for_prioritization(patients)) == ["s", "c"]
    assert _ids(projection.eligible_for_prioritization(patients, Situation.CHAIR)) == ["c"]


def test_is_new_expires(make_patient, now):
    fresh = make_patient(created_at=now - timedelta(seconds=30))
    old = make_patient(created_at=now - timedelta(seconds=120))
    assert projection.is_new(fresh, now) is True
    assert projection.is_new(old, now) is False


def test_to_view_derives_fields(make_patient, now):
    p = make_patient(pendencies=Pendency.AWAITING_CT_SCAN, has_bracelet=False, venous_access="MSD 22/01")
    view = projection.to_view(p, now)
    assert view.buckets == ["exams", "safety"]
    assert view.venous_access_stale is True
    assert view.is_new is False
    assert view.model_dump(mode="json")["is_transferred"] is False


def test_to_view_of_transferred_has_no_buckets(make_patient, now):
    p = make_patient(has_bracelet=False, transfer_phase=TransferPhase.FINALIZED, transferred_at=now)
    view = projection.to_view(p, now)
    assert view.buckets == []
    assert view.venous_access_stale is False


async def test_debouncer_runs_only_last_query():
    seen = []

    async def callback(query):
        seen.append(query.q)

    debouncer = SearchDebouncer(callback, delay_ms=20)
    debouncer.submit(SearchQuery(q="m"))
    debouncer.submit(SearchQuery(q="ma"))
    debouncer.submit(SearchQuery(q="mar"))
    await debouncer.flush()
    await asyncio.sleep(0.05)

    assert seen == ["mar"]
    await debouncer.close()


async def test_debouncer_close_cancels_pending():
    seen = []

    async def callback(query):
        seen.append(query.q)

    debouncer = SearchDebouncer(callback, delay_ms=50)
    debouncer.submit(SearchQuery(q="x"))
    await debouncer.close()
    await asyncio.sleep(0.08)

    assert seen == []
