"""Tests for pendency buckets and resolutions (hospflow/services/pendency.py)."""

from datetime import timedelta

import pytest

from hospflow.errors import GuardViolation
from hospflow.models.patient import PatientStatus, Pendency, TransferPhase
from hospflow.models.workflow import AdminState, Bucket
from hospflow.services import pendency


class TestBuckets:
    def test_clean_patient_has_no_bucket(self, make_patient):
        assert pendency.buckets_for(make_patient()) == set()

    def test_prescription_and_safety_overlap(self, make_patient):
        p = make_patient(pendencies=Pendency.NO_MEDICAL_PRESCRIPTION, has_bracelet=False)
        assert pendency.buckets_for(p) == {Bucket.SAFETY, Bucket.PRESCRIPTION}

    def test_missing_bed_identification_is_safety(self, make_patient):
        p = make_patient(has_bed_identification=False)
        assert pendency.buckets_for(p) == {Bucket.SAFETY}

    @pytest.mark.parametrize("value", sorted(pendency.EXAM_PENDENCIES))
    def test_exam_pendencies(self, make_patient, value):
        assert pendency.buckets_for(make_patient(pendencies=value)) == {Bucket.EXAMS}

    def test_no_diet_is_prescription(self, make_patient):
        assert pendency.buckets_for(make_patient(pendencies=Pendency.NO_DIET)) == {Bucket.PRESCRIPTION}

    def test_discharged_is_admin(self, make_patient):
        p = make_patient(status=PatientStatus.DISCHARGED)
        assert pendency.buckets_for(p) == {Bucket.ADMIN}
        assert pendency.admin_state(p) == AdminState.READY_TO_FINALIZE

    def test_admin_states(self, make_patient):
        waiting = make_patient(pendencies=Pendency.AWAITING_SOCIAL_WORKER)
        both = make_patient(status=PatientStatus.DISCHARGED, pendencies=Pendency.AWAITING_SOCIAL_WORKER)
        assert pendency.admin_state(waiting) == AdminState.AWAITING_SOCIAL_WORKER
        assert pendency.admin_state(both) == AdminState.DISCHARGED_AWAITING_SOCIAL_WORKER
        assert pendency.admin_state(make_patient()) is None

    def test_classify_skips_transferred(self, make_patient, now):
        gone = make_patient(
            id="gone",
            has_bracelet=False,
            transfer_phase=TransferPhase.FINALIZED,
            transferred_at=now,
        )
        here = make_patient(id="here", has_bracelet=False, pendencies=Pendency.AWAITING_XRAY)
        board = pendency.classify([gone, here])
        assert [p.id for p in board[Bucket.SAFETY]] == ["here"]
        assert [p.id for p in board[Bucket.EXAMS]] == ["here"]
        assert board[Bucket.ADMIN] == []

    def test_has_open_pendency(self, make_patient):
        assert pendency.has_open_pendency(make_patient()) is False
        assert pendency.has_open_pendency(make_patient(has_bracelet=False)) is True
        assert pendency.has_open_pendency(make_patient(pendencies=Pendency.NO_DIET)) is True


class TestResolutions:
    def test_resolve_safety(self, make_patient):
        p = pendency.resolve_safety(make_patient(has_bracelet=False, has_bed_identification=False))
        assert p.has_bracelet and p.has_bed_identification

    def test_resolve_safety_noop_returns_same_record(self, make_patient):
        p = make_patient()
        assert pendency.resolve_safety(p) is p

    def test_resolve_diet_defaults_to_free(self, make_patient):
        p = pendency.resolve_diet(make_patient(pendencies=Pendency.NO_DIET), [])
        assert p.diet == ["Free"]
        assert p.pendencies == Pendency.NONE

    def test_resolve_diet_keeps_tags(self, make_patient):
        p = pendency.resolve_diet(make_patient(pendencies=Pendency.NO_DIET), ["Low sodium", " ", "Low sodium", "Diabetic"])
        assert p.diet == ["Low sodium", "Diabetic"]

    def test_resolve_prescription(self, make_patient):
        p = make_patient(pendencies=Pendency.NO_MEDICAL_PRESCRIPTION, has_prescription=False)
        p = pendency.resolve_prescription(p)
        assert p.pendencies == Pendency.NONE
        assert p.has_prescription is True

    def test_resolve_social_worker_keeps_status(self, make_patient):
        p = make_patient(status=PatientStatus.DISCHARGED, pendencies=Pendency.AWAITING_SOCIAL_WORKER)
        p = pendency.resolve_social_worker(p)
        assert p.pendencies == Pendency.NONE
        assert p.status == PatientStatus.DISCHARGED

    def test_resolve_pendency_clears_exam(self, make_patient):
        p = pendency.resolve_pendency(make_patient(pendencies=Pendency.EXAMS_DONE_AWAITING_RESULT))
        assert p.pendencies == Pendency.NONE

    def test_resolution_on_finalized_rejected(self, make_patient, now):
        p = make_patient(transfer_phase=TransferPhase.FINALIZED, transferred_at=now, has_bracelet=False)
        with pytest.raises(GuardViolation):
            pendency.resolve_safety(p)
        with pytest.raises(GuardViolation):
            pendency.resolve_diet(p)


class TestFinalizeDischarge:
    def test_requires_discharged_status(self, make_patient, now):
        with pytest.raises(GuardViolation):
            pendency.finalize_discharge(make_patient(status=PatientStatus.OBSERVATION), now)

    def test_finalizes(self, make_patient, now):
        p = pendency.finalize_discharge(make_patient(status=PatientStatus.DISCHARGED), now)
        assert p.transfer_phase == TransferPhase.FINALIZED
        assert p.is_transferred is True
        assert p.transferred_at == now

    def test_already_finalized_keeps_timestamp(self, make_patient, now):
        earlier = now - timedelta(hours=3)
        p = make_patient(
            status=PatientStatus.DISCHARGED,
            transfer_phase=TransferPhase.FINALIZED,
            transferred_at=earlier,
        )
        assert pendency.finalize_discharge(p, now).transferred_at == earlier

    def test_open_social_worker_review_is_logged(self, make_patient, now, caplog):
        p = make_patient(status=PatientStatus.DISCHARGED, pendencies=Pendency.AWAITING_SOCIAL_WORKER)
        with caplog.at_level("WARNING", logger="hospflow.services.pendency"):
            result = pendency.finalize_discharge(p, now)
        assert result.is_transferred
        assert "social worker" in caplog.text
