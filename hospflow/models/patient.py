from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field, model_validator


class PatientStatus(str, Enum):
    ADMITTED = "Admitted"
    OBSERVATION = "Observation"
    REASSESSMENT = "Reassessment"
    DISCHARGED = "Discharged"
    TRANSFER_SECONDARY = "TransferToSecondaryFacility"
    TRANSFER_EXTERNAL = "TransferExternal"


# These statuses are finalized straight from the corridor, without a request step.
AUTO_TRANSFER_STATUSES = frozenset({
    PatientStatus.TRANSFER_SECONDARY,
    PatientStatus.TRANSFER_EXTERNAL,
})


class Situation(str, Enum):
    STRETCHER = "Stretcher"
    CHAIR = "Chair"


class Pendency(str, Enum):
    NONE = "None"
    AWAITING_LAB_EXAM = "AwaitingLabExam"
    AWAITING_CT_SCAN = "AwaitingCTScan"
    AWAITING_XRAY = "AwaitingXRay"
    AWAITING_ULTRASOUND = "AwaitingUltrasound"
    EXAMS_DONE_AWAITING_RESULT = "ExamsDoneAwaitingResult"
    NO_MEDICAL_PRESCRIPTION = "NoMedicalPrescription"
    NO_DIET = "NoDiet"
    AWAITING_SOCIAL_WORKER = "AwaitingSocialWorker"


class TransferPhase(str, Enum):
    ACTIVE = "Active"
    REQUESTED = "Requested"
    FINALIZED = "Finalized"


class Patient(BaseModel):
    """A patient held in an overflow corridor.

    The transfer lifecycle lives in ``transfer_phase``. The legacy
    ``is_transfer_requested``/``is_transferred`` flags are read-only
    projections of it and only exist as stored fields in the Record Store
    document.
    """

    id: str
    name: str = ""
    social_name: str = ""
    medical_record: str = ""
    sex: str = ""
    age: int | None = None
    corridor: str = ""
    specialty: str = ""
    status: PatientStatus = PatientStatus.ADMITTED
    situation: Situation = Situation.STRETCHER
    pendencies: Pendency = Pendency.NONE
    diagnosis: str = ""
    mobility: str = ""
    has_allergy: bool = False
    allergy_details: str = ""
    venous_access: str = ""
    has_prescription: bool = True
    diet: list[str] = []
    disabilities: list[str] = []
    has_lesion: bool = False
    lesion_description: str = ""
    notes: str = ""
    has_bracelet: bool = False
    has_bed_identification: bool = False
    transfer_phase: TransferPhase = TransferPhase.ACTIVE
    transferred_at: datetime | None = None
    transfer_destination_sector: str | None = None
    transfer_destination_bed: str | None = None
    created_at: datetime
    created_by: str = ""
    updated_at: datetime | None = None

    @computed_field
    @property
    def is_transfer_requested(self) -> bool:
        return self.transfer_phase == TransferPhase.REQUESTED

    @computed_field
    @property
    def is_transferred(self) -> bool:
        return self.transfer_phase == TransferPhase.FINALIZED

    @model_validator(mode="after")
    def _finalized_requires_timestamp(self) -> "Patient":
        if self.transfer_phase == TransferPhase.FINALIZED and self.transferred_at is None:
            raise ValueError("a finalized patient must carry transferred_at")
        return self


class PatientCreate(BaseModel):
    """Admission form. Lifecycle fields always start at their defaults."""

    name: str = Field(min_length=1)
    social_name: str = ""
    medical_record: str = ""
    sex: str = ""
    age: int | None = Field(None, ge=0, le=150)
    corridor: str = ""
    specialty: str = ""
    status: PatientStatus = PatientStatus.ADMITTED
    situation: Situation = Situation.STRETCHER
    pendencies: Pendency = Pendency.NONE
    diagnosis: str = ""
    mobility: str = ""
    has_allergy: bool = False
    allergy_details: str = ""
    venous_access: str = ""
    has_prescription: bool = True
    diet: list[str] = []
    disabilities: list[str] = []
    has_lesion: bool = False
    lesion_description: str = ""
    notes: str = ""
    has_bracelet: bool = False
    has_bed_identification: bool = False
    created_by: str = ""


class PatientUpdate(BaseModel):
    """Direct edit. ``None`` leaves a field unchanged.

    Transfer phase and timestamps only move through the transfer and
    discharge actions.
    """

    name: str | None = Field(None, min_length=1)
    social_name: str | None = None
    medical_record: str | None = None
    sex: str | None = None
    age: int | None = Field(None, ge=0, le=150)
    corridor: str | None = None
    specialty: str | None = None
    status: PatientStatus | None = None
    situation: Situation | None = None
    pendencies: Pendency | None = None
    diagnosis: str | None = None
    mobility: str | None = None
    has_allergy: bool | None = None
    allergy_details: str | None = None
    venous_access: str | None = None
    has_prescription: bool | None = None
    diet: list[str] | None = None
    disabilities: list[str] | None = None
    has_lesion: bool | None = None
    lesion_description: str | None = None
    notes: str | None = None
    has_bracelet: bool | None = None
    has_bed_identification: bool | None = None


class PatientView(Patient):
    """Patient plus the values derived at read time."""

    buckets: list[str] = []
    venous_access_stale: bool = False
    is_new: bool = False
