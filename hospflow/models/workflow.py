from enum import Enum

from pydantic import BaseModel, Field

from hospflow.models.patient import PatientView


class Bucket(str, Enum):
    SAFETY = "safety"
    EXAMS = "exams"
    PRESCRIPTION = "prescription"
    ADMIN = "admin"


class AdminState(str, Enum):
    DISCHARGED_AWAITING_SOCIAL_WORKER = "discharged_awaiting_social_worker"
    READY_TO_FINALIZE = "ready_to_finalize"
    AWAITING_SOCIAL_WORKER = "awaiting_social_worker"


class PendencyBoard(BaseModel):
    """Active patients grouped by pendency bucket. Buckets overlap."""

    safety: list[PatientView] = []
    exams: list[PatientView] = []
    prescription: list[PatientView] = []
    admin: list[PatientView] = []
    admin_states: dict[str, AdminState] = {}


class TransferRequestBody(BaseModel):
    sector: str = ""
    bed: str = ""


class FinalizeTransferBody(BaseModel):
    destination: str | None = None


class DietResolutionBody(BaseModel):
    tags: list[str] = []


class BulkRequest(BaseModel):
    ids: list[str] = []


class BulkResult(BaseModel):
    affected: list[str] = []
    skipped: list[str] = []
    bypassed: list[str] = []


class MutationResult(BaseModel):
    """Outcome of a single-record action. ``found=False`` means a no-op on an unknown id."""

    id: str
    found: bool = True
    changed: bool = False
    patient: PatientView | None = None


class RetentionGroup(BaseModel):
    month: str
    ids: list[str] = []


class CensusReport(BaseModel):
    total: int = 0
    admitted: int = 0
    observation: int = 0
    reassessment: int = 0
    with_pendencies: int = 0
    stretchers: int = 0
    chairs: int = 0
    bottlenecks: int = 0
    stale_venous_access: int = 0
    by_specialty: dict[str, int] = Field(default_factory=dict)
