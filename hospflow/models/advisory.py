from pydantic import BaseModel, Field

from hospflow.models.patient import PatientView, Situation


class AdvisoryScore(BaseModel):
    id: str
    score: float = 0.0
    rationale: str = ""


class AdvisoryScores(BaseModel):
    """Structured output requested from the advisory provider."""

    scores: list[AdvisoryScore] = []


class PrioritizedPatient(BaseModel):
    patient: PatientView
    score: float | None = None
    rationale: str = ""


class PrioritizationResult(BaseModel):
    available: bool = True
    stale: bool = False
    message: str = ""
    generation: int = 0
    patients: list[PrioritizedPatient] = []


class UnitSummaryPayload(BaseModel):
    summary: str = ""
    improvements: list[str] = []


class AdvisoryNarrative(BaseModel):
    available: bool = True
    text: str = ""
    improvements: list[str] = []
    message: str = ""


class HandoverRequest(BaseModel):
    corridor: str = Field(min_length=1)


class PrioritizeRequest(BaseModel):
    situation: Situation | None = None
