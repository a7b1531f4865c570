"""Consumption of the external advisory service.

The advisory provider scores corridor patients for bed priority and writes
handover and management narratives. Its output is best-effort: any failure
degrades to "no advisory data available" and never blocks the workflow. A
response is only applied if the patient set it was computed for is still the
current one.
"""

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable

from hospflow.config import ADVISORY_TIMEOUT_SECONDS
from hospflow.errors import CollaboratorUnavailable
from hospflow.models.advisory import (
    AdvisoryNarrative,
    AdvisoryScore,
    AdvisoryScores,
    PrioritizationResult,
    PrioritizedPatient,
    UnitSummaryPayload,
)
from hospflow.models.patient import Patient
from hospflow.models.workflow import CensusReport
from hospflow.services.llm import get_llm_client
from hospflow.services.projection import to_view

logger = logging.getLogger(__name__)

NO_ADVISORY_DATA = "No advisory data available"

SCORE_PROMPT = """You are an experienced nursing preceptor helping a hospital move patients
out of overflow corridors into ward beds.

Score every patient from 0 to 100 for transfer priority, where 100 is most urgent.
Weigh advanced age, severity of the diagnosis, mobility (bedridden patients first),
skin lesions, disabilities and the clinical notes. Use clinical judgement, not a formula.

Return JSON only: {"scores": [{"id": "<patient id>", "score": <0-100>, "rationale": "<one or two sentences>"}]}.
Use the ids exactly as given."""

HANDOVER_PROMPT = """You write nursing shift handover reports for a hospital overflow corridor.
Group patients by severity and highlight critical pendencies (pending exams, missing diet or
prescription, missing identification bracelet). Be concise and professional. Plain text only."""

UNIT_SUMMARY_PROMPT = """You brief a nursing manager on the state of an overflow unit.
Using the indicators provided, return JSON only:
{"summary": "<one technical paragraph on occupancy and flow>", "improvements": ["<short action>", ...]}
Give at most three improvements and cite the numbers."""

Scorer = Callable[[list[Patient]], Awaitable[list[AdvisoryScore]]]


def _advisory_payload(patient: Patient) -> dict:
    return {
        "id": patient.id,
        "name": patient.name,
        "sex": patient.sex,
        "age": patient.age,
        "diagnosis": patient.diagnosis,
        "mobility": patient.mobility,
        "lesion": patient.lesion_description if patient.has_lesion else "",
        "disabilities": patient.disabilities,
        "situation": patient.situation.value,
        "notes": patient.notes,
    }


def fingerprint(patients: list[Patient]) -> str:
    """Digest of exactly what the advisory service is shown."""
    payload = sorted((_advisory_payload(p) for p in patients), key=lambda item: item["id"])
    raw = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


async def advisory_score(patients: list[Patient]) -> list[AdvisoryScore]:
    client = get_llm_client()
    parsed = await client.generate_json(
        system=SCORE_PROMPT,
        user=json.dumps([_advisory_payload(p) for p in patients], ensure_ascii=False),
        response_model=AdvisoryScores,
    )
    return parsed.scores


def merge_scores(
    patients: list[Patient],
    scores: list[AdvisoryScore],
) -> list[tuple[Patient, float | None, str]]:
    """Order patients by advisory score, highest first.

    Unknown ids are ignored and only the first score per id counts. Patients
    the service did not score keep their original relative order after the
    scored ones.
    """
    known = {p.id for p in patients}
    by_id: dict[str, AdvisoryScore] = {}
    for item in scores:
        if item.id in known and item.id not in by_id:
            by_id[item.id] = item
    dropped = sum(1 for item in scores if item.id not in known)
    if dropped:
        logger.info("Ignoring %d advisory scores for unknown patients", dropped)

    scored = [p for p in patients if p.id in by_id]
    scored.sort(key=lambda p: -_clamp(by_id[p.id].score))
    unscored = [p for p in patients if p.id not in by_id]
    return (
        [(p, _clamp(by_id[p.id].score), by_id[p.id].rationale) for p in scored]
        + [(p, None, "") for p in unscored]
    )


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


@dataclass(frozen=True)
class AdvisoryTicket:
    generation: int
    fingerprint: str


class AdvisoryTracker:
    """Keeps only the newest advisory request alive.

    Each request gets a generation number and a fingerprint of its input.
    Starting a new request cancels the previous one, and a finished response
    is current only if no newer request started and the patient set it was
    computed for has not changed.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._inflight: asyncio.Task | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self, patients: list[Patient]) -> AdvisoryTicket:
        self._generation += 1
        if self._inflight is not None and not self._inflight.done():
            logger.info("Cancelling superseded advisory request")
            self._inflight.cancel()
        self._inflight = None
        return AdvisoryTicket(self._generation, fingerprint(patients))

    def is_current(self, ticket: AdvisoryTicket, patients: list[Patient]) -> bool:
        return ticket.generation == self._generation and ticket.fingerprint == fingerprint(patients)

    async def run(
        self,
        patients: list[Patient],
        scorer: Scorer,
        timeout: float = ADVISORY_TIMEOUT_SECONDS,
    ) -> tuple[AdvisoryTicket, list[AdvisoryScore] | None]:
        """Score ``patients``; returns None scores when a newer request superseded this one."""
        ticket = self.begin(patients)
        task = asyncio.ensure_future(asyncio.wait_for(scorer(patients), timeout))
        self._inflight = task
        try:
            return ticket, await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            return ticket, None
        except asyncio.TimeoutError as exc:
            raise CollaboratorUnavailable(f"Advisory scoring timed out after {timeout:.0f}s") from exc
        finally:
            if self._inflight is task:
                self._inflight = None


advisory_tracker = AdvisoryTracker()


def _unranked(patients: list[Patient], now: datetime, **fields) -> PrioritizationResult:
    return PrioritizationResult(
        patients=[PrioritizedPatient(patient=to_view(p, now)) for p in patients],
        **fields,
    )


async def prioritize(
    load_eligible: Callable[[], Awaitable[list[Patient]]],
    now: datetime,
    *,
    tracker: AdvisoryTracker | None = None,
    scorer: Scorer | None = None,
    timeout: float = ADVISORY_TIMEOUT_SECONDS,
) -> PrioritizationResult:
    """Rank eligible patients by advisory score.

    ``load_eligible`` is called before and after scoring; the ranking is
    applied only if both loads describe the same patients.
    """
    tracker = tracker or advisory_tracker
    patients = await load_eligible()
    if not patients:
        return PrioritizationResult(message="No eligible patients", generation=tracker.generation)

    try:
        ticket, scores = await tracker.run(patients, scorer or advisory_score, timeout)
    except CollaboratorUnavailable as exc:
        logger.error("Advisory scoring unavailable: %s", exc.detail)
        return _unranked(patients, now, available=False, message=NO_ADVISORY_DATA,
                         generation=tracker.generation)

    if scores is None:
        return _unranked(patients, now, stale=True, generation=ticket.generation,
                         message="Superseded by a newer prioritization request")

    current = await load_eligible()
    if not tracker.is_current(ticket, current):
        logger.info("Discarding stale advisory response for generation %d", ticket.generation)
        return _unranked(current, now, stale=True, generation=ticket.generation,
                         message="Patient list changed while the advisory was running")

    return PrioritizationResult(
        generation=ticket.generation,
        patients=[
            PrioritizedPatient(patient=to_view(p, now), score=score, rationale=rationale)
            for p, score, rationale in merge_scores(current, scores)
        ],
    )


async def shift_handover(
    corridor: str,
    patients: list[Patient],
    timeout: float = ADVISORY_TIMEOUT_SECONDS,
) -> AdvisoryNarrative:
    on_duty = [p for p in patients if not p.is_transferred and p.corridor == corridor]
    if not on_duty:
        return AdvisoryNarrative(available=False, message=f"No patients in {corridor}")

    data = [
        {
            "name": p.name,
            "age": p.age,
            "diagnosis": p.diagnosis,
            "status": p.status.value,
            "pendency": p.pendencies.value,
            "has_bracelet": p.has_bracelet,
            "has_bed_identification": p.has_bed_identification,
            "notes": p.notes,
        }
        for p in on_duty
    ]
    try:
        text = await asyncio.wait_for(
            get_llm_client().generate_text(
                system=HANDOVER_PROMPT,
                user=f"Corridor: {corridor}\n\nPatients:\n{json.dumps(data, ensure_ascii=False, indent=2)}",
            ),
            timeout,
        )
    except (CollaboratorUnavailable, asyncio.TimeoutError) as exc:
        logger.error("Shift handover unavailable for %s: %s", corridor, exc)
        return AdvisoryNarrative(available=False, message=NO_ADVISORY_DATA)
    return AdvisoryNarrative(text=text)


async def unit_summary(report: CensusReport, timeout: float = ADVISORY_TIMEOUT_SECONDS) -> AdvisoryNarrative:
    if report.total == 0:
        return AdvisoryNarrative(available=False, message="No active patients")
    try:
        parsed = await asyncio.wait_for(
            get_llm_client().generate_json(
                system=UNIT_SUMMARY_PROMPT,
                user=f"Indicators:\n{report.model_dump_json(indent=2)}",
                response_model=UnitSummaryPayload,
                max_tokens=800,
            ),
            timeout,
        )
    except (CollaboratorUnavailable, asyncio.TimeoutError) as exc:
        logger.error("Unit summary unavailable: %s", exc)
        return AdvisoryNarrative(available=False, message=NO_ADVISORY_DATA)
    return AdvisoryNarrative(text=parsed.summary, improvements=parsed.improvements)
