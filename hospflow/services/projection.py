import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable, Iterable

from hospflow.config import NEW_RECORD_TTL_SECONDS, SEARCH_DEBOUNCE_MS
from hospflow.models.patient import Patient, PatientView, Situation, TransferPhase
from hospflow.services.pendency import buckets_for
from hospflow.services.transfer import awaiting_finalize, is_auto_eligible
from hospflow.services.venous_access import is_stale

logger = logging.getLogger(__name__)


class View(str, Enum):
    ACTIVE = "active"
    HISTORY = "history"
    TRANSFERS = "transfers"


def _aware(value: datetime) -> datetime:
    # Legacy documents may carry naive timestamps; they were written in UTC.
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def is_new(patient: Patient, now: datetime, ttl_seconds: int = NEW_RECORD_TTL_SECONDS) -> bool:
    if patient.is_transferred:
        return False
    return _aware(now) - _aware(patient.created_at) < timedelta(seconds=ttl_seconds)


def _in_view(patient: Patient, view: View) -> bool:
    if view == View.HISTORY:
        return patient.transfer_phase == TransferPhase.FINALIZED
    if view == View.TRANSFERS:
        return awaiting_finalize(patient)
    return patient.transfer_phase != TransferPhase.FINALIZED


def matches(patient: Patient, query: str) -> bool:
    """Case-insensitive name match, or substring match on the medical record number."""
    query = (query or "").strip()
    if not query:
        return True
    needle = query.casefold()
    if needle in patient.name.casefold() or needle in patient.social_name.casefold():
        return True
    return query in patient.medical_record


def sort_by_name(patients: Iterable[Patient]) -> list[Patient]:
    return sorted(patients, key=lambda p: (p.name.casefold(), p.name, p.id))


def project(
    patients: Iterable[Patient],
    view: View = View.ACTIVE,
    query: str = "",
    specialty: str | None = None,
) -> list[Patient]:
    selected = [
        p for p in patients
        if _in_view(p, view)
        and matches(p, query)
        and (not specialty or p.specialty == specialty)
    ]
    return sort_by_name(selected)


def eligible_for_prioritization(
    patients: Iterable[Patient],
    situation: Situation | None = None,
) -> list[Patient]:
    """Active patients still waiting for a bed decision, optionally one accommodation only."""
    eligible = [
        p for p in patients
        if p.transfer_phase == TransferPhase.ACTIVE
        and not is_auto_eligible(p)
        and (situation is None or p.situation == situation)
    ]
    return sort_by_name(eligible)


def to_view(patient: Patient, now: datetime) -> PatientView:
    active = not patient.is_transferred
    return PatientView(
        **patient.model_dump(),
        buckets=sorted(b.value for b in buckets_for(patient)) if active else [],
        venous_access_stale=active and is_stale(patient.venous_access, now),
        is_new=is_new(patient, now),
    )


@dataclass(frozen=True)
class SearchQuery:
    q: str = ""
    view: View = View.ACTIVE
    specialty: str | None = None


class SearchDebouncer:
    """Runs ``callback`` for the last query submitted once input has been quiet for ``delay_ms``.

    Earlier queries still waiting are dropped. Results are exactly what
    ``project`` returns for the surviving query; only timing changes.
    """

    def __init__(
        self,
        callback: Callable[[SearchQuery], Awaitable[None]],
        delay_ms: int = SEARCH_DEBOUNCE_MS,
    ) -> None:
        self._callback = callback
        self._delay = delay_ms / 1000.0
        self._pending: asyncio.Task | None = None

    def submit(self, query: SearchQuery) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._fire(query))

    async def _fire(self, query: SearchQuery) -> None:
        await asyncio.sleep(self._delay)
        await self._callback(query)

    async def flush(self) -> None:
        """Wait for the pending query, if any, to run."""
        if self._pending is not None:
            try:
                await self._pending
            except asyncio.CancelledError:
                logger.debug("Pending search superseded")

    async def close(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        self._pending = None
