from collections import Counter
from datetime import datetime
from typing import Iterable

from hospflow.models.patient import Patient, PatientStatus, Pendency, Situation
from hospflow.models.workflow import CensusReport
from hospflow.services.pendency import has_open_pendency
from hospflow.services.venous_access import is_stale

BOTTLENECK_PENDENCIES = frozenset({
    Pendency.NO_MEDICAL_PRESCRIPTION,
    Pendency.AWAITING_LAB_EXAM,
})


def census(patients: Iterable[Patient], now: datetime) -> CensusReport:
    """Occupancy counters over the patients still in the corridor."""
    active = [p for p in patients if not p.is_transferred]
    statuses = Counter(p.status for p in active)
    specialties = Counter(p.specialty for p in active if p.specialty)

    return CensusReport(
        total=len(active),
        admitted=statuses[PatientStatus.ADMITTED],
        observation=statuses[PatientStatus.OBSERVATION],
        reassessment=statuses[PatientStatus.REASSESSMENT],
        with_pendencies=sum(1 for p in active if has_open_pendency(p)),
        stretchers=sum(1 for p in active if p.situation == Situation.STRETCHER),
        chairs=sum(1 for p in active if p.situation == Situation.CHAIR),
        bottlenecks=sum(1 for p in active if p.pendencies in BOTTLENECK_PENDENCIES),
        stale_venous_access=sum(1 for p in active if is_stale(p.venous_access, now)),
        by_specialty=dict(sorted(specialties.items(), key=lambda kv: (-kv[1], kv[0]))),
    )
