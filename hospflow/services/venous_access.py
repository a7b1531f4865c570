"""Expiry check for peripheral venous access noted as free text.

Nurses record the access site with a partial date, e.g. ``"MSD 22/01"`` or
``"jugular 3-11"``. The year is never written, so it is inferred from the
clock: a day/month that would land in the future belongs to last year.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from hospflow.config import HOSPITAL_TIMEZONE, VENOUS_ACCESS_MAX_HOURS

logger = logging.getLogger(__name__)

_DAY_MONTH = re.compile(r"(\d{1,2})[/-](\d{1,2})")


@dataclass(frozen=True)
class AccessDate:
    day: int
    month: int


def parse_access_date(text: str | None) -> AccessDate | None:
    """Return the first day/month token in ``text``, or None if there is none."""
    if not text:
        return None
    match = _DAY_MONTH.search(text)
    if not match:
        return None
    return AccessDate(day=int(match.group(1)), month=int(match.group(2)))


def _candidate(access: AccessDate, year: int, tzinfo) -> datetime | None:
    try:
        return datetime(year, access.month, access.day, tzinfo=tzinfo)
    except ValueError:
        return None


def access_placed_at(text: str | None, now: datetime) -> datetime | None:
    access = parse_access_date(text)
    if access is None:
        return None
    placed = _candidate(access, now.year, now.tzinfo)
    if placed is not None and placed > now:
        placed = _candidate(access, now.year - 1, now.tzinfo)
    if placed is None:
        logger.debug("Ignoring impossible venous access date %s/%s", access.day, access.month)
    return placed


def is_stale(text: str | None, now: datetime, max_hours: int = VENOUS_ACCESS_MAX_HOURS) -> bool:
    """True when the access recorded in ``text`` is older than ``max_hours``.

    Text without a readable date, or with an impossible one (31/02), cannot be
    evaluated and is reported as not stale.
    """
    placed = access_placed_at(text, now)
    if placed is None:
        return False
    return now - placed > timedelta(hours=max_hours)


def hospital_now() -> datetime:
    return datetime.now(ZoneInfo(HOSPITAL_TIMEZONE))
