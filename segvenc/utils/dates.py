"""
Date arithmetic and risk tiers for certification expiry.

All functions work on calendar dates: time-of-day components are dropped
before any subtraction, so an expiry at 23:59 and one at 00:00 of the same
day yield the same offset.
"""
import enum
from datetime import date, datetime, timedelta
from typing import Optional, Union

DateLike = Union[str, date, datetime, None]


class Tier(enum.Enum):
    """Six-tier risk scheme, ordered from most to least urgent."""
    OVERDUE = 'overdue'
    DUE_TODAY = 'due_today'
    HIGH_RISK = 'high_risk'
    MEDIUM_RISK = 'medium_risk'
    LOW_RISK = 'low_risk'
    OK = 'ok'

    @property
    def label(self) -> str:
        return TIER_LABELS[self]


TIER_LABELS = {
    Tier.OVERDUE: 'Vencido',
    Tier.DUE_TODAY: 'Vence hoje',
    Tier.HIGH_RISK: 'Alto risco (até 7 dias)',
    Tier.MEDIUM_RISK: 'Médio risco (8 a 15 dias)',
    Tier.LOW_RISK: 'Baixo risco (16 a 30 dias)',
    Tier.OK: 'Ok',
}


class LegacyStatus(enum.Enum):
    """Three-tier scheme kept for legacy record exports and filters."""
    OVERDUE = 'Vencido'
    WITHIN_30 = 'Vence em 30 dias'
    OK = 'Ok'


def parse_date(value: DateLike) -> Optional[date]:
    """
    Normalize a date-ish value to a calendar date.

    Accepts ISO strings (``2025-01-10``, ``2025-01-10T15:30:00Z``),
    ``date`` and ``datetime`` objects. Empty values and unparseable
    strings return None.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def day_offset(target: DateLike, today: Optional[date] = None) -> int:
    """
    Signed number of calendar days from today to ``target``.

    Negative means the target date is in the past. Returns 0 when the
    target is empty or cannot be parsed.

    Args:
        target: Due date (ISO string, date or datetime)
        today: Date to use as reference (defaults to date.today())
    """
    target_date = parse_date(target)
    if target_date is None:
        return 0
    if today is None:
        today = date.today()
    elif isinstance(today, datetime):
        today = today.date()
    return (target_date - today).days


def tier_from_offset(offset: int) -> Tier:
    """Map a day offset to its risk tier."""
    if offset < 0:
        return Tier.OVERDUE
    if offset == 0:
        return Tier.DUE_TODAY
    if offset <= 7:
        return Tier.HIGH_RISK
    if offset <= 15:
        return Tier.MEDIUM_RISK
    if offset <= 30:
        return Tier.LOW_RISK
    return Tier.OK


def legacy_status_from_offset(offset: int) -> LegacyStatus:
    """Map a day offset to the coarse three-tier status."""
    if offset < 0:
        return LegacyStatus.OVERDUE
    if offset <= 30:
        return LegacyStatus.WITHIN_30
    return LegacyStatus.OK


def add_days(date_iso: DateLike, days: int) -> DateLike:
    """
    Add ``days`` calendar days to an ISO date.

    Returns the input unchanged when ``days`` is zero or the input is
    empty. ``date``/``datetime`` inputs come back as an ISO string, as
    does any string input.
    """
    if not date_iso or not days:
        return date_iso
    base = parse_date(date_iso)
    if base is None:
        return date_iso
    return (base + timedelta(days=days)).isoformat()


def to_iso(value: DateLike) -> str:
    """ISO ``YYYY-MM-DD`` for a date-ish value, empty string when absent."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ''
