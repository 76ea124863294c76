"""Time-window and status-transition rules shared by both repositories."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


REVIEWABLE_STATUSES: set[str] = {"pending"}
_TRANSACTION_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}
_PERIODS: set[str] = {"daily", "monthly", "yearly"}


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def expiry_cutoff(*, now: datetime, days_ahead: int) -> datetime:
    """Latest end date that still counts as "expiring" relative to now."""
    return as_utc(now) + timedelta(days=days_ahead)


def is_expiring(*, status: str | None, end_date: datetime | None, cutoff: datetime) -> bool:
    # Agreements already past end_date still match while they remain "active".
    if status != "active" or end_date is None:
        return False
    return as_utc(end_date) <= cutoff


def start_of_local_day(*, now: datetime, tz_name: str) -> datetime:
    """Local midnight of the day containing ``now``, expressed in UTC."""
    local_now = as_utc(now).astimezone(ZoneInfo(tz_name))
    local_midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return local_midnight.astimezone(timezone.utc)


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def advance_reset_date(reset_date: datetime, period: str | None) -> datetime:
    """Move a reset date forward by exactly one quota period."""
    normalized = (period or "monthly").strip().lower()
    if normalized not in _PERIODS:
        raise ValueError(f"Unknown quota period: {period}")
    if normalized == "daily":
        return reset_date + timedelta(days=1)
    if normalized == "monthly":
        return _add_months(reset_date, 1)
    return _add_months(reset_date, 12)


def next_reset_date(*, reset_date: datetime, period: str | None, as_of: datetime) -> datetime:
    """Roll a due reset date forward until it lies strictly after ``as_of``."""
    current = as_utc(reset_date)
    cutoff = as_utc(as_of)
    while current <= cutoff:
        current = advance_reset_date(current, period)
    return current


def ensure_reviewable(*, current_status: str | None, next_status: str) -> str:
    """Requests and documents are reviewed once: pending -> approved | rejected."""
    if next_status not in {"approved", "rejected"}:
        raise ValueError(f"Invalid review decision: {next_status}")
    if current_status not in REVIEWABLE_STATUSES:
        raise ValueError(f"Already reviewed: {current_status} -> {next_status}")
    return next_status


def validate_transaction_transition(*, current_status: str | None, next_status: str) -> str:
    current = (current_status or "pending").strip().lower()
    nxt = next_status.strip().lower()
    allowed = _TRANSACTION_TRANSITIONS.get(current, set())
    if nxt not in allowed:
        raise ValueError(f"Invalid transaction status transition: {current} -> {nxt}")
    return nxt


def ensure_agreement_period(*, start_date: datetime | None, end_date: datetime | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValueError("end_date must not be earlier than start_date")
