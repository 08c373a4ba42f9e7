"""
Domain: Follow-Up Scheduler.

Contract excerpts implemented here:
- next_follow_up(temperature, priority, calendar, tenant_id, now) always
  returns a UTC timestamp strictly after `now`.
- Day selection happens in the organization's local timezone: start from
  local "tomorrow", skip Sunday outright, then walk up to 7 days asking the
  calendar. If no day qualifies, use the next Monday.
- No calendar for the tenant -> Monday-Friday rule (Saturday +2, Sunday +1).
- A failing calendar never fails the caller: the error is logged and the
  Monday-Friday rule is used. A failing timezone lookup falls back to UTC.
- Slot choice is a total function of (temperature, priority, local hour).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from .calendar import OrganizationCalendar  # type: ignore[import-untyped]
from .errors import CalendarNotConfigured  # type: ignore[import-untyped]
from .lead import LeadPriority, LeadTemperature  # type: ignore[import-untyped]
from .time import require_utc_timestamp  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

CALENDAR_SEARCH_DAYS = 7

URGENT_HOT_SLOT = time(8, 0)
URGENT_SLOT = time(9, 0)
HOT_SLOT = time(9, 30)
WARM_MORNING_SLOT = time(10, 0)
WARM_AFTERNOON_SLOT = time(14, 0)
COLD_SLOT = time(11, 0)
FROZEN_SLOT = time(15, 0)
DEFAULT_SLOT = time(10, 0)

_URGENT_PRIORITIES = frozenset({LeadPriority.HIGH, LeadPriority.CRITICAL})
_SUNDAY = 6
_SATURDAY = 5


def follow_up_slot(temperature: object, priority: object, local_hour: int) -> time:
    """
    Time of day for the next contact.

    WARM leads are spread between a morning and an afternoon slot depending on
    when the schedule is computed.
    """

    if priority in _URGENT_PRIORITIES:
        return URGENT_HOT_SLOT if temperature is LeadTemperature.HOT else URGENT_SLOT
    if temperature is LeadTemperature.HOT:
        return HOT_SLOT
    if temperature is LeadTemperature.WARM:
        if local_hour < 10:
            return WARM_MORNING_SLOT
        if local_hour < 14:
            return WARM_AFTERNOON_SLOT
        return WARM_MORNING_SLOT
    if temperature is LeadTemperature.COLD:
        return COLD_SLOT
    if temperature is LeadTemperature.FROZEN:
        return FROZEN_SLOT
    return DEFAULT_SLOT


def weekday_fallback(start: date) -> date:
    """Monday-Friday rule: Saturday moves two days, Sunday one."""

    if start.weekday() == _SATURDAY:
        return start + timedelta(days=2)
    if start.weekday() == _SUNDAY:
        return start + timedelta(days=1)
    return start


def next_monday(start: date) -> date:
    """First Monday strictly after `start`."""

    return start + timedelta(days=7 - start.weekday())


def _resolve_timezone(
    calendar: Optional[OrganizationCalendar], tenant_id: str
) -> tuple[tzinfo, bool]:
    """Return (timezone, calendar_configured)."""

    if calendar is None:
        return timezone.utc, False
    try:
        return ZoneInfo(calendar.get_timezone(tenant_id)), True
    except CalendarNotConfigured:
        return timezone.utc, False
    except Exception as exc:
        logger.warning(
            "Timezone lookup failed for tenant %s, using UTC: %s", tenant_id, exc
        )
        return timezone.utc, True


def choose_working_day(
    calendar: Optional[OrganizationCalendar], tenant_id: str, start: date
) -> date:
    """First working day on or after `start` per the tenant's calendar."""

    if calendar is None:
        return weekday_fallback(start)

    candidate = start
    try:
        for _ in range(CALENDAR_SEARCH_DAYS):
            if candidate.weekday() != _SUNDAY and calendar.is_working_day(tenant_id, candidate):
                return candidate
            candidate += timedelta(days=1)
    except CalendarNotConfigured:
        return weekday_fallback(start)
    except Exception as exc:
        logger.warning(
            "Calendar lookup failed for tenant %s, using Monday-Friday: %s", tenant_id, exc
        )
        return weekday_fallback(start)

    logger.info(
        "No working day found within %d days for tenant %s, using next Monday",
        CALENDAR_SEARCH_DAYS,
        tenant_id,
    )
    return next_monday(start)


def next_follow_up(
    temperature: LeadTemperature,
    priority: LeadPriority,
    calendar: Optional[OrganizationCalendar],
    tenant_id: str,
    now: datetime,
) -> datetime:
    """
    Next recommended contact timestamp (UTC).

    Never raises because of the calendar; `now` must be UTC.
    """

    require_utc_timestamp("now", now)

    tz, configured = _resolve_timezone(calendar, tenant_id)
    local_now = now.astimezone(tz)
    tomorrow = local_now.date() + timedelta(days=1)

    day = choose_working_day(calendar if configured else None, tenant_id, tomorrow)
    slot = follow_up_slot(temperature, priority, local_now.hour)

    return datetime.combine(day, slot, tzinfo=tz).astimezone(timezone.utc)


__all__ = [
    "CALENDAR_SEARCH_DAYS",
    "choose_working_day",
    "follow_up_slot",
    "next_follow_up",
    "next_monday",
    "weekday_fallback",
]
