"""
Domain: Organization working-hours calendar.

Contract excerpts implemented here:
- A calendar answers two questions per tenant: is a given local date a working
  day, and which IANA timezone the organization works in.
- A tenant without a calendar raises CalendarNotConfigured; callers treat that
  as "use the Monday-Friday rule", not as a failure.
- Weekly schedules are keyed by lower-case English day name
  ("monday" .. "sunday") with a boolean per day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional, Protocol

from .errors import CalendarNotConfigured  # type: ignore[import-untyped]

DEFAULT_TIMEZONE = "UTC"

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MONDAY_TO_FRIDAY: Mapping[str, bool] = {
    name: index < 5 for index, name in enumerate(DAY_NAMES)
}


class OrganizationCalendar(Protocol):
    def is_working_day(self, tenant_id: str, day: date) -> bool:
        ...

    def get_timezone(self, tenant_id: str) -> str:
        ...


@dataclass(frozen=True, slots=True)
class OrganisationHours:
    """Working days and timezone of one organization."""

    tenant_id: str
    weekly_schedule: Mapping[str, bool] = field(default_factory=lambda: dict(MONDAY_TO_FRIDAY))
    timezone: Optional[str] = None

    def __post_init__(self) -> None:
        unknown = set(self.weekly_schedule) - set(DAY_NAMES)
        if unknown:
            raise ValueError(f"Unknown day names in weekly_schedule: {sorted(unknown)}")

    def is_working_day(self, day: date) -> bool:
        return bool(self.weekly_schedule.get(DAY_NAMES[day.weekday()], False))


class StaticCalendar:
    """
    Calendar over a fixed mapping of tenant -> OrganisationHours.

    Used for tenants whose hours are already loaded, and as the in-memory
    calendar in tests.
    """

    def __init__(self, hours_by_tenant: Optional[Mapping[str, OrganisationHours]] = None):
        self._hours = dict(hours_by_tenant or {})

    def hours_for(self, tenant_id: str) -> OrganisationHours:
        try:
            return self._hours[tenant_id]
        except KeyError:
            raise CalendarNotConfigured(tenant_id) from None

    def is_working_day(self, tenant_id: str, day: date) -> bool:
        return self.hours_for(tenant_id).is_working_day(day)

    def get_timezone(self, tenant_id: str) -> str:
        return self.hours_for(tenant_id).timezone or DEFAULT_TIMEZONE


__all__ = [
    "DAY_NAMES",
    "DEFAULT_TIMEZONE",
    "MONDAY_TO_FRIDAY",
    "OrganisationHours",
    "OrganizationCalendar",
    "StaticCalendar",
]
