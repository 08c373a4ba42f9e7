"""
Organisation hours repository (persistence).

Reads the `organisation_hours` table:
- tenant_id: organization reference
- weekly_schedule: JSON object {"monday": true, ..., "sunday": false}
- timezone: IANA timezone name (nullable)

A tenant without a row raises CalendarNotConfigured; Supabase error
responses raise CollaboratorUnavailable.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from domain.calendar import DEFAULT_TIMEZONE, MONDAY_TO_FRIDAY, OrganisationHours
from domain.errors import CalendarNotConfigured, CollaboratorUnavailable
from repositories.client import supabase

_HOURS_TABLE: str = "organisation_hours"


def _row_to_hours(row: Mapping[str, Any]) -> OrganisationHours:
    schedule = row.get("weekly_schedule") or MONDAY_TO_FRIDAY
    return OrganisationHours(
        tenant_id=str(row["tenant_id"]),
        weekly_schedule={str(day).lower(): bool(flag) for day, flag in schedule.items()},
        timezone=row.get("timezone") or None,
    )


def get_organisation_hours(tenant_id: str) -> OrganisationHours:
    """
    Fetch the working-hours calendar of one organization.

    Raises:
    - CalendarNotConfigured if the organization has no row.
    - CollaboratorUnavailable if Supabase returns an error response.
    """

    response = (
        supabase.table(_HOURS_TABLE)
        .select("tenant_id, weekly_schedule, timezone")
        .eq("tenant_id", tenant_id)
        .eq("is_deleted", False)
        .limit(1)
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise CollaboratorUnavailable("organisation hours", str(error))

    rows = getattr(response, "data", None) or []
    if not rows:
        raise CalendarNotConfigured(tenant_id)
    return _row_to_hours(rows[0])


class SupabaseOrganizationCalendar:
    """OrganizationCalendar reading organisation_hours on every call."""

    def is_working_day(self, tenant_id: str, day: date) -> bool:
        return get_organisation_hours(tenant_id).is_working_day(day)

    def get_timezone(self, tenant_id: str) -> str:
        return get_organisation_hours(tenant_id).timezone or DEFAULT_TIMEZONE


__all__ = [
    "SupabaseOrganizationCalendar",
    "get_organisation_hours",
]
