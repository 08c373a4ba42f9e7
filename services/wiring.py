"""
Process-wide service instances backed by the Supabase repositories.

Repositories are imported lazily: importing `repositories.client` requires
SUPABASE_URL / SUPABASE_KEY, and nothing should need them until a service is
first used.
"""

from __future__ import annotations

from functools import lru_cache

from services.automation_service import LeadAutomationService
from services.automation_settings import AutomationSettings
from services.event_dispatcher import LeadEventDispatcher
from services.lead_service import LeadService


@lru_cache(maxsize=1)
def get_settings() -> AutomationSettings:
    return AutomationSettings.from_env()


@lru_cache(maxsize=1)
def get_event_dispatcher() -> LeadEventDispatcher:
    from repositories.calendar_repository import SupabaseOrganizationCalendar
    from repositories.interaction_repository import SupabaseInteractionSource
    from repositories.lead_repository import SupabaseLeadStore
    from repositories.notification_repository import SupabaseNotifier
    from repositories.rewards_repository import SupabaseRewardsLedger

    return LeadEventDispatcher(
        SupabaseLeadStore(),
        SupabaseInteractionSource(),
        SupabaseOrganizationCalendar(),
        notifier=SupabaseNotifier(),
        rewards=SupabaseRewardsLedger(),
        max_workers=get_settings().event_workers,
    )


@lru_cache(maxsize=1)
def get_lead_service() -> LeadService:
    from repositories.calendar_repository import SupabaseOrganizationCalendar
    from repositories.lead_repository import SupabaseLeadStore

    return LeadService(
        SupabaseLeadStore(),
        get_event_dispatcher(),
        SupabaseOrganizationCalendar(),
    )


@lru_cache(maxsize=1)
def get_automation_service() -> LeadAutomationService:
    from repositories.calendar_repository import SupabaseOrganizationCalendar
    from repositories.interaction_repository import SupabaseInteractionSource
    from repositories.job_lease_repository import SupabaseJobLeaseManager
    from repositories.lead_repository import SupabaseLeadStore
    from repositories.notification_repository import SupabaseNotifier

    return LeadAutomationService(
        SupabaseLeadStore(),
        SupabaseInteractionSource(),
        SupabaseOrganizationCalendar(),
        SupabaseJobLeaseManager(),
        notifier=SupabaseNotifier(),
        settings=get_settings(),
    )


__all__ = [
    "get_automation_service",
    "get_event_dispatcher",
    "get_lead_service",
    "get_settings",
]
