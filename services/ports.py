"""
Collaborator contracts used by the lead services.

The Supabase repositories implement these; tests use in-memory fakes. Only
the calls the services actually make are listed here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Collection, List, Mapping, Optional, Protocol, Sequence

from domain.interaction import Interaction
from domain.lead import Lead, LeadPage, LeadStatus, StatusHistoryEntry

# Lease scope that conflicts with every tenant scope.
ALL_TENANTS_SCOPE = "all"


class LeadStore(Protocol):
    def get_lead(self, lead_id: int) -> Optional[Lead]:
        ...

    def list_leads_page(
        self,
        *,
        statuses: Sequence[LeadStatus],
        limit: int,
        after_id: Optional[int] = None,
        tenant_id: Optional[str] = None,
        follow_up_before: Optional[datetime] = None,
        last_contact_before: Optional[datetime] = None,
    ) -> LeadPage:
        """
        Non-deleted leads in `statuses`, ordered by lead_id, strictly after `after_id`.

        Rows that cannot be read as a Lead are reported in LeadPage.failures
        instead of failing the whole page.
        """
        ...

    def insert_lead(self, lead: Lead) -> Lead:
        """Persist a new lead and return it with its assigned id."""
        ...

    def write_fields(self, lead: Lead, fields: Collection[str]) -> None:
        """Persist the named fields of `lead`; other columns are left alone."""
        ...

    def append_change(self, lead_id: int, entry: StatusHistoryEntry) -> None:
        ...


class InteractionSource(Protocol):
    def list_interactions(self, lead_id: int) -> List[Interaction]:
        ...


class Notifier(Protocol):
    def notify(self, user_ids: Sequence[int], event_type: str, payload: Mapping[str, Any]) -> None:
        ...


class RewardsLedger(Protocol):
    def award_points(self, user_id: int, amount: int, reason: str) -> None:
        ...


class JobLeaseManager(Protocol):
    def try_acquire(self, scope: str, owner: str, ttl_seconds: int) -> bool:
        """Atomically claim `scope` for `owner`. False if a live lease conflicts."""
        ...

    def renew(self, scope: str, owner: str, ttl_seconds: int) -> bool:
        """Extend `owner`'s lease on `scope`. False if another run now holds the scope."""
        ...

    def release(self, scope: str, owner: str) -> None:
        ...


__all__ = [
    "ALL_TENANTS_SCOPE",
    "InteractionSource",
    "JobLeaseManager",
    "LeadStore",
    "Notifier",
    "RewardsLedger",
]
