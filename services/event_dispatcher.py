"""
Event Dispatcher: post-commit side effects of lead mutations.

Contract excerpts implemented here:
- on_lead_created / on_lead_updated / on_lead_status_changed / on_lead_viewed
  are fire-and-forget. They only hand work to a deferred executor; the caller's
  response never waits on it.
- They are called after the mutation has been persisted.
- Any error inside the deferred work (or while submitting it) is caught and
  logged, never raised to the caller.

Deferred work per event:
- every event: reload the lead, then re-score, re-classify and re-schedule it
- viewed: nothing beyond the refresh; the response already went out with
  the stored snapshot
- created: notify assignees (LEAD_ASSIGNED), award the owner creation points
- updated with new assignees: notify them (LEAD_UPDATED)
- status changed to CONVERTED: notify owner and assignees (LEAD_CONVERTED),
  award the owner conversion points
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Collection, Optional

from domain.calendar import OrganizationCalendar
from domain.lead import Lead, LeadStatus
from services.lead_pipeline import persist_outcome, reprocess_lead
from services.ports import InteractionSource, LeadStore, Notifier, RewardsLedger

logger = logging.getLogger(__name__)

LEAD_CREATION_POINTS = 10
LEAD_CONVERSION_POINTS = LEAD_CREATION_POINTS * 3

LEAD_ASSIGNED_EVENT = "LEAD_ASSIGNED"
LEAD_UPDATED_EVENT = "LEAD_UPDATED"
LEAD_CONVERTED_EVENT = "LEAD_CONVERTED"

Submit = Callable[..., Any]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _recipients(lead: Lead) -> list[int]:
    seen: list[int] = []
    for uid in (lead.owner_id, *lead.assignee_ids):
        if uid is not None and uid not in seen:
            seen.append(uid)
    return seen


class LeadEventDispatcher:
    def __init__(
        self,
        store: LeadStore,
        interactions: InteractionSource,
        calendar: Optional[OrganizationCalendar],
        notifier: Optional[Notifier] = None,
        rewards: Optional[RewardsLedger] = None,
        submit: Optional[Submit] = None,
        max_workers: int = 4,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._interactions = interactions
        self._calendar = calendar
        self._notifier = notifier
        self._rewards = rewards
        self._clock = clock
        self._executor: Optional[ThreadPoolExecutor] = None
        if submit is None:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="lead-events"
            )
            submit = self._executor.submit
        self._submit = submit

    def with_submitter(self, submit: Submit) -> "LeadEventDispatcher":
        """Same collaborators, different deferred executor (e.g. FastAPI BackgroundTasks)."""

        return LeadEventDispatcher(
            self._store,
            self._interactions,
            self._calendar,
            notifier=self._notifier,
            rewards=self._rewards,
            submit=submit,
            clock=self._clock,
        )

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

    # Public events

    def on_lead_created(self, lead: Lead) -> None:
        self._dispatch("created", self._handle_created, lead)

    def on_lead_updated(self, lead: Lead, changed_fields: Collection[str]) -> None:
        self._dispatch("updated", self._handle_updated, lead, frozenset(changed_fields))

    def on_lead_status_changed(
        self, lead: Lead, from_status: LeadStatus, to_status: LeadStatus
    ) -> None:
        self._dispatch("status_changed", self._handle_status_changed, lead, from_status, to_status)

    def on_lead_viewed(self, lead: Lead) -> None:
        self._dispatch("viewed", self._handle_viewed, lead)

    # Plumbing

    def _dispatch(self, event: str, handler: Callable[..., None], *args: Any) -> None:
        try:
            self._submit(self._run_guarded, event, handler, *args)
        except Exception:
            logger.exception("Could not schedule lead %s event", event)

    def _run_guarded(self, event: str, handler: Callable[..., None], *args: Any) -> None:
        try:
            handler(*args)
        except Exception:
            logger.exception("Lead %s event handler failed", event)

    def _refresh(self, lead_id: int, reason: str) -> Optional[Lead]:
        current = self._store.get_lead(lead_id)
        if current is None:
            logger.warning("Lead %s disappeared before post-commit processing", lead_id)
            return None
        outcome = reprocess_lead(
            current,
            self._interactions.list_interactions(lead_id),
            self._calendar,
            self._clock(),
            reason=reason,
        )
        persist_outcome(self._store, outcome)
        return outcome.lead

    def _notify(self, user_ids: list[int], event_type: str, lead: Lead) -> None:
        if not user_ids or self._notifier is None:
            return
        self._notifier.notify(
            user_ids,
            event_type,
            {
                "lead_id": lead.lead_id,
                "lead_name": lead.name or f"Lead #{lead.lead_id}",
                "status": lead.status.value,
                "temperature": lead.temperature.value,
                "lead_score": lead.lead_score,
            },
        )

    def _award(self, lead: Lead, amount: int, reason: str) -> None:
        if lead.owner_id is None or self._rewards is None:
            return
        self._rewards.award_points(lead.owner_id, amount, reason)

    # Handlers

    def _handle_created(self, lead: Lead) -> None:
        refreshed = self._refresh(lead.lead_id, "Lead created") or lead
        self._notify(list(refreshed.assignee_ids), LEAD_ASSIGNED_EVENT, refreshed)
        self._award(refreshed, LEAD_CREATION_POINTS, "LEAD_CREATED")

    def _handle_updated(self, lead: Lead, changed_fields: frozenset[str]) -> None:
        refreshed = self._refresh(lead.lead_id, "Lead updated") or lead
        if "assignee_ids" in changed_fields:
            self._notify(list(refreshed.assignee_ids), LEAD_UPDATED_EVENT, refreshed)

    def _handle_viewed(self, lead: Lead) -> None:
        self._refresh(lead.lead_id, "Lead viewed")

    def _handle_status_changed(
        self, lead: Lead, from_status: LeadStatus, to_status: LeadStatus
    ) -> None:
        refreshed = self._refresh(lead.lead_id, f"Status changed to {to_status.value}") or lead
        if to_status is LeadStatus.CONVERTED:
            self._notify(_recipients(refreshed), LEAD_CONVERTED_EVENT, refreshed)
            self._award(refreshed, LEAD_CONVERSION_POINTS, "LEAD_CONVERTED")


__all__ = [
    "LEAD_CONVERSION_POINTS",
    "LEAD_CREATION_POINTS",
    "LeadEventDispatcher",
]
