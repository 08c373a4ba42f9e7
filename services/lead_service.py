"""
Synchronous lead mutation path.

Handles:
- Creating leads with creation defaults and a first follow-up date
- Field updates with intent and lifecycle rules
- Manual status changes validated against the status graph
- Reactivation of DECLINED / CANCELLED leads

Every mutation is persisted before the Event Dispatcher is told about it.
Scoring, re-classification, notifications and rewards happen afterwards in
the dispatcher and can never fail the mutation.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Mapping, Optional

from domain.calendar import OrganizationCalendar
from domain.errors import (
    CollaboratorUnavailable,
    LeadEngineError,
    LeadNotFoundError,
    ValidationError,
)
from domain.follow_up import next_follow_up
from domain.lead import (
    REACTIVATABLE_STATUSES,
    Lead,
    LeadPriority,
    LeadStatus,
    LeadTemperature,
)
from domain.lead_defaults import LeadDraft, intent_adjustments, new_lead
from services.event_dispatcher import LeadEventDispatcher
from services.lead_pipeline import diff_fields, reschedule_if_needed
from services.ports import LeadStore

# Fields a caller may change through update_lead.
UPDATABLE_FIELDS = frozenset(
    {
        "branch_id",
        "name",
        "company_name",
        "email",
        "phone",
        "job_title",
        "source",
        "intent",
        "decision_maker_role",
        "industry",
        "business_size",
        "budget_range",
        "purchase_timeline",
        "user_quality_rating",
        "bant",
        "temperature",
        "priority",
        "owner_id",
        "assignee_ids",
        "last_contact_date",
        "status",
    }
)

# Columns update_lead may write besides the caller's fields.
_DERIVED_FIELDS = ("lifecycle_stage", "next_follow_up_date", "updated_at")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _store_errors() -> Iterator[None]:
    """Surface store failures as CollaboratorUnavailable."""

    try:
        yield
    except LeadEngineError:
        raise
    except RuntimeError as exc:
        raise CollaboratorUnavailable("lead store", str(exc)) from exc


class LeadService:
    def __init__(
        self,
        store: LeadStore,
        dispatcher: LeadEventDispatcher,
        calendar: Optional[OrganizationCalendar] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._calendar = calendar
        self._clock = clock

    @property
    def dispatcher(self) -> LeadEventDispatcher:
        return self._dispatcher

    def with_dispatcher(self, dispatcher: LeadEventDispatcher) -> "LeadService":
        return LeadService(self._store, dispatcher, self._calendar, self._clock)

    # Reads

    def get_lead(self, lead_id: int, tenant_id: str) -> Lead:
        """
        Raises LeadNotFoundError for unknown ids, deleted leads and leads of
        another tenant alike.
        """

        with _store_errors():
            lead = self._store.get_lead(lead_id)
        if lead is None or lead.is_deleted or lead.tenant_id != tenant_id:
            raise LeadNotFoundError(lead_id)
        return lead

    def view_lead(self, lead_id: int, tenant_id: str) -> Lead:
        """
        get_lead for a user-facing read. Returns the stored snapshot and queues a
        rescore, so the next read reflects scoring as of this view.
        """

        lead = self.get_lead(lead_id, tenant_id)
        self._dispatcher.on_lead_viewed(lead)
        return lead

    # Mutations

    def create_lead(self, draft: LeadDraft, actor_id: Optional[int] = None) -> Lead:
        now = self._clock()
        try:
            lead = new_lead(draft, now, actor_id)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        lead = lead.with_changes(
            next_follow_up_date=next_follow_up(
                lead.temperature, lead.priority, self._calendar, lead.tenant_id, now
            )
        )
        with _store_errors():
            saved = self._store.insert_lead(lead)

        self._dispatcher.on_lead_created(saved)
        return saved

    def update_lead(
        self,
        lead_id: int,
        tenant_id: str,
        changes: Mapping[str, Any],
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Lead:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")

        current = self.get_lead(lead_id, tenant_id)
        now = self._clock()

        field_changes = {k: v for k, v in changes.items() if k != "status"}
        field_changes.update(intent_adjustments(current.intent, changes.get("intent")))
        try:
            updated = current.with_changes(**field_changes, updated_at=now)
            requested_status = changes.get("status")
            if requested_status is not None and requested_status != current.status:
                updated = updated.with_status_change(
                    LeadStatus(requested_status),
                    at=now,
                    reason=reason or "Status updated",
                    actor_id=actor_id,
                )
        except ValidationError:
            raise
        except (ValueError, TypeError) as exc:
            raise ValidationError(str(exc)) from exc

        return self._commit(current, updated, now)

    def change_status(
        self,
        lead_id: int,
        tenant_id: str,
        new_status: LeadStatus,
        reason: Optional[str] = None,
        description: Optional[str] = None,
        next_step: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Lead:
        """Raises InvalidStatusTransition when the status graph forbids the move."""

        current = self.get_lead(lead_id, tenant_id)
        now = self._clock()
        updated = current.with_status_change(
            new_status,
            at=now,
            reason=reason,
            description=description,
            next_step=next_step,
            actor_id=actor_id,
        )
        return self._commit(current, updated, now)

    def reactivate(
        self,
        lead_id: int,
        tenant_id: str,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Lead:
        current = self.get_lead(lead_id, tenant_id)
        if current.status not in REACTIVATABLE_STATUSES:
            raise ValidationError(
                f"Lead {lead_id} is {current.status.value}; only declined or cancelled leads can be reactivated"
            )
        now = self._clock()
        updated = current.with_status_change(
            LeadStatus.PENDING,
            at=now,
            reason=reason or "Lead reactivated",
            next_step="Re-qualify lead and schedule first contact",
            actor_id=actor_id,
        ).with_changes(
            temperature=LeadTemperature.COLD,
            priority=LeadPriority.MEDIUM,
            next_follow_up_date=None,
        )
        return self._commit(current, updated, now)

    def _commit(self, current: Lead, updated: Lead, now: datetime) -> Lead:
        updated = reschedule_if_needed(
            updated,
            previous_temperature=current.temperature,
            previous_priority=current.priority,
            calendar=self._calendar,
            as_of=now,
        )

        changed = {
            name
            for name in UPDATABLE_FIELDS.union(_DERIVED_FIELDS)
            if getattr(current, name) != getattr(updated, name)
        } | set(diff_fields(current, updated))
        new_history = updated.change_history[len(current.change_history):]

        with _store_errors():
            if changed:
                self._store.write_fields(updated, changed)
            for entry in new_history:
                self._store.append_change(updated.lead_id, entry)

        self._dispatcher.on_lead_updated(updated, changed)
        if updated.status != current.status:
            self._dispatcher.on_lead_status_changed(updated, current.status, updated.status)
        return updated


__all__ = [
    "LeadService",
    "UPDATABLE_FIELDS",
]
