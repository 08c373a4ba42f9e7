"""
Automation Orchestrator: periodic batch re-evaluation of active leads.

Handles:
- Keyset paging over active leads (non-deleted; PENDING, REVIEW, APPROVED)
- A bounded worker pool per page
- Per-lead failure isolation (failures are recorded, the run continues),
  including rows the store could not read as leads
- A job lease per scope so runs on the same tenant (or a global run) never
  overlap; the lease is renewed after every page
- The daily overdue follow-up sweep and the idle-lead sweep
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Mapping, Optional, Sequence

from domain.calendar import OrganizationCalendar
from domain.errors import BatchItemFailure
from domain.follow_up import next_follow_up
from domain.lead import ACTIVE_STATUSES, Lead, LeadPriority, LeadStatus
from domain.scoring import compute_score
from domain.time import whole_days_between
from services.automation_settings import AutomationSettings
from services.lead_pipeline import Scorer, persist_outcome, reprocess_lead, reschedule_if_needed
from services.ports import (
    ALL_TENANTS_SCOPE,
    InteractionSource,
    JobLeaseManager,
    LeadStore,
    Notifier,
)

logger = logging.getLogger(__name__)

BATCH_REASON = "Automated batch rescoring"

OVERDUE_STATUSES = (LeadStatus.PENDING, LeadStatus.REVIEW)
OVERDUE_ESCALATION_DAYS = 7
FOLLOW_UP_OVERDUE_EVENT = "LEAD_FOLLOW_UP_OVERDUE"

IDLE_STATUSES = (LeadStatus.PENDING, LeadStatus.REVIEW)
IDLE_AFTER = timedelta(days=2)
IDLE_LEAD_EVENT = "LEAD_IDLE_FOLLOW_UP"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _lead_name(lead: Lead) -> str:
    return lead.name or f"Lead #{lead.lead_id}"


@dataclass(frozen=True, slots=True)
class BatchRunResult:
    """
    Summary of one orchestrator run.

    processed_count: leads handled without error
    failures: one record per lead that failed (or could not be read)
    status_changes: leads whose status moved during the run
    skipped: True if another run held the lease and nothing was done
    lease_lost: True if the run stopped early because another run took the scope
    """

    scope: str
    processed_count: int = 0
    failures: tuple[BatchItemFailure, ...] = ()
    status_changes: int = 0
    skipped: bool = False
    lease_lost: bool = False
    started_at: Optional[datetime] = None

    @classmethod
    def skipped_run(cls, scope: str, started_at: datetime) -> "BatchRunResult":
        return cls(scope=scope, skipped=True, started_at=started_at)


@dataclass(slots=True)
class _RunTally:
    processed: int = 0
    status_changes: int = 0
    failures: List[BatchItemFailure] = field(default_factory=list)
    lease_lost: bool = False


class LeadAutomationService:
    def __init__(
        self,
        store: LeadStore,
        interactions: InteractionSource,
        calendar: Optional[OrganizationCalendar],
        leases: JobLeaseManager,
        notifier: Optional[Notifier] = None,
        settings: Optional[AutomationSettings] = None,
        scorer: Scorer = compute_score,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._interactions = interactions
        self._calendar = calendar
        self._leases = leases
        self._notifier = notifier
        self._settings = settings or AutomationSettings()
        self._scorer = scorer
        self._clock = clock

    # Batch reprocessing

    def run_batch(self, tenant_id: Optional[str] = None) -> BatchRunResult:
        """
        Re-score, re-classify and (where thresholds are crossed) progress every
        active lead in scope.

        Returns a skipped result without touching any lead if another run holds
        a conflicting lease.
        """

        return self._run_with_lease("batch", tenant_id, ACTIVE_STATUSES, {}, self._reprocess_one)

    def _reprocess_one(self, lead: Lead, as_of: datetime) -> bool:
        outcome = reprocess_lead(
            lead,
            self._interactions.list_interactions(lead.lead_id),
            self._calendar,
            as_of,
            reason=BATCH_REASON,
            allow_progression=True,
            scorer=self._scorer,
        )
        persist_outcome(self._store, outcome)
        if outcome.status_changed:
            logger.info(
                "Lead %s auto-processed: %s -> %s",
                lead.lead_id,
                outcome.previous_status.value,
                outcome.lead.status.value,
            )
        return outcome.status_changed

    # Overdue follow-ups

    def run_overdue_follow_up_sweep(self, tenant_id: Optional[str] = None) -> BatchRunResult:
        """
        Notify owners and assignees of PENDING/REVIEW leads whose follow-up date
        has passed; escalate leads more than a week overdue to HIGH priority and
        give them a new follow-up date.
        """

        return self._run_with_lease(
            "overdue",
            tenant_id,
            OVERDUE_STATUSES,
            {"follow_up_before": timedelta(0)},
            self._sweep_one,
        )

    def _sweep_one(self, lead: Lead, as_of: datetime) -> bool:
        if lead.next_follow_up_date is None:
            return False
        days_overdue = whole_days_between(lead.next_follow_up_date, as_of)

        recipients = [uid for uid in (lead.owner_id, *lead.assignee_ids) if uid is not None]
        if recipients and self._notifier is not None:
            self._notifier.notify(
                recipients,
                FOLLOW_UP_OVERDUE_EVENT,
                {
                    "lead_id": lead.lead_id,
                    "lead_name": _lead_name(lead),
                    "days_overdue": days_overdue,
                },
            )

        if days_overdue > OVERDUE_ESCALATION_DAYS and lead.priority is not LeadPriority.CRITICAL:
            escalated = reschedule_if_needed(
                lead.with_changes(priority=LeadPriority.HIGH, days_since_last_response=days_overdue),
                previous_temperature=lead.temperature,
                previous_priority=lead.priority,
                calendar=self._calendar,
                as_of=as_of,
            )
            self._store.write_fields(
                escalated, ("priority", "days_since_last_response", "next_follow_up_date")
            )
        return False

    # Idle leads

    def run_idle_lead_sweep(self, tenant_id: Optional[str] = None) -> BatchRunResult:
        """
        Ask owners to follow up on PENDING/REVIEW leads not contacted for two
        days or more. Leads never contacted are left to the overdue sweep.
        """

        return self._run_with_lease(
            "idle",
            tenant_id,
            IDLE_STATUSES,
            {"last_contact_before": IDLE_AFTER},
            self._remind_idle_one,
        )

    def _remind_idle_one(self, lead: Lead, as_of: datetime) -> bool:
        if lead.last_contact_date is None or self._notifier is None:
            return False
        recipients = [lead.owner_id] if lead.owner_id is not None else list(lead.assignee_ids)
        if not recipients:
            return False

        due_at = next_follow_up(
            lead.temperature, LeadPriority.HIGH, self._calendar, lead.tenant_id, as_of
        )
        self._notifier.notify(
            recipients,
            IDLE_LEAD_EVENT,
            {
                "lead_id": lead.lead_id,
                "lead_name": _lead_name(lead),
                "days_idle": whole_days_between(lead.last_contact_date, as_of),
                "status": lead.status.value,
                "temperature": lead.temperature.value,
                "due_at": due_at.isoformat(),
            },
        )
        return False

    # Shared run loop

    def _run_with_lease(
        self,
        job: str,
        tenant_id: Optional[str],
        statuses: Sequence[LeadStatus],
        cutoffs: Mapping[str, timedelta],
        handle: Callable[[Lead, datetime], bool],
    ) -> BatchRunResult:
        """
        `cutoffs` maps a store filter name to how far before the run start its
        cutoff lies.
        """

        scope = tenant_id or ALL_TENANTS_SCOPE
        owner = f"{job}-{uuid.uuid4().hex}"
        started_at = self._clock()
        ttl = self._settings.lease_ttl_seconds

        if not self._leases.try_acquire(scope, owner, ttl):
            logger.info("Skipping %s run for scope %s: another run holds the lease", job, scope)
            return BatchRunResult.skipped_run(scope, started_at)

        def keep_lease() -> bool:
            return self._leases.renew(scope, owner, ttl)

        filters = {name: started_at - offset for name, offset in cutoffs.items()}
        try:
            tally = self._run_pages(tenant_id, statuses, filters, handle, started_at, keep_lease)
        finally:
            self._leases.release(scope, owner)

        if tally.lease_lost:
            logger.warning(
                "Lead %s run for scope %s stopped early: lease taken over by another run",
                job,
                scope,
            )
        logger.info(
            "Lead %s run for scope %s completed: %d processed, %d failed, %d status changes",
            job,
            scope,
            tally.processed,
            len(tally.failures),
            tally.status_changes,
        )
        return BatchRunResult(
            scope=scope,
            processed_count=tally.processed,
            failures=tuple(tally.failures),
            status_changes=tally.status_changes,
            lease_lost=tally.lease_lost,
            started_at=started_at,
        )

    def _run_pages(
        self,
        tenant_id: Optional[str],
        statuses: Sequence[LeadStatus],
        filters: Mapping[str, datetime],
        handle: Callable[[Lead, datetime], bool],
        as_of: datetime,
        keep_lease: Callable[[], bool],
    ) -> _RunTally:
        tally = _RunTally()
        after_id: Optional[int] = None

        with ThreadPoolExecutor(max_workers=self._settings.max_workers) as pool:
            while True:
                page = self._store.list_leads_page(
                    statuses=statuses,
                    limit=self._settings.page_size,
                    after_id=after_id,
                    tenant_id=tenant_id,
                    **filters,
                )
                if page.row_count == 0:
                    break

                tally.failures.extend(page.failures)
                futures = [(lead, pool.submit(handle, lead, as_of)) for lead in page.leads]
                for lead, future in futures:
                    try:
                        changed = future.result()
                    except Exception as exc:
                        logger.error("Failed to process lead %s: %s", lead.lead_id, exc)
                        tally.failures.append(BatchItemFailure.from_exception(lead.lead_id, exc))
                        continue
                    tally.processed += 1
                    if changed:
                        tally.status_changes += 1

                after_id = page.last_id
                if page.row_count < self._settings.page_size:
                    break
                if not keep_lease():
                    tally.lease_lost = True
                    break

        return tally


__all__ = [
    "BatchRunResult",
    "LeadAutomationService",
]
