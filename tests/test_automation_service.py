"""
Tests for `services/automation_service.py`.

Covers contract rules:
- Every active lead in scope is reprocessed; pages are walked to the end.
- A failing lead is recorded and does not stop the run; so is a row the store
  could not read, and paging continues past it.
- Threshold crossings progress the status with a change-history entry.
- A second run over unchanged facts writes nothing.
- A run is skipped when another run holds a conflicting lease.
- The lease is renewed after every page; a run whose lease was taken over stops.
- Overdue PENDING/REVIEW leads are notified; more than a week overdue escalates to HIGH
  and gets a new follow-up date.
- Leads not contacted for two days get an idle follow-up reminder; nothing is written.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from domain.lead import LeadPriority, LeadStatus, LeadTemperature
from domain.scoring import ScoreBreakdown
from services.automation_service import (
    FOLLOW_UP_OVERDUE_EVENT,
    IDLE_LEAD_EVENT,
    LeadAutomationService,
)
from services.automation_settings import AutomationSettings
from services.job_lease import InMemoryJobLeaseManager
from services.ports import ALL_TENANTS_SCOPE
from fakes import (
    NOW,
    TENANT,
    FakeInteractionSource,
    InMemoryLeadStore,
    RecordingNotifier,
    make_lead,
    weekday_calendar,
)


def _fixed_score(total_parts=(10, 10, 10, 10)):
    breakdown = ScoreBreakdown(*total_parts)
    return lambda lead, interactions, as_of: breakdown


def _service(store, *, interactions=None, leases=None, notifier=None, page_size=50, scorer=None):
    kwargs = {"scorer": scorer} if scorer is not None else {}
    return LeadAutomationService(
        store,
        interactions or FakeInteractionSource(),
        weekday_calendar(),
        leases or InMemoryJobLeaseManager(lambda: NOW),
        notifier=notifier,
        settings=AutomationSettings(page_size=page_size, max_workers=2),
        clock=lambda: NOW,
        **kwargs,
    )


def test_batch_progresses_review_lead_to_approved() -> None:
    """Verify a high-scoring fresh REVIEW lead is approved and becomes HOT."""

    lead = make_lead(status=LeadStatus.REVIEW, updated_at=NOW - timedelta(days=1))
    store = InMemoryLeadStore([lead])
    service = _service(store, scorer=_fixed_score((25, 25, 25, 10)))

    result = service.run_batch(tenant_id=TENANT)

    saved = store.leads[1]
    assert result.processed_count == 1
    assert result.status_changes == 1
    assert result.failures == ()
    assert saved.status is LeadStatus.APPROVED
    assert saved.temperature is LeadTemperature.HOT
    assert saved.lead_score == 85
    assert saved.change_history[-1].old_status is LeadStatus.REVIEW
    assert saved.change_history[-1].next_step == "Immediate outreach - high-priority prospect"
    assert saved.next_follow_up_date is not None


def test_second_run_over_unchanged_facts_writes_nothing() -> None:
    """Verify the batch is idempotent once a lead has settled."""

    lead = make_lead(status=LeadStatus.REVIEW, updated_at=NOW - timedelta(days=1))
    store = InMemoryLeadStore([lead])
    service = _service(store, scorer=_fixed_score((25, 25, 25, 10)))

    service.run_batch()
    writes_after_first_run = len(store.writes)
    history_after_first_run = store.leads[1].change_history
    scores_after_first_run = store.leads[1].scoring_data.score_history

    result = service.run_batch()

    assert result.processed_count == 1
    assert result.status_changes == 0
    assert len(store.writes) == writes_after_first_run
    assert store.leads[1].change_history == history_after_first_run
    assert store.leads[1].scoring_data.score_history == scores_after_first_run


def test_failing_lead_is_recorded_and_run_continues() -> None:
    """Verify one unreachable lead does not stop the others from being processed."""

    store = InMemoryLeadStore([make_lead(lead_id=i) for i in (1, 2, 3)])
    interactions = FakeInteractionSource()
    interactions.failing.add(2)
    service = _service(store, interactions=interactions, scorer=_fixed_score())

    result = service.run_batch()

    assert result.processed_count == 2
    assert len(result.failures) == 1
    assert result.failures[0].lead_id == 2
    assert result.failures[0].error_type == "CollaboratorUnavailable"
    assert store.leads[1].lead_score == 40
    assert store.leads[2].lead_score == 0
    assert store.leads[3].lead_score == 40


def test_failing_write_is_recorded() -> None:
    """Verify a store failure for one lead becomes a failure record."""

    store = InMemoryLeadStore([make_lead(lead_id=i) for i in (1, 2)])
    store.fail_on_write.add(1)
    service = _service(store, scorer=_fixed_score())

    result = service.run_batch()

    assert result.processed_count == 1
    assert [f.lead_id for f in result.failures] == [1]
    assert result.failures[0].error_type == "RuntimeError"


def test_batch_walks_every_page() -> None:
    """Verify keyset paging reaches every active lead."""

    leads = [make_lead(lead_id=i) for i in range(1, 8)]
    store = InMemoryLeadStore(leads)
    service = _service(store, page_size=2, scorer=_fixed_score())

    result = service.run_batch()

    assert result.processed_count == 7
    assert all(lead.lead_score == 40 for lead in store.leads.values())


def test_batch_skips_closed_deleted_and_other_tenant_leads() -> None:
    """Verify only active, non-deleted leads of the requested tenant are touched."""

    store = InMemoryLeadStore(
        [
            make_lead(lead_id=1),
            make_lead(lead_id=2, status=LeadStatus.CONVERTED),
            make_lead(lead_id=3, is_deleted=True),
            make_lead(lead_id=4, tenant_id="org-2"),
        ]
    )
    service = _service(store, scorer=_fixed_score())

    result = service.run_batch(tenant_id=TENANT)

    assert result.processed_count == 1
    assert [lead_id for lead_id, _ in store.writes] == [1]


def test_run_is_skipped_while_lease_is_held() -> None:
    """Verify a run with a conflicting lease does nothing and reports skipped."""

    leases = InMemoryJobLeaseManager(lambda: NOW)
    assert leases.try_acquire(ALL_TENANTS_SCOPE, "other-run", 600)
    store = InMemoryLeadStore([make_lead()])
    service = _service(store, leases=leases, scorer=_fixed_score())

    result = service.run_batch(tenant_id=TENANT)

    assert result.skipped
    assert result.processed_count == 0
    assert store.writes == []


def test_lease_is_released_after_run() -> None:
    """Verify the scope is free again once a run has finished."""

    leases = InMemoryJobLeaseManager(lambda: NOW)
    service = _service(InMemoryLeadStore([make_lead()]), leases=leases, scorer=_fixed_score())

    service.run_batch(tenant_id=TENANT)

    assert leases.holder(TENANT) is None
    assert leases.try_acquire(ALL_TENANTS_SCOPE, "next-run", 600)


def test_overdue_sweep_notifies_and_escalates() -> None:
    """Verify overdue leads are notified and only week-old ones are escalated."""

    store = InMemoryLeadStore(
        [
            make_lead(lead_id=1, owner_id=7, assignee_ids=(8,), next_follow_up_date=NOW - timedelta(days=10)),
            make_lead(lead_id=2, owner_id=7, next_follow_up_date=NOW - timedelta(days=3)),
            make_lead(
                lead_id=3,
                owner_id=7,
                status=LeadStatus.REVIEW,
                priority=LeadPriority.CRITICAL,
                next_follow_up_date=NOW - timedelta(days=20),
            ),
            make_lead(lead_id=4, owner_id=7, next_follow_up_date=NOW + timedelta(days=1)),
            make_lead(lead_id=5, owner_id=7, status=LeadStatus.APPROVED, next_follow_up_date=NOW - timedelta(days=9)),
        ]
    )
    notifier = RecordingNotifier()
    service = _service(store, notifier=notifier)

    result = service.run_overdue_follow_up_sweep()

    assert result.processed_count == 3
    notified = {payload["lead_id"]: (users, event, payload) for users, event, payload in notifier.sent}
    assert set(notified) == {1, 2, 3}
    assert notified[1][0] == (7, 8)
    assert notified[1][1] == FOLLOW_UP_OVERDUE_EVENT
    assert notified[1][2]["days_overdue"] == 10

    assert store.leads[1].priority is LeadPriority.HIGH
    assert store.leads[1].days_since_last_response == 10
    assert store.leads[2].priority is LeadPriority.MEDIUM
    assert store.leads[3].priority is LeadPriority.CRITICAL
    assert store.leads[5].priority is LeadPriority.MEDIUM
    assert store.leads[1].next_follow_up_date == datetime(2025, 1, 9, 9, 0, tzinfo=timezone.utc)
    assert store.leads[2].next_follow_up_date == NOW - timedelta(days=3)


def test_unreadable_rows_are_recorded_and_paging_continues() -> None:
    """Verify rows that fail conversion become failures without ending the run."""

    store = InMemoryLeadStore([make_lead(lead_id=i) for i in (1, 2, 3)])
    store.unreadable.update({1, 2})
    service = _service(store, page_size=2, scorer=_fixed_score())

    result = service.run_batch()

    assert result.processed_count == 1
    assert [f.lead_id for f in result.failures] == [1, 2]
    assert store.leads[3].lead_score == 40
    assert store.leads[1].lead_score == 0


class _Clock:
    def __init__(self) -> None:
        self.now = NOW

    def __call__(self):
        return self.now


def test_lease_is_renewed_while_run_outlasts_ttl() -> None:
    """Verify a run longer than the lease TTL keeps out overlapping runs."""

    clock = _Clock()
    leases = InMemoryJobLeaseManager(clock)
    store = InMemoryLeadStore([make_lead(lead_id=i) for i in (1, 2, 3)])
    overlapping = []

    def slow_scorer(lead, interactions, as_of):
        overlapping.append(_service(store, leases=leases, scorer=_fixed_score()).run_batch())
        clock.now += timedelta(minutes=40)
        return ScoreBreakdown(10, 10, 10, 10)

    service = _service(store, leases=leases, page_size=1, scorer=slow_scorer)

    result = service.run_batch()

    assert clock.now - NOW > timedelta(seconds=AutomationSettings().lease_ttl_seconds)
    assert result.processed_count == 3
    assert not result.lease_lost
    assert len(overlapping) == 3
    assert all(run.skipped for run in overlapping)


def test_run_stops_when_lease_is_taken_over() -> None:
    """Verify a run whose lease lapsed and was claimed elsewhere stops after the page."""

    clock = _Clock()
    leases = InMemoryJobLeaseManager(clock)
    store = InMemoryLeadStore([make_lead(lead_id=i) for i in (1, 2, 3)])

    def stalled_scorer(lead, interactions, as_of):
        clock.now += timedelta(hours=2)
        assert leases.try_acquire(ALL_TENANTS_SCOPE, "other-run", 3600)
        return ScoreBreakdown(10, 10, 10, 10)

    service = _service(store, leases=leases, page_size=1, scorer=stalled_scorer)

    result = service.run_batch()

    assert result.lease_lost
    assert result.processed_count == 1
    assert store.leads[2].lead_score == 0
    assert leases.holder(ALL_TENANTS_SCOPE) == "other-run"


def test_idle_sweep_reminds_owner_of_uncontacted_leads() -> None:
    """Verify PENDING/REVIEW leads idle for two days get a reminder due next working day."""

    store = InMemoryLeadStore(
        [
            make_lead(lead_id=1, owner_id=7, assignee_ids=(8,), last_contact_date=NOW - timedelta(days=3)),
            make_lead(
                lead_id=2,
                status=LeadStatus.REVIEW,
                assignee_ids=(8, 9),
                last_contact_date=NOW - timedelta(days=5),
            ),
            make_lead(lead_id=3, owner_id=7, last_contact_date=NOW - timedelta(days=1)),
            make_lead(lead_id=4, owner_id=7),
            make_lead(lead_id=5, owner_id=7, status=LeadStatus.APPROVED, last_contact_date=NOW - timedelta(days=10)),
        ]
    )
    notifier = RecordingNotifier()
    service = _service(store, notifier=notifier)

    result = service.run_idle_lead_sweep()

    assert result.processed_count == 2
    assert store.writes == []
    notified = {payload["lead_id"]: (users, event, payload) for users, event, payload in notifier.sent}
    assert set(notified) == {1, 2}
    assert notified[1][0] == (7,)
    assert notified[1][1] == IDLE_LEAD_EVENT
    assert notified[1][2]["days_idle"] == 3
    assert notified[1][2]["due_at"] == "2025-01-09T09:00:00+00:00"
    assert notified[2][0] == (8, 9)
    assert notified[2][2]["status"] == "REVIEW"
