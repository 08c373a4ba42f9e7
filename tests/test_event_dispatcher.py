"""
Tests for `services/event_dispatcher.py`.

Covers contract rules:
- Events only hand work to the deferred executor; nothing runs inline.
- Deferred work re-scores the lead and persists the result.
- Creation notifies assignees and awards the owner creation points.
- Conversion notifies owner and assignees and awards conversion points.
- A view only refreshes scoring; nobody is notified or rewarded.
- Failures inside deferred work or while scheduling it are logged, never raised.
"""

from __future__ import annotations

import logging

from domain.lead import LeadStatus
from services.event_dispatcher import (
    LEAD_CONVERSION_POINTS,
    LEAD_CREATION_POINTS,
    LeadEventDispatcher,
)
from fakes import (
    FakeInteractionSource,
    InMemoryLeadStore,
    RecordingNotifier,
    RecordingRewards,
    RecordingSubmitter,
    make_lead,
    weekday_calendar,
)


def _dispatcher(store, submit, notifier=None, rewards=None, interactions=None):
    return LeadEventDispatcher(
        store,
        interactions or FakeInteractionSource(),
        weekday_calendar(),
        notifier=notifier,
        rewards=rewards,
        submit=submit,
    )


def test_events_are_deferred() -> None:
    """Verify no side effect happens until the submitted work runs."""

    lead = make_lead(owner_id=7, assignee_ids=(8,))
    store = InMemoryLeadStore([lead])
    notifier = RecordingNotifier()
    rewards = RecordingRewards()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, notifier, rewards)

    dispatcher.on_lead_created(lead)

    assert len(submit.calls) == 1
    assert notifier.sent == []
    assert rewards.awards == []
    assert store.writes == []


def test_created_event_scores_notifies_and_awards() -> None:
    """Verify creation work re-scores the lead, notifies assignees and awards the owner."""

    lead = make_lead(owner_id=7, assignee_ids=(8, 9), name="Thandi", email="t@example.com")
    store = InMemoryLeadStore([lead])
    notifier = RecordingNotifier()
    rewards = RecordingRewards()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, notifier, rewards)

    dispatcher.on_lead_created(lead)
    submit.run_all()

    saved = store.leads[1]
    assert saved.scoring_data is not None
    assert saved.scoring_data.score_history[-1].reason.startswith("Lead created")
    assert [(users, event) for users, event, _ in notifier.sent] == [((8, 9), "LEAD_ASSIGNED")]
    assert notifier.sent[0][2]["lead_name"] == "Thandi"
    assert rewards.awards == [(7, LEAD_CREATION_POINTS, "LEAD_CREATED")]


def test_update_notifies_only_when_assignees_change() -> None:
    """Verify LEAD_UPDATED goes out only for assignment changes."""

    lead = make_lead(owner_id=7, assignee_ids=(8,))
    store = InMemoryLeadStore([lead])
    notifier = RecordingNotifier()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, notifier)

    dispatcher.on_lead_updated(lead, {"name"})
    dispatcher.on_lead_updated(lead, {"assignee_ids"})
    submit.run_all()

    assert [(users, event) for users, event, _ in notifier.sent] == [((8,), "LEAD_UPDATED")]


def test_conversion_notifies_everyone_and_awards_points() -> None:
    """Verify conversion reaches the owner and assignees once each and awards points."""

    lead = make_lead(status=LeadStatus.CONVERTED, owner_id=7, assignee_ids=(7, 8))
    store = InMemoryLeadStore([lead])
    notifier = RecordingNotifier()
    rewards = RecordingRewards()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, notifier, rewards)

    dispatcher.on_lead_status_changed(lead, LeadStatus.APPROVED, LeadStatus.CONVERTED)
    submit.run_all()

    assert [(users, event) for users, event, _ in notifier.sent] == [((7, 8), "LEAD_CONVERTED")]
    assert rewards.awards == [(7, LEAD_CONVERSION_POINTS, "LEAD_CONVERTED")]
    assert LEAD_CONVERSION_POINTS == 30


def test_other_status_changes_award_nothing() -> None:
    """Verify only conversion earns points on a status change."""

    lead = make_lead(status=LeadStatus.REVIEW, owner_id=7)
    store = InMemoryLeadStore([lead])
    rewards = RecordingRewards()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, rewards=rewards)

    dispatcher.on_lead_status_changed(lead, LeadStatus.PENDING, LeadStatus.REVIEW)
    submit.run_all()

    assert rewards.awards == []


def test_handler_failure_is_logged_not_raised(caplog) -> None:
    """Verify a collaborator failure inside deferred work is swallowed and logged."""

    lead = make_lead(owner_id=7)
    store = InMemoryLeadStore([lead])
    interactions = FakeInteractionSource()
    interactions.failing.add(1)
    rewards = RecordingRewards()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, rewards=rewards, interactions=interactions)

    with caplog.at_level(logging.ERROR):
        dispatcher.on_lead_created(lead)
        submit.run_all()

    assert rewards.awards == []
    assert any("created event handler failed" in r.getMessage() for r in caplog.records)


def test_scheduling_failure_is_logged_not_raised(caplog) -> None:
    """Verify an executor that refuses work does not fail the caller."""

    def refusing_submit(fn, *args):
        raise RuntimeError("executor shut down")

    lead = make_lead()
    dispatcher = _dispatcher(InMemoryLeadStore([lead]), refusing_submit)

    with caplog.at_level(logging.ERROR):
        dispatcher.on_lead_updated(lead, {"name"})

    assert any("Could not schedule" in r.getMessage() for r in caplog.records)


def test_missing_lead_still_runs_side_effects() -> None:
    """Verify a lead deleted before the work runs falls back to the event snapshot."""

    lead = make_lead(owner_id=7)
    store = InMemoryLeadStore()
    rewards = RecordingRewards()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, rewards=rewards)

    dispatcher.on_lead_created(lead)
    submit.run_all()

    assert rewards.awards == [(7, LEAD_CREATION_POINTS, "LEAD_CREATED")]


def test_viewed_event_only_rescores() -> None:
    """Verify view work re-scores the lead without notifications or rewards."""

    lead = make_lead(owner_id=7, assignee_ids=(8,), name="Thandi")
    store = InMemoryLeadStore([lead])
    notifier = RecordingNotifier()
    rewards = RecordingRewards()
    submit = RecordingSubmitter()
    dispatcher = _dispatcher(store, submit, notifier, rewards)

    dispatcher.on_lead_viewed(lead)
    assert store.writes == []
    submit.run_all()

    assert store.leads[1].scoring_data is not None
    assert [lead_id for lead_id, _ in store.writes] == [1]
    assert notifier.sent == []
    assert rewards.awards == []
