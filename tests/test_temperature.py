"""
Tests for `domain/temperature.py`.

Covers contract rules:
- Status rules: APPROVED promotion, CONVERTED HOT, REVIEW and PENDING score bands,
  DECLINED / CANCELLED revival threshold.
- Velocity overlays: fast status change on APPROVED / REVIEW forces HOT,
  interaction counts promote one step.
- The status-change clock is the latest change-history entry; field edits do
  not restart it.
- Decay only lowers the temperature and is evaluated last.
- DECLINED / CANCELLED are never HOT; APPROVED / CONVERTED never COLD or FROZEN.
- Classification is idempotent for unchanged inputs.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from domain.lead import LeadStatus, LeadTemperature, StatusHistoryEntry
from domain.temperature import apply_decay, next_temperature
from fakes import NOW, make_interactions, make_lead

HOT = LeadTemperature.HOT
WARM = LeadTemperature.WARM
COLD = LeadTemperature.COLD
FROZEN = LeadTemperature.FROZEN


def _lead(status: LeadStatus, score: int, idle: timedelta, **extra):
    """A lead whose status last changed `idle` ago, untouched since."""
    return make_lead(
        status=status,
        lead_score=score,
        created_at=NOW - idle - timedelta(days=1),
        updated_at=NOW - idle,
        change_history=(StatusHistoryEntry(timestamp=NOW - idle, new_status=status),),
        **extra,
    )


def test_stale_low_score_pending_lead_is_frozen() -> None:
    """Verify PENDING / score 20 / updated 10 days ago resolves to FROZEN."""

    lead = _lead(LeadStatus.PENDING, 20, timedelta(days=10))

    assert next_temperature(lead, [], NOW) is FROZEN


@pytest.mark.parametrize(
    ("score", "expected"),
    [(85, HOT), (80, HOT), (65, WARM), (45, COLD), (39, FROZEN)],
)
def test_review_is_score_banded(score: int, expected: LeadTemperature) -> None:
    """Verify REVIEW bands >=80 HOT, >=60 WARM, >=40 COLD, else FROZEN."""

    lead = _lead(LeadStatus.REVIEW, score, timedelta(days=1))

    assert next_temperature(lead, [], NOW) is expected


@pytest.mark.parametrize(
    ("score", "expected"),
    [(80, HOT), (60, WARM), (30, COLD), (10, FROZEN)],
)
def test_pending_is_score_banded(score: int, expected: LeadTemperature) -> None:
    """Verify PENDING bands >=75 / >=50 / >=25 within the first week."""

    lead = _lead(LeadStatus.PENDING, score, timedelta(days=2))

    assert next_temperature(lead, [], NOW) is expected


def test_fresh_pending_lead_is_at_least_warm() -> None:
    """Verify a PENDING status change within 2 hours biases up to WARM."""

    lead = _lead(LeadStatus.PENDING, 5, timedelta(hours=1))

    assert next_temperature(lead, [], NOW) is WARM


def test_week_old_pending_lead_is_capped_at_cold() -> None:
    """Verify a PENDING lead idle for more than 168 hours is at most COLD."""

    lead = _lead(LeadStatus.PENDING, 95, timedelta(hours=169))

    assert next_temperature(lead, [], NOW) is COLD


@pytest.mark.parametrize(
    ("current", "score", "idle", "expected"),
    [
        (COLD, 50, timedelta(hours=30), WARM),
        (COLD, 50, timedelta(hours=10), HOT),
        (FROZEN, 75, timedelta(days=5), HOT),
        (WARM, 20, timedelta(hours=3), HOT),
        (WARM, 20, timedelta(days=3), WARM),
    ],
)
def test_approved_rules(
    current: LeadTemperature, score: int, idle: timedelta, expected: LeadTemperature
) -> None:
    """Verify APPROVED promotion from COLD/FROZEN and the fast-approval boost."""

    lead = _lead(LeadStatus.APPROVED, score, idle, temperature=current)

    assert next_temperature(lead, [], NOW) is expected


@pytest.mark.parametrize("status", [LeadStatus.APPROVED, LeadStatus.CONVERTED])
@pytest.mark.parametrize("current", list(LeadTemperature))
@pytest.mark.parametrize("idle_days", [0, 20, 45, 90])
def test_approved_and_converted_never_cold(
    status: LeadStatus, current: LeadTemperature, idle_days: int
) -> None:
    """Verify APPROVED / CONVERTED leads are never classified COLD or FROZEN."""

    lead = _lead(status, 5, timedelta(days=idle_days), temperature=current)

    assert next_temperature(lead, [], NOW) in (HOT, WARM)


def test_converted_is_hot_while_fresh() -> None:
    """Verify CONVERTED is HOT before any decay applies."""

    assert next_temperature(_lead(LeadStatus.CONVERTED, 0, timedelta(days=3)), [], NOW) is HOT


@pytest.mark.parametrize("status", [LeadStatus.DECLINED, LeadStatus.CANCELLED])
def test_closed_leads_never_hot(status: LeadStatus) -> None:
    """Verify DECLINED / CANCELLED stay below HOT even with heavy velocity."""

    busy = make_interactions(1, [NOW - timedelta(hours=h) for h in range(1, 11)])

    assert next_temperature(_lead(status, 95, timedelta(hours=1)), busy, NOW) is not HOT
    assert next_temperature(_lead(status, 65, timedelta(days=2)), [], NOW) is COLD
    assert next_temperature(_lead(status, 40, timedelta(days=2)), [], NOW) is FROZEN


def test_fast_review_change_forces_hot() -> None:
    """Verify a REVIEW status change within 6 hours forces HOT regardless of score."""

    lead = _lead(LeadStatus.REVIEW, 10, timedelta(hours=2))

    assert next_temperature(lead, [], NOW) is HOT


def test_field_edit_does_not_count_as_status_change() -> None:
    """Verify a REVIEW lead edited an hour ago but moved three days ago gets no fast-change boost."""

    lead = _lead(LeadStatus.REVIEW, 10, timedelta(days=3)).with_changes(updated_at=NOW - timedelta(hours=1))

    assert next_temperature(lead, [], NOW) is FROZEN


def test_lead_without_history_gets_no_freshness_bias() -> None:
    """Verify a PENDING lead with no recorded status change is classified on score alone."""

    lead = _lead(LeadStatus.PENDING, 5, timedelta(hours=1)).with_changes(change_history=())

    assert next_temperature(lead, [], NOW) is FROZEN


def test_interaction_velocity_promotes_one_step() -> None:
    """Verify >=5 recent interactions promote COLD to WARM and >=8 promote WARM to HOT."""

    five = make_interactions(1, [NOW - timedelta(days=d) for d in range(1, 6)])
    eight = make_interactions(1, [NOW - timedelta(hours=6 * h) for h in range(1, 9)])

    assert next_temperature(_lead(LeadStatus.PENDING, 30, timedelta(days=3)), five, NOW) is WARM
    assert next_temperature(_lead(LeadStatus.PENDING, 55, timedelta(days=3)), eight, NOW) is HOT
    # COLD only climbs one step even with enough interactions for two.
    assert next_temperature(_lead(LeadStatus.PENDING, 30, timedelta(days=3)), eight, NOW) is WARM


def test_interactions_older_than_a_week_do_not_count() -> None:
    """Verify velocity only counts the trailing 7 days of interactions."""

    old = make_interactions(1, [NOW - timedelta(days=8 + d) for d in range(10)])

    assert next_temperature(_lead(LeadStatus.PENDING, 30, timedelta(days=3)), old, NOW) is COLD


@pytest.mark.parametrize(
    ("start", "idle_days", "expected"),
    [
        (HOT, 14, HOT),
        (HOT, 15, WARM),
        (HOT, 31, COLD),
        (WARM, 31, COLD),
        (HOT, 61, FROZEN),
        (COLD, 61, FROZEN),
        (FROZEN, 20, FROZEN),
        (COLD, 15, COLD),
    ],
)
def test_decay_only_lowers(start: LeadTemperature, idle_days: int, expected: LeadTemperature) -> None:
    """Verify decay ceilings at 14 / 30 / 60 idle days and that decay never raises."""

    assert apply_decay(start, idle_days) is expected


def test_long_idle_lead_decays_to_frozen() -> None:
    """Verify a lead untouched for 61+ days reaches FROZEN regardless of score."""

    lead = _lead(LeadStatus.REVIEW, 99, timedelta(days=61))
    busy = make_interactions(1, [NOW - timedelta(hours=h) for h in range(1, 10)])

    assert next_temperature(lead, busy, NOW) is FROZEN


def test_classification_is_idempotent() -> None:
    """Verify re-classifying with the result applied yields the same temperature."""

    interactions = make_interactions(1, [NOW - timedelta(days=d) for d in range(1, 6)])
    for status, score in [(LeadStatus.APPROVED, 40), (LeadStatus.PENDING, 55), (LeadStatus.REVIEW, 62)]:
        lead = _lead(status, score, timedelta(days=16), temperature=COLD)
        first = next_temperature(lead, interactions, NOW)
        second = next_temperature(lead.with_changes(temperature=first), interactions, NOW)
        assert first is second
