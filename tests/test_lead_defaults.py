"""
Tests for `domain/lead_defaults.py`.

Covers contract rules:
- REFERRAL leads start WARM, every other source starts COLD.
- Budgets of R250K and above start HIGH priority, everything else MEDIUM.
- Supplied temperature / priority win over the defaults.
- A new lead is PENDING, unscored, with one "Lead created" history entry.
- Intent changes: PURCHASE -> HOT + HIGH, CONVERSION -> HOT, LOST -> FROZEN + LOW.
"""

from __future__ import annotations

from typing import Optional

import pytest

from domain.lead import (
    BudgetRange,
    LeadIntent,
    LeadPriority,
    LeadSource,
    LeadStatus,
    LeadTemperature,
)
from domain.lead_defaults import (
    UNSAVED_LEAD_ID,
    LeadDraft,
    default_priority,
    default_temperature,
    intent_adjustments,
    new_lead,
)
from fakes import NOW, TENANT


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (LeadSource.REFERRAL, LeadTemperature.WARM),
        (LeadSource.WEBSITE, LeadTemperature.COLD),
        (None, LeadTemperature.COLD),
    ],
)
def test_default_temperature(source: Optional[LeadSource], expected: LeadTemperature) -> None:
    """Verify only referrals start warm."""

    assert default_temperature(source) is expected


@pytest.mark.parametrize(
    ("budget", "expected"),
    [
        (BudgetRange.OVER_1M, LeadPriority.HIGH),
        (BudgetRange.R500K_1M, LeadPriority.HIGH),
        (BudgetRange.R250K_500K, LeadPriority.HIGH),
        (BudgetRange.R100K_250K, LeadPriority.MEDIUM),
        (BudgetRange.R50K_100K, LeadPriority.MEDIUM),
        (BudgetRange.UNDER_R10K, LeadPriority.MEDIUM),
        (BudgetRange.UNKNOWN, LeadPriority.MEDIUM),
        (None, LeadPriority.MEDIUM),
    ],
)
def test_default_priority(budget: Optional[BudgetRange], expected: LeadPriority) -> None:
    """Verify the budget bands that start a lead at HIGH priority."""

    assert default_priority(budget) is expected


def test_new_lead_initial_state() -> None:
    """Verify a new lead is unsaved, PENDING, unscored and owned by the creator."""

    lead = new_lead(LeadDraft(tenant_id=TENANT, source=LeadSource.REFERRAL), NOW, actor_id=7)

    assert lead.lead_id == UNSAVED_LEAD_ID
    assert lead.status is LeadStatus.PENDING
    assert lead.temperature is LeadTemperature.WARM
    assert lead.lead_score == 0
    assert lead.scoring_data is None
    assert lead.total_interactions == 0
    assert lead.owner_id == 7
    assert lead.next_follow_up_date is None
    assert len(lead.change_history) == 1
    assert lead.change_history[0].new_status is LeadStatus.PENDING
    assert lead.change_history[0].reason == "Lead created"


def test_supplied_values_win_over_defaults() -> None:
    """Verify caller-supplied temperature, priority and owner are kept."""

    draft = LeadDraft(
        tenant_id=TENANT,
        source=LeadSource.REFERRAL,
        budget_range=BudgetRange.OVER_1M,
        temperature=LeadTemperature.FROZEN,
        priority=LeadPriority.LOW,
        owner_id=12,
    )

    lead = new_lead(draft, NOW, actor_id=7)

    assert lead.temperature is LeadTemperature.FROZEN
    assert lead.priority is LeadPriority.LOW
    assert lead.owner_id == 12


def test_new_lead_requires_tenant() -> None:
    """Verify a lead cannot be created without an organization."""

    with pytest.raises(ValueError):
        new_lead(LeadDraft(tenant_id=""), NOW)


@pytest.mark.parametrize(
    ("current", "requested", "expected"),
    [
        (None, LeadIntent.PURCHASE, {"temperature": LeadTemperature.HOT, "priority": LeadPriority.HIGH}),
        (None, LeadIntent.CONVERSION, {"temperature": LeadTemperature.HOT}),
        (None, LeadIntent.LOST, {"temperature": LeadTemperature.FROZEN, "priority": LeadPriority.LOW}),
        (LeadIntent.PURCHASE, LeadIntent.PURCHASE, {}),
        (None, None, {}),
    ],
)
def test_intent_adjustments(
    current: Optional[LeadIntent], requested: Optional[LeadIntent], expected: dict
) -> None:
    """Verify the temperature / priority implied by an intent change."""

    assert intent_adjustments(current, requested) == expected
