"""
Domain: creation defaults and field-update adjustments for leads.

Contract excerpts implemented here:
- A new lead starts with score 0, no interactions and a temperature derived
  from its source (REFERRAL -> WARM, everything else -> COLD) unless one is
  supplied.
- Priority is derived from the declared budget unless supplied:
  R250K and above -> HIGH, everything else MEDIUM.
- Intent changes adjust temperature and priority: PURCHASE -> HOT + HIGH,
  CONVERSION -> HOT, LOST -> FROZEN + LOW.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .lead import (  # type: ignore[import-untyped]
    BANTQualification,
    BudgetRange,
    BusinessSize,
    DecisionMakerRole,
    Industry,
    Lead,
    LeadIntent,
    LeadPriority,
    LeadSource,
    LeadStatus,
    LeadTemperature,
    StatusHistoryEntry,
    Timeline,
)

# Placeholder id of a lead the store has not assigned an id to yet.
UNSAVED_LEAD_ID = 0

HIGH_PRIORITY_BUDGETS = frozenset(
    {BudgetRange.OVER_1M, BudgetRange.R500K_1M, BudgetRange.R250K_500K}
)


@dataclass(frozen=True, slots=True)
class LeadDraft:
    """Caller-supplied fields of a lead that does not exist yet."""

    tenant_id: str
    branch_id: Optional[int] = None
    name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    source: Optional[LeadSource] = None
    intent: Optional[LeadIntent] = None
    decision_maker_role: Optional[DecisionMakerRole] = None
    industry: Optional[Industry] = None
    business_size: Optional[BusinessSize] = None
    budget_range: Optional[BudgetRange] = None
    purchase_timeline: Optional[Timeline] = None
    user_quality_rating: int = 3
    bant: BANTQualification = field(default_factory=BANTQualification)
    temperature: Optional[LeadTemperature] = None
    priority: Optional[LeadPriority] = None
    owner_id: Optional[int] = None
    assignee_ids: tuple[int, ...] = ()
    last_contact_date: Optional[datetime] = None


def default_temperature(source: Optional[LeadSource]) -> LeadTemperature:
    if source is LeadSource.REFERRAL:
        return LeadTemperature.WARM
    return LeadTemperature.COLD


def default_priority(budget_range: Optional[BudgetRange]) -> LeadPriority:
    if budget_range in HIGH_PRIORITY_BUDGETS:
        return LeadPriority.HIGH
    return LeadPriority.MEDIUM


def new_lead(draft: LeadDraft, now: datetime, actor_id: Optional[int] = None) -> Lead:
    """
    Build an unsaved Lead from `draft` with creation defaults applied.

    The returned lead carries UNSAVED_LEAD_ID and no follow-up date; the
    caller schedules the first follow-up and lets the store assign the id.
    """

    if not draft.tenant_id:
        raise ValueError("tenant_id is required to create a lead")

    created = StatusHistoryEntry(
        timestamp=now,
        new_status=LeadStatus.PENDING,
        reason="Lead created",
        actor_id=actor_id,
    )
    return Lead(
        lead_id=UNSAVED_LEAD_ID,
        tenant_id=draft.tenant_id,
        branch_id=draft.branch_id,
        created_at=now,
        updated_at=now,
        status=LeadStatus.PENDING,
        temperature=draft.temperature or default_temperature(draft.source),
        priority=draft.priority or default_priority(draft.budget_range),
        source=draft.source,
        intent=draft.intent,
        name=draft.name,
        company_name=draft.company_name,
        email=draft.email,
        phone=draft.phone,
        job_title=draft.job_title,
        decision_maker_role=draft.decision_maker_role,
        industry=draft.industry,
        business_size=draft.business_size,
        budget_range=draft.budget_range,
        purchase_timeline=draft.purchase_timeline,
        user_quality_rating=draft.user_quality_rating,
        bant=draft.bant,
        lead_score=0,
        last_contact_date=draft.last_contact_date,
        total_interactions=0,
        average_response_time=0.0,
        days_since_last_response=0,
        owner_id=draft.owner_id if draft.owner_id is not None else actor_id,
        assignee_ids=tuple(draft.assignee_ids),
        change_history=(created,),
    )


def intent_adjustments(
    current: Optional[LeadIntent], requested: Optional[LeadIntent]
) -> Dict[str, Any]:
    """Temperature / priority changes implied by moving from `current` to `requested` intent."""

    if requested is None or requested == current:
        return {}
    if requested is LeadIntent.PURCHASE:
        return {"temperature": LeadTemperature.HOT, "priority": LeadPriority.HIGH}
    if requested is LeadIntent.CONVERSION:
        return {"temperature": LeadTemperature.HOT}
    if requested is LeadIntent.LOST:
        return {"temperature": LeadTemperature.FROZEN, "priority": LeadPriority.LOW}
    return {}


__all__ = [
    "LeadDraft",
    "UNSAVED_LEAD_ID",
    "default_priority",
    "default_temperature",
    "intent_adjustments",
    "new_lead",
]
