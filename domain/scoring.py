"""
Domain: Scoring Engine.

Contract excerpts implemented here:
- compute_score(lead, interactions, as_of) returns a total in [0, 100] and four
  sub-scores (engagement, demographic, behavioral, fit), each clamped to
  [0, 25]. The sub-scores always sum to the total.
- Deterministic: the evaluation instant is an explicit input; no implicit
  'now' is used and nothing is random.
- apply_score appends exactly one score_history entry with a human-readable
  reason. History is never truncated here.
- A missing lead or a lead without a tenant raises ValidationError; a partial
  score is never returned.

Sub-score intent:
- engagement: recency and frequency of interactions, average response time,
  penalty for long unresponsive streaks.
- demographic: company size, industry, decision-maker role, declared budget,
  contact completeness.
- behavioral: BANT confirmations, content-engagement interactions, declared intent.
- fit: budget range, purchase timeline, need urgency, user quality rating.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from .errors import ValidationError  # type: ignore[import-untyped]
from .interaction import (  # type: ignore[import-untyped]
    Interaction,
    InteractionType,
    interactions_as_of,
    latest_interaction_at,
    recent_interaction_count,
)
from .lead import (  # type: ignore[import-untyped]
    BudgetRange,
    BusinessSize,
    DecisionMakerRole,
    Industry,
    Lead,
    LeadIntent,
    ScoreHistoryEntry,
    ScoringData,
    Timeline,
    UrgencyLevel,
)
from .time import require_utc_timestamp, whole_days_between  # type: ignore[import-untyped]

COMPONENT_MAX = 25

# Engagement: (max days since last touch, points), checked in order.
RECENCY_POINTS: Sequence[tuple[int, int]] = ((1, 10), (3, 8), (7, 6), (14, 4), (30, 2))
# Engagement: (min interactions, points), checked in order.
FREQUENCY_POINTS: Sequence[tuple[int, int]] = ((20, 8), (10, 6), (5, 4), (2, 2), (1, 1))
# Engagement: (max average response hours, points), checked in order.
RESPONSE_TIME_POINTS: Sequence[tuple[float, int]] = ((1, 7), (4, 5), (12, 3), (24, 1))
# Engagement: (min days without response, penalty), checked in order.
UNRESPONSIVE_PENALTY: Sequence[tuple[int, int]] = ((30, 5), (14, 3), (7, 1))
# Engagement: bonus per interaction in the trailing week, capped.
VELOCITY_BONUS_CAP = 3

BUSINESS_SIZE_POINTS: Mapping[BusinessSize, int] = {
    BusinessSize.ENTERPRISE: 7,
    BusinessSize.LARGE: 6,
    BusinessSize.MEDIUM: 5,
    BusinessSize.SMALL: 3,
    BusinessSize.STARTUP: 2,
}
PRIORITY_INDUSTRIES = frozenset(
    {Industry.TECHNOLOGY, Industry.FINANCE, Industry.HEALTHCARE, Industry.MANUFACTURING}
)
ROLE_POINTS: Mapping[DecisionMakerRole, int] = {
    DecisionMakerRole.OWNER: 7,
    DecisionMakerRole.CEO: 7,
    DecisionMakerRole.CFO: 7,
    DecisionMakerRole.CTO: 7,
    DecisionMakerRole.DIRECTOR: 6,
    DecisionMakerRole.MANAGER: 4,
    DecisionMakerRole.COORDINATOR: 2,
    DecisionMakerRole.INFLUENCER: 2,
    DecisionMakerRole.USER: 1,
    DecisionMakerRole.OTHER: 1,
}
LARGE_BUDGETS = frozenset(
    {BudgetRange.R100K_250K, BudgetRange.R250K_500K, BudgetRange.R500K_1M, BudgetRange.OVER_1M}
)

BANT_POINTS_PER_CONFIRMATION = 4
CONTENT_ENGAGEMENT_POINTS: Mapping[InteractionType, int] = {
    InteractionType.MEETING: 3,
    InteractionType.DEMO: 3,
    InteractionType.CONTENT_DOWNLOAD: 1,
    InteractionType.WEBSITE_VISIT: 1,
}
CONTENT_ENGAGEMENT_CAP = 6
INTENT_POINTS: Mapping[LeadIntent, int] = {
    LeadIntent.PURCHASE: 3,
    LeadIntent.CONVERSION: 3,
    LeadIntent.SERVICES: 2,
    LeadIntent.ENQUIRY: 1,
    LeadIntent.LOST: 0,
}

BUDGET_FIT_POINTS: Mapping[BudgetRange, int] = {
    BudgetRange.OVER_1M: 10,
    BudgetRange.R500K_1M: 9,
    BudgetRange.R250K_500K: 8,
    BudgetRange.R100K_250K: 7,
    BudgetRange.R50K_100K: 5,
    BudgetRange.R25K_50K: 4,
    BudgetRange.R10K_25K: 3,
    BudgetRange.UNDER_R10K: 1,
    BudgetRange.UNKNOWN: 0,
}
TIMELINE_POINTS: Mapping[Timeline, int] = {
    Timeline.IMMEDIATE: 8,
    Timeline.SHORT_TERM: 6,
    Timeline.MEDIUM_TERM: 4,
    Timeline.LONG_TERM: 2,
    Timeline.UNKNOWN: 0,
}
URGENCY_POINTS: Mapping[UrgencyLevel, int] = {
    UrgencyLevel.HIGH: 4,
    UrgencyLevel.MEDIUM: 2,
    UrgencyLevel.LOW: 1,
    UrgencyLevel.UNKNOWN: 0,
}


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    engagement: int
    demographic: int
    behavioral: int
    fit: int

    @property
    def total(self) -> int:
        return self.engagement + self.demographic + self.behavioral + self.fit

    def describe(self) -> str:
        return (
            f"engagement={self.engagement}, demographic={self.demographic}, "
            f"behavioral={self.behavioral}, fit={self.fit}"
        )


def _clamp(value: int) -> int:
    return max(0, min(COMPONENT_MAX, value))


def _first_at_most(value: float, table: Sequence[tuple[float, int]]) -> int:
    for limit, points in table:
        if value <= limit:
            return points
    return 0


def _first_at_least(value: float, table: Sequence[tuple[float, int]]) -> int:
    for minimum, points in table:
        if value >= minimum:
            return points
    return 0


def _engagement_score(lead: Lead, interactions: Sequence[Interaction], as_of: datetime) -> int:
    score = 0

    touches = [t for t in (latest_interaction_at(interactions, lead.lead_id, as_of), lead.last_contact_date) if t]
    touches = [t for t in touches if t <= as_of]
    if touches:
        score += _first_at_most(whole_days_between(max(touches), as_of), RECENCY_POINTS)

    count = max(len(interactions), lead.total_interactions)
    score += _first_at_least(count, FREQUENCY_POINTS)

    # 0 means "no response measured yet", not "instant".
    if lead.average_response_time > 0:
        score += _first_at_most(lead.average_response_time, RESPONSE_TIME_POINTS)

    score += min(VELOCITY_BONUS_CAP, recent_interaction_count(interactions, lead.lead_id, as_of))
    score -= _first_at_least(lead.days_since_last_response, UNRESPONSIVE_PENALTY)

    return _clamp(score)


def _demographic_score(lead: Lead) -> int:
    score = 0
    if lead.business_size is not None:
        score += BUSINESS_SIZE_POINTS[lead.business_size]

    if lead.industry in PRIORITY_INDUSTRIES:
        score += 5
    elif lead.industry is Industry.OTHER:
        score += 1
    elif lead.industry is not None:
        score += 3

    if lead.decision_maker_role is not None:
        score += ROLE_POINTS[lead.decision_maker_role]

    if lead.budget_range in LARGE_BUDGETS:
        score += 3
    elif lead.budget_range not in (None, BudgetRange.UNKNOWN):
        score += 2

    score += sum(1 for value in (lead.email, lead.phone, lead.company_name) if value)
    return _clamp(score)


def _behavioral_score(lead: Lead, interactions: Sequence[Interaction]) -> int:
    score = lead.bant.confirmed_count * BANT_POINTS_PER_CONFIRMATION

    content = sum(CONTENT_ENGAGEMENT_POINTS.get(i.interaction_type, 0) for i in interactions)
    score += min(CONTENT_ENGAGEMENT_CAP, content)

    if lead.intent is not None:
        score += INTENT_POINTS[lead.intent]
    return _clamp(score)


def _fit_score(lead: Lead) -> int:
    score = 0
    if lead.budget_range is not None:
        score += BUDGET_FIT_POINTS[lead.budget_range]
    if lead.purchase_timeline is not None:
        score += TIMELINE_POINTS[lead.purchase_timeline]
    score += URGENCY_POINTS[lead.bant.need_urgency]
    score += max(0, lead.user_quality_rating - 2)
    return _clamp(score)


def compute_score(
    lead: Optional[Lead],
    interactions: Iterable[Interaction],
    as_of: datetime,
) -> ScoreBreakdown:
    """
    Compute the composite score of a lead.

    Only interactions belonging to the lead and occurring at or before `as_of`
    are considered, so the result depends on the supplied inputs alone.

    Raises:
        ValidationError: if the lead is missing or has no tenant, or `as_of`
            is not a UTC timestamp.
    """

    if lead is None:
        raise ValidationError("Cannot score a missing lead")
    if not lead.tenant_id:
        raise ValidationError(f"Lead {lead.lead_id} has no tenant")
    try:
        require_utc_timestamp("as_of", as_of)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    relevant = interactions_as_of(interactions, lead.lead_id, as_of)
    return ScoreBreakdown(
        engagement=_engagement_score(lead, relevant, as_of),
        demographic=_demographic_score(lead),
        behavioral=_behavioral_score(lead, relevant),
        fit=_fit_score(lead),
    )


def apply_score(lead: Lead, breakdown: ScoreBreakdown, as_of: datetime, reason: str) -> Lead:
    """
    Return a copy of `lead` carrying `breakdown`, with one score_history entry appended.
    """

    history = lead.scoring_data.score_history if lead.scoring_data else ()
    entry = ScoreHistoryEntry(
        timestamp=as_of,
        score=breakdown.total,
        reason=f"{reason} ({breakdown.describe()})",
    )
    scoring_data = ScoringData(
        engagement_score=breakdown.engagement,
        demographic_score=breakdown.demographic,
        behavioral_score=breakdown.behavioral,
        fit_score=breakdown.fit,
        last_calculated=as_of,
        score_history=history + (entry,),
    )
    return lead.with_changes(lead_score=breakdown.total, scoring_data=scoring_data)


__all__ = [
    "COMPONENT_MAX",
    "ScoreBreakdown",
    "apply_score",
    "compute_score",
]
