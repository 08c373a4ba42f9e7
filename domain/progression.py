"""
Domain: automatic status progression.

Contract excerpts implemented here:
- PENDING -> REVIEW when score >= 70 and the lead is at most 3 days old, or
  whenever score >= 80.
- REVIEW -> APPROVED when score >= 85 and the review is at most 2 days old.
- REVIEW -> DECLINED when score < 40 and the review has stalled for 7+ days.
- APPROVED -> REVIEW when score < 30 and the lead has been stale for 14+ days.
- Ages are whole 24-hour days; review and staleness age are measured from
  updated_at, lead age from created_at.
- Other statuses never move automatically.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .lead import Lead, LeadStatus  # type: ignore[import-untyped]
from .time import whole_days_between  # type: ignore[import-untyped]

PENDING_FAST_REVIEW_SCORE = 70
PENDING_FAST_REVIEW_MAX_AGE_DAYS = 3
PENDING_REVIEW_SCORE = 80
REVIEW_APPROVE_SCORE = 85
REVIEW_APPROVE_MAX_DAYS = 2
REVIEW_DECLINE_SCORE = 40
REVIEW_DECLINE_MIN_DAYS = 7
APPROVED_REFLAG_SCORE = 30
APPROVED_REFLAG_MIN_DAYS = 14


@dataclass(frozen=True, slots=True)
class StatusDecision:
    new_status: LeadStatus
    reason: str
    description: str
    next_step: str


def automated_next_step(status: LeadStatus, score: int) -> str:
    if status is LeadStatus.REVIEW:
        if score >= 80:
            return "Priority review - consider for immediate approval"
        return "Standard review process - validate lead quality"
    if status is LeadStatus.APPROVED:
        if score >= 85:
            return "Immediate outreach - high-priority prospect"
        return "Schedule follow-up within 48 hours"
    if status is LeadStatus.DECLINED:
        return "Lead declined due to low engagement - consider for nurture campaign"
    return "Continue monitoring lead progress"


def _decision(new_status: LeadStatus, reason: str, score: int) -> StatusDecision:
    return StatusDecision(
        new_status=new_status,
        reason=reason,
        description=f"Automated processing based on score {score} and velocity analysis",
        next_step=automated_next_step(new_status, score),
    )


def evaluate_auto_progression(lead: Lead, as_of: datetime) -> Optional[StatusDecision]:
    """
    Status move the batch should apply to `lead` at `as_of`, or None.

    Reads lead.lead_score as-is; score the lead first.
    """

    score = lead.lead_score
    age_days = whole_days_between(lead.created_at, as_of)
    idle_days = whole_days_between(lead.updated_at, as_of)

    if lead.status is LeadStatus.PENDING:
        if score >= PENDING_FAST_REVIEW_SCORE and age_days <= PENDING_FAST_REVIEW_MAX_AGE_DAYS:
            return _decision(
                LeadStatus.REVIEW, f"High score ({score}) with fast initial response", score
            )
        if score >= PENDING_REVIEW_SCORE:
            return _decision(LeadStatus.REVIEW, f"Exceptional score ({score}) warrants review", score)

    elif lead.status is LeadStatus.REVIEW:
        if score >= REVIEW_APPROVE_SCORE and idle_days <= REVIEW_APPROVE_MAX_DAYS:
            return _decision(
                LeadStatus.APPROVED, f"Exceptional score ({score}) with fast progression", score
            )
        if score < REVIEW_DECLINE_SCORE and idle_days >= REVIEW_DECLINE_MIN_DAYS:
            return _decision(
                LeadStatus.DECLINED, f"Low score ({score}) with slow progression", score
            )

    elif lead.status is LeadStatus.APPROVED:
        if score < APPROVED_REFLAG_SCORE and idle_days >= APPROVED_REFLAG_MIN_DAYS:
            return _decision(
                LeadStatus.REVIEW, f"Score degradation ({score}) requires re-evaluation", score
            )

    return None


__all__ = [
    "StatusDecision",
    "automated_next_step",
    "evaluate_auto_progression",
]
