"""
Domain: Lead entity.

Contract excerpts implemented here:
- A Lead is identified by an opaque numeric lead_id and belongs to exactly one
  tenant (organization); branch_id is optional.
- lead_score is an integer in [0, 100]. When scoring data is present, its four
  components (each in [0, 25]) sum to lead_score.
- Status follows the graph PENDING -> REVIEW -> APPROVED -> CONVERTED, with
  DECLINED / CANCELLED reachable from the open statuses and reactivatable back
  to PENDING. CONVERTED is terminal.
- change_history is append-only. Every entry appended records the status the
  lead moves into, so the latest entry's new_status equals the lead's status.
- score_history is append-only and never truncated here.
- All timestamps are UTC.

This module contains only pure domain entities/value objects: no I/O, no
database, no frameworks. Entities are frozen; every mutation returns a new
instance.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional

from .errors import BatchItemFailure, InvalidStatusTransition  # type: ignore[import-untyped]
from .time import require_utc_timestamp  # type: ignore[import-untyped]


class LeadStatus(str, Enum):
    PENDING = "PENDING"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    CONVERTED = "CONVERTED"


class LeadTemperature(str, Enum):
    HOT = "HOT"
    WARM = "WARM"
    COLD = "COLD"
    FROZEN = "FROZEN"

    @property
    def rank(self) -> int:
        """Ladder position: FROZEN=0 < COLD=1 < WARM=2 < HOT=3."""

        return _TEMPERATURE_RANK[self]

    @staticmethod
    def from_rank(rank: int) -> "LeadTemperature":
        return _TEMPERATURE_BY_RANK[max(0, min(3, rank))]


_TEMPERATURE_RANK = {
    LeadTemperature.FROZEN: 0,
    LeadTemperature.COLD: 1,
    LeadTemperature.WARM: 2,
    LeadTemperature.HOT: 3,
}
_TEMPERATURE_BY_RANK = {rank: temp for temp, rank in _TEMPERATURE_RANK.items()}


class LeadPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class LeadLifecycleStage(str, Enum):
    SUBSCRIBER = "SUBSCRIBER"
    LEAD = "LEAD"
    MARKETING_QUALIFIED_LEAD = "MARKETING_QUALIFIED_LEAD"
    SALES_QUALIFIED_LEAD = "SALES_QUALIFIED_LEAD"
    OPPORTUNITY = "OPPORTUNITY"
    CUSTOMER = "CUSTOMER"
    EVANGELIST = "EVANGELIST"


class LeadSource(str, Enum):
    WEBSITE = "WEBSITE"
    REFERRAL = "REFERRAL"
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    EMAIL_CAMPAIGN = "EMAIL_CAMPAIGN"
    COLD_CALL = "COLD_CALL"
    TRADE_SHOW = "TRADE_SHOW"
    ORGANIC_SEARCH = "ORGANIC_SEARCH"
    PAID_ADVERTISING = "PAID_ADVERTISING"
    PARTNER = "PARTNER"
    OTHER = "OTHER"


class LeadIntent(str, Enum):
    PURCHASE = "PURCHASE"
    ENQUIRY = "ENQUIRY"
    SERVICES = "SERVICES"
    CONVERSION = "CONVERSION"
    LOST = "LOST"


class BusinessSize(str, Enum):
    STARTUP = "STARTUP"
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"
    ENTERPRISE = "ENTERPRISE"


class Industry(str, Enum):
    TECHNOLOGY = "TECHNOLOGY"
    FINANCE = "FINANCE"
    HEALTHCARE = "HEALTHCARE"
    MANUFACTURING = "MANUFACTURING"
    RETAIL = "RETAIL"
    EDUCATION = "EDUCATION"
    REAL_ESTATE = "REAL_ESTATE"
    HOSPITALITY = "HOSPITALITY"
    GOVERNMENT = "GOVERNMENT"
    NON_PROFIT = "NON_PROFIT"
    OTHER = "OTHER"


class DecisionMakerRole(str, Enum):
    OWNER = "OWNER"
    CEO = "CEO"
    CFO = "CFO"
    CTO = "CTO"
    DIRECTOR = "DIRECTOR"
    MANAGER = "MANAGER"
    COORDINATOR = "COORDINATOR"
    INFLUENCER = "INFLUENCER"
    USER = "USER"
    OTHER = "OTHER"


class BudgetRange(str, Enum):
    UNDER_R10K = "UNDER_R10K"
    R10K_25K = "R10K_25K"
    R25K_50K = "R25K_50K"
    R50K_100K = "R50K_100K"
    R100K_250K = "R100K_250K"
    R250K_500K = "R250K_500K"
    R500K_1M = "R500K_1M"
    OVER_1M = "OVER_1M"
    UNKNOWN = "UNKNOWN"


class Timeline(str, Enum):
    IMMEDIATE = "IMMEDIATE"
    SHORT_TERM = "SHORT_TERM"
    MEDIUM_TERM = "MEDIUM_TERM"
    LONG_TERM = "LONG_TERM"
    UNKNOWN = "UNKNOWN"


class UrgencyLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


# Allowed status moves. CONVERTED is terminal; DECLINED/CANCELLED only reopen.
ALLOWED_STATUS_TRANSITIONS: Mapping[LeadStatus, frozenset[LeadStatus]] = {
    LeadStatus.PENDING: frozenset(
        {LeadStatus.REVIEW, LeadStatus.APPROVED, LeadStatus.DECLINED, LeadStatus.CANCELLED}
    ),
    LeadStatus.REVIEW: frozenset(
        {LeadStatus.PENDING, LeadStatus.APPROVED, LeadStatus.DECLINED, LeadStatus.CANCELLED}
    ),
    LeadStatus.APPROVED: frozenset(
        {LeadStatus.REVIEW, LeadStatus.CONVERTED, LeadStatus.DECLINED, LeadStatus.CANCELLED}
    ),
    LeadStatus.DECLINED: frozenset({LeadStatus.PENDING}),
    LeadStatus.CANCELLED: frozenset({LeadStatus.PENDING}),
    LeadStatus.CONVERTED: frozenset(),
}

# Statuses the automation orchestrator re-evaluates.
ACTIVE_STATUSES: tuple[LeadStatus, ...] = (
    LeadStatus.PENDING,
    LeadStatus.REVIEW,
    LeadStatus.APPROVED,
)

REACTIVATABLE_STATUSES: frozenset[LeadStatus] = frozenset(
    {LeadStatus.DECLINED, LeadStatus.CANCELLED}
)

_LIFECYCLE_FOR_STATUS: Mapping[LeadStatus, LeadLifecycleStage] = {
    LeadStatus.APPROVED: LeadLifecycleStage.SALES_QUALIFIED_LEAD,
    LeadStatus.CONVERTED: LeadLifecycleStage.CUSTOMER,
}


def can_transition(from_status: LeadStatus, to_status: LeadStatus) -> bool:
    """True if the status graph allows moving from `from_status` to `to_status`."""

    return to_status in ALLOWED_STATUS_TRANSITIONS.get(from_status, frozenset())


def lifecycle_stage_for_status(
    status: LeadStatus, current: LeadLifecycleStage
) -> LeadLifecycleStage:
    """Lifecycle stage implied by entering `status`; unchanged for other statuses."""

    return _LIFECYCLE_FOR_STATUS.get(status, current)


@dataclass(frozen=True, slots=True)
class BANTQualification:
    """Budget / Authority / Need / Timeline confirmation flags. Read-only input to scoring."""

    budget_confirmed: bool = False
    authority_confirmed: bool = False
    need_confirmed: bool = False
    timeline_confirmed: bool = False
    need_urgency: UrgencyLevel = UrgencyLevel.UNKNOWN

    @property
    def confirmed_count(self) -> int:
        return sum(
            (
                self.budget_confirmed,
                self.authority_confirmed,
                self.need_confirmed,
                self.timeline_confirmed,
            )
        )


@dataclass(frozen=True, slots=True)
class ScoreHistoryEntry:
    timestamp: datetime
    score: int
    reason: str

    def __post_init__(self) -> None:
        require_utc_timestamp("timestamp", self.timestamp)


@dataclass(frozen=True, slots=True)
class ScoringData:
    """
    Decomposed score for a lead.

    Each component is bounded to [0, 25]; total_score is their sum.
    """

    engagement_score: int
    demographic_score: int
    behavioral_score: int
    fit_score: int
    last_calculated: datetime
    score_history: tuple[ScoreHistoryEntry, ...] = ()

    def __post_init__(self) -> None:
        require_utc_timestamp("last_calculated", self.last_calculated)
        for name in ("engagement_score", "demographic_score", "behavioral_score", "fit_score"):
            value = getattr(self, name)
            if not 0 <= value <= 25:
                raise ValueError(f"{name} must be within [0, 25], got {value}")

    @property
    def total_score(self) -> int:
        return (
            self.engagement_score
            + self.demographic_score
            + self.behavioral_score
            + self.fit_score
        )


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    """One append-only audit record of a status change."""

    timestamp: datetime
    new_status: LeadStatus
    old_status: Optional[LeadStatus] = None
    reason: Optional[str] = None
    description: Optional[str] = None
    next_step: Optional[str] = None
    actor_id: Optional[int] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("timestamp", self.timestamp)


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a Lead.

    Immutability:
    - This entity is frozen. Scoring, classification and scheduling produce new
      instances; persistence of those instances is the caller's concern.

    Notes:
    - updated_at is the anchor for staleness decay. Writes of derived fields
      (score, temperature, follow-up date) do not move it.
    - The latest change_history entry marks the last status change.
    """

    lead_id: int
    tenant_id: str
    created_at: datetime
    updated_at: datetime
    branch_id: Optional[int] = None

    status: LeadStatus = LeadStatus.PENDING
    temperature: LeadTemperature = LeadTemperature.COLD
    priority: LeadPriority = LeadPriority.MEDIUM
    lifecycle_stage: LeadLifecycleStage = LeadLifecycleStage.LEAD
    source: Optional[LeadSource] = None
    intent: Optional[LeadIntent] = None

    # Contact / demographic
    name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    decision_maker_role: Optional[DecisionMakerRole] = None
    industry: Optional[Industry] = None
    business_size: Optional[BusinessSize] = None
    budget_range: Optional[BudgetRange] = None
    purchase_timeline: Optional[Timeline] = None
    user_quality_rating: int = 3
    bant: BANTQualification = field(default_factory=BANTQualification)

    # Scoring state
    lead_score: int = 0
    scoring_data: Optional[ScoringData] = None

    # Activity state
    last_contact_date: Optional[datetime] = None
    next_follow_up_date: Optional[datetime] = None
    total_interactions: int = 0
    average_response_time: float = 0.0
    days_since_last_response: int = 0

    # Ownership / audit
    owner_id: Optional[int] = None
    assignee_ids: tuple[int, ...] = ()
    change_history: tuple[StatusHistoryEntry, ...] = ()
    is_deleted: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.last_contact_date is not None:
            require_utc_timestamp("last_contact_date", self.last_contact_date)
        if self.next_follow_up_date is not None:
            require_utc_timestamp("next_follow_up_date", self.next_follow_up_date)

        if not 0 <= self.lead_score <= 100:
            raise ValueError(f"lead_score must be within [0, 100], got {self.lead_score}")
        if not 1 <= self.user_quality_rating <= 5:
            raise ValueError("user_quality_rating must be within [1, 5]")
        if self.scoring_data is not None and self.scoring_data.total_score != self.lead_score:
            raise ValueError(
                "lead_score must equal the sum of the scoring components "
                f"({self.lead_score} != {self.scoring_data.total_score})"
            )

    @property
    def is_active(self) -> bool:
        """Eligible for batch reprocessing: not deleted and in an open status."""

        return not self.is_deleted and self.status in ACTIVE_STATUSES

    def with_changes(self, **changes: object) -> "Lead":
        """Return a copy with the given fields replaced (validated again)."""

        return replace(self, **changes)

    def with_status_change(
        self,
        new_status: LeadStatus,
        *,
        at: datetime,
        reason: Optional[str] = None,
        description: Optional[str] = None,
        next_step: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> "Lead":
        """
        Move the lead to `new_status`, appending one change_history entry.

        Raises InvalidStatusTransition if the status graph forbids the move.
        updated_at moves to `at`; the lifecycle stage follows the new status.
        """

        require_utc_timestamp("at", at)
        if not can_transition(self.status, new_status):
            raise InvalidStatusTransition(self.lead_id, self.status.value, new_status.value)

        entry = StatusHistoryEntry(
            timestamp=at,
            old_status=self.status,
            new_status=new_status,
            reason=reason,
            description=description,
            next_step=next_step,
            actor_id=actor_id,
        )
        return replace(
            self,
            status=new_status,
            lifecycle_stage=lifecycle_stage_for_status(new_status, self.lifecycle_stage),
            change_history=self.change_history + (entry,),
            updated_at=at,
        )

    @property
    def latest_change(self) -> Optional[StatusHistoryEntry]:
        return self.change_history[-1] if self.change_history else None


@dataclass(frozen=True, slots=True)
class LeadPage:
    """
    One keyset page read from a lead store.

    leads: rows that converted into valid Leads
    failures: rows that could not be converted (bad enum, score out of range, ...)
    last_id: highest row id read, valid or not; the next page starts after it
    row_count: rows read, valid or not; fewer than the page size means the end
    """

    leads: tuple[Lead, ...] = ()
    failures: tuple[BatchItemFailure, ...] = ()
    last_id: Optional[int] = None
    row_count: int = 0


__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_STATUS_TRANSITIONS",
    "BANTQualification",
    "BudgetRange",
    "BusinessSize",
    "DecisionMakerRole",
    "Industry",
    "Lead",
    "LeadIntent",
    "LeadLifecycleStage",
    "LeadPage",
    "LeadPriority",
    "LeadSource",
    "LeadStatus",
    "LeadTemperature",
    "REACTIVATABLE_STATUSES",
    "ScoreHistoryEntry",
    "ScoringData",
    "StatusHistoryEntry",
    "Timeline",
    "UrgencyLevel",
    "can_transition",
    "lifecycle_stage_for_status",
]
