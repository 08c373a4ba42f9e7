"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.lead import (
    BudgetRange,
    BusinessSize,
    DecisionMakerRole,
    Industry,
    LeadIntent,
    LeadPriority,
    LeadSource,
    LeadStatus,
    LeadTemperature,
    Timeline,
    UrgencyLevel,
)


# ============================================================================
# Shared Models
# ============================================================================

class BANTModel(BaseModel):
    """Budget / Authority / Need / Timeline qualification flags."""
    budget_confirmed: bool = False
    authority_confirmed: bool = False
    need_confirmed: bool = False
    timeline_confirmed: bool = False
    need_urgency: UrgencyLevel = UrgencyLevel.UNKNOWN


# ============================================================================
# Lead Request Models
# ============================================================================

class LeadCreateRequest(BaseModel):
    """Request to create a lead. The organization comes from the X-Tenant-ID header."""
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
    user_quality_rating: int = Field(3, ge=1, le=5)
    bant: BANTModel = Field(default_factory=BANTModel)
    temperature: Optional[LeadTemperature] = None
    priority: Optional[LeadPriority] = None
    owner_id: Optional[int] = None
    assignee_ids: List[int] = Field(default_factory=list)
    last_contact_date: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Thandi Mokoena",
                "company_name": "Acme Logistics",
                "email": "thandi@acme.example",
                "source": "REFERRAL",
                "industry": "TECHNOLOGY",
                "business_size": "MEDIUM",
                "budget_range": "R250K_500K",
                "assignee_ids": [42]
            }
        }


class LeadUpdateRequest(BaseModel):
    """Partial update; only the fields present in the body are changed."""
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
    user_quality_rating: Optional[int] = Field(None, ge=1, le=5)
    bant: Optional[BANTModel] = None
    temperature: Optional[LeadTemperature] = None
    priority: Optional[LeadPriority] = None
    owner_id: Optional[int] = None
    assignee_ids: Optional[List[int]] = None
    last_contact_date: Optional[datetime] = None
    status: Optional[LeadStatus] = None
    reason: Optional[str] = Field(None, description="Recorded in the change history when status changes")

    class Config:
        json_schema_extra = {
            "example": {
                "intent": "PURCHASE",
                "assignee_ids": [42, 57]
            }
        }


class StatusChangeRequest(BaseModel):
    """Manual status change."""
    status: LeadStatus
    reason: Optional[str] = None
    description: Optional[str] = None
    next_step: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "APPROVED",
                "reason": "Budget confirmed on call",
                "next_step": "Send proposal"
            }
        }


class ReactivateRequest(BaseModel):
    """Reopen a declined or cancelled lead."""
    reason: Optional[str] = None


# ============================================================================
# Lead Response Models
# ============================================================================

class ScoreHistoryResponse(BaseModel):
    timestamp: datetime
    score: int
    reason: str


class ScoringDataResponse(BaseModel):
    """Score decomposition; the four components sum to lead_score."""
    engagement_score: int
    demographic_score: int
    behavioral_score: int
    fit_score: int
    last_calculated: datetime
    score_history: List[ScoreHistoryResponse]


class StatusHistoryResponse(BaseModel):
    timestamp: datetime
    old_status: Optional[LeadStatus] = None
    new_status: LeadStatus
    reason: Optional[str] = None
    description: Optional[str] = None
    next_step: Optional[str] = None
    actor_id: Optional[int] = None


class LeadResponse(BaseModel):
    """Lead as returned by the API."""
    lead_id: int
    tenant_id: str
    branch_id: Optional[int] = None
    status: LeadStatus
    temperature: LeadTemperature
    priority: LeadPriority
    lifecycle_stage: str
    source: Optional[LeadSource] = None
    intent: Optional[LeadIntent] = None
    name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    lead_score: int
    scoring_data: Optional[ScoringDataResponse] = None
    next_follow_up_date: Optional[datetime] = None
    last_contact_date: Optional[datetime] = None
    owner_id: Optional[int] = None
    assignee_ids: List[int]
    created_at: datetime
    updated_at: datetime
    change_history: List[StatusHistoryResponse]

    class Config:
        json_schema_extra = {
            "example": {
                "lead_id": 1021,
                "tenant_id": "org_2abc",
                "status": "PENDING",
                "temperature": "WARM",
                "priority": "HIGH",
                "lifecycle_stage": "LEAD",
                "source": "REFERRAL",
                "lead_score": 0,
                "next_follow_up_date": "2025-01-02T09:00:00Z",
                "assignee_ids": [42],
                "created_at": "2025-01-01T12:00:00Z",
                "updated_at": "2025-01-01T12:00:00Z",
                "change_history": []
            }
        }


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int

    class Config:
        json_schema_extra = {
            "example": {
                "error": "Invalid request",
                "detail": "Lead 1021 cannot move from CONVERTED to PENDING",
                "status_code": 400
            }
        }
