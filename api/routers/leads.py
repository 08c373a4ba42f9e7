"""
Leads API Endpoints.

Endpoints for creating, reading, updating and moving leads through their
status pipeline. Scoring, temperature and follow-up scheduling run after the
response has been sent.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_actor_id, get_request_lead_service, get_tenant_id
from api.models import (
    ErrorResponse,
    LeadCreateRequest,
    LeadResponse,
    LeadUpdateRequest,
    ReactivateRequest,
    ScoreHistoryResponse,
    ScoringDataResponse,
    StatusChangeRequest,
    StatusHistoryResponse,
)
from domain.errors import CollaboratorUnavailable, LeadNotFoundError, ValidationError
from domain.lead import BANTQualification, Lead
from domain.lead_defaults import LeadDraft
from services.lead_service import LeadService

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _to_response(lead: Lead) -> LeadResponse:
    scoring = None
    if lead.scoring_data is not None:
        data = lead.scoring_data
        scoring = ScoringDataResponse(
            engagement_score=data.engagement_score,
            demographic_score=data.demographic_score,
            behavioral_score=data.behavioral_score,
            fit_score=data.fit_score,
            last_calculated=data.last_calculated,
            score_history=[
                ScoreHistoryResponse(timestamp=h.timestamp, score=h.score, reason=h.reason)
                for h in data.score_history
            ],
        )

    return LeadResponse(
        lead_id=lead.lead_id,
        tenant_id=lead.tenant_id,
        branch_id=lead.branch_id,
        status=lead.status,
        temperature=lead.temperature,
        priority=lead.priority,
        lifecycle_stage=lead.lifecycle_stage.value,
        source=lead.source,
        intent=lead.intent,
        name=lead.name,
        company_name=lead.company_name,
        email=lead.email,
        phone=lead.phone,
        lead_score=lead.lead_score,
        scoring_data=scoring,
        next_follow_up_date=lead.next_follow_up_date,
        last_contact_date=lead.last_contact_date,
        owner_id=lead.owner_id,
        assignee_ids=list(lead.assignee_ids),
        created_at=lead.created_at,
        updated_at=lead.updated_at,
        change_history=[
            StatusHistoryResponse(
                timestamp=entry.timestamp,
                old_status=entry.old_status,
                new_status=entry.new_status,
                reason=entry.reason,
                description=entry.description,
                next_step=entry.next_step,
                actor_id=entry.actor_id,
            )
            for entry in lead.change_history
        ],
    )


def _http_error(action: str, exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, LeadNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, CollaboratorUnavailable):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(exc)}")


def _bant(model) -> BANTQualification:
    return BANTQualification(**model.model_dump())


@router.post(
    "/leads",
    response_model=LeadResponse,
    status_code=201,
    responses=_ERROR_RESPONSES,
    summary="Create Lead",
    description="Create a lead with source/budget defaults and a first follow-up date."
)
def create_lead(
    request: LeadCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[int] = Depends(get_actor_id),
    service: LeadService = Depends(get_request_lead_service),
):
    """
    Create a new lead for the calling organization.

    **Defaults applied:**
    1. Temperature from source (REFERRAL starts WARM, everything else COLD)
    2. Priority from budget range (R250K and above is HIGH)
    3. First follow-up on the next working day

    The initial score is 0; scoring runs right after the response.
    """
    try:
        fields = request.model_dump(exclude={"bant", "assignee_ids"})
        draft = LeadDraft(
            tenant_id=tenant_id,
            bant=_bant(request.bant),
            assignee_ids=tuple(request.assignee_ids),
            **fields,
        )
        lead = service.create_lead(draft, actor_id=actor_id)
        return _to_response(lead)

    except HTTPException:
        raise
    except Exception as e:
        raise _http_error("create lead", e)


@router.get(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    responses=_ERROR_RESPONSES,
    summary="Get Lead"
)
def get_lead(
    lead_id: int,
    tenant_id: str = Depends(get_tenant_id),
    service: LeadService = Depends(get_request_lead_service),
):
    """Fetch one lead of the calling organization. Scoring is refreshed after the response."""
    try:
        return _to_response(service.view_lead(lead_id, tenant_id))

    except HTTPException:
        raise
    except Exception as e:
        raise _http_error("fetch lead", e)


@router.patch(
    "/leads/{lead_id}",
    response_model=LeadResponse,
    responses=_ERROR_RESPONSES,
    summary="Update Lead",
    description="Partial update. Intent changes adjust temperature and priority."
)
def update_lead(
    lead_id: int,
    request: LeadUpdateRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[int] = Depends(get_actor_id),
    service: LeadService = Depends(get_request_lead_service),
):
    """
    Update the fields present in the request body.

    **Intent rules:**
    - PURCHASE: temperature HOT, priority HIGH
    - CONVERSION: temperature HOT
    - LOST: temperature FROZEN, priority LOW

    A status in the body is validated against the status graph.
    """
    try:
        changes = request.model_dump(exclude_unset=True, exclude={"reason"})
        if "bant" in changes:
            changes["bant"] = _bant(request.bant) if request.bant else BANTQualification()
        if "assignee_ids" in changes:
            changes["assignee_ids"] = tuple(changes["assignee_ids"] or ())

        lead = service.update_lead(
            lead_id, tenant_id, changes, actor_id=actor_id, reason=request.reason
        )
        return _to_response(lead)

    except HTTPException:
        raise
    except Exception as e:
        raise _http_error("update lead", e)


@router.post(
    "/leads/{lead_id}/status",
    response_model=LeadResponse,
    responses=_ERROR_RESPONSES,
    summary="Change Lead Status"
)
def change_status(
    lead_id: int,
    request: StatusChangeRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[int] = Depends(get_actor_id),
    service: LeadService = Depends(get_request_lead_service),
):
    """
    Move a lead to another status.

    Allowed moves:
    - PENDING: REVIEW, APPROVED, DECLINED, CANCELLED
    - REVIEW: PENDING, APPROVED, DECLINED, CANCELLED
    - APPROVED: REVIEW, CONVERTED, DECLINED, CANCELLED
    - DECLINED / CANCELLED: PENDING (prefer the reactivate endpoint)
    - CONVERTED: none
    """
    try:
        lead = service.change_status(
            lead_id,
            tenant_id,
            request.status,
            reason=request.reason,
            description=request.description,
            next_step=request.next_step,
            actor_id=actor_id,
        )
        return _to_response(lead)

    except HTTPException:
        raise
    except Exception as e:
        raise _http_error("change lead status", e)


@router.post(
    "/leads/{lead_id}/reactivate",
    response_model=LeadResponse,
    responses=_ERROR_RESPONSES,
    summary="Reactivate Lead"
)
def reactivate_lead(
    lead_id: int,
    request: Optional[ReactivateRequest] = None,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[int] = Depends(get_actor_id),
    service: LeadService = Depends(get_request_lead_service),
):
    """Reopen a DECLINED or CANCELLED lead as PENDING / COLD / MEDIUM priority."""
    try:
        lead = service.reactivate(
            lead_id,
            tenant_id,
            actor_id=actor_id,
            reason=request.reason if request else None,
        )
        return _to_response(lead)

    except HTTPException:
        raise
    except Exception as e:
        raise _http_error("reactivate lead", e)
