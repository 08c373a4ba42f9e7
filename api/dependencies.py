"""
Request-scoped dependencies for the lead endpoints.

Tests override `get_lead_service` with a service built on in-memory fakes.
"""

from typing import Optional

from fastapi import BackgroundTasks, Depends, Header

from services.lead_service import LeadService
from services import wiring


def get_lead_service() -> LeadService:
    return wiring.get_lead_service()


def get_request_lead_service(
    background_tasks: BackgroundTasks,
    service: LeadService = Depends(get_lead_service),
) -> LeadService:
    """
    The lead service with post-commit events handed to FastAPI BackgroundTasks,
    which run after the response has been sent.
    """
    return service.with_dispatcher(service.dispatcher.with_submitter(background_tasks.add_task))


def get_tenant_id(x_tenant_id: str = Header(..., alias="X-Tenant-ID", min_length=1)) -> str:
    return x_tenant_id


def get_actor_id(x_actor_id: Optional[int] = Header(None, alias="X-Actor-ID")) -> Optional[int]:
    return x_actor_id
