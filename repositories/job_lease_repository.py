"""
Job lease repository.

Leases live in the database so that cron runs on different hosts share them.
Acquisition and release go through PostgreSQL functions so the
check-and-claim is atomic:

- acquire_job_lease(p_scope, p_owner, p_ttl_seconds) -> boolean
  Deletes expired leases, then inserts a lease for p_scope unless a live lease
  conflicts. The 'all' scope conflicts with every scope.
- renew_job_lease(p_scope, p_owner, p_ttl_seconds) -> boolean
  Moves the expiry of p_owner's lease to now + p_ttl_seconds. Re-claims a
  lapsed lease unless a live lease of another owner conflicts; false then.
- release_job_lease(p_scope, p_owner) -> void
  Deletes the lease only if p_owner still holds it.
"""

from __future__ import annotations

import logging

from domain.errors import CollaboratorUnavailable
from repositories.client import supabase

logger = logging.getLogger(__name__)


def acquire_job_lease(scope: str, owner: str, ttl_seconds: int) -> bool:
    """
    Raises:
    - CollaboratorUnavailable if the RPC fails.
    """
    from postgrest.exceptions import APIError

    try:
        response = supabase.rpc(
            'acquire_job_lease',
            {
                'p_scope': scope,
                'p_owner': owner,
                'p_ttl_seconds': ttl_seconds,
            }
        ).execute()
    except APIError as e:
        raise CollaboratorUnavailable("job lease", e.message or str(e)) from e

    error = getattr(response, "error", None)
    if error:
        raise CollaboratorUnavailable("job lease", str(error))
    return bool(response.data)


def renew_job_lease(scope: str, owner: str, ttl_seconds: int) -> bool:
    """
    Raises:
    - CollaboratorUnavailable if the RPC fails.
    """
    from postgrest.exceptions import APIError

    try:
        response = supabase.rpc(
            'renew_job_lease',
            {
                'p_scope': scope,
                'p_owner': owner,
                'p_ttl_seconds': ttl_seconds,
            }
        ).execute()
    except APIError as e:
        raise CollaboratorUnavailable("job lease", e.message or str(e)) from e

    error = getattr(response, "error", None)
    if error:
        raise CollaboratorUnavailable("job lease", str(error))
    return bool(response.data)


def release_job_lease(scope: str, owner: str) -> None:
    """
    Release a lease held by `owner`. Failures are logged; the lease then
    expires on its own.
    """
    from postgrest.exceptions import APIError

    try:
        response = supabase.rpc(
            'release_job_lease',
            {
                'p_scope': scope,
                'p_owner': owner,
            }
        ).execute()
    except APIError as e:
        logger.warning("Failed to release job lease %s for %s: %s", scope, owner, e.message or e)
        return

    error = getattr(response, "error", None)
    if error:
        logger.warning("Failed to release job lease %s for %s: %s", scope, owner, error)


class SupabaseJobLeaseManager:
    def try_acquire(self, scope: str, owner: str, ttl_seconds: int) -> bool:
        return acquire_job_lease(scope, owner, ttl_seconds)

    def renew(self, scope: str, owner: str, ttl_seconds: int) -> bool:
        return renew_job_lease(scope, owner, ttl_seconds)

    def release(self, scope: str, owner: str) -> None:
        release_job_lease(scope, owner)


__all__ = [
    "SupabaseJobLeaseManager",
    "acquire_job_lease",
    "release_job_lease",
    "renew_job_lease",
]
