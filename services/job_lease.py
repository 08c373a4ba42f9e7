"""
In-process job lease manager.

Semantics shared with the Supabase-backed lease repository:
- A lease is a claim on a scope (a tenant id, or "all") held by an owner
  until it is released or its TTL elapses.
- The "all" scope conflicts with every tenant scope and vice versa; two
  different tenants never conflict.
- Acquisition never blocks: a conflicting live lease means "skip".
- Long runs renew their lease as they go; a renewal that finds the scope
  taken by another run reports the lease as lost.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from services.ports import ALL_TENANTS_SCOPE


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryJobLeaseManager:
    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        self._clock = clock
        self._lock = threading.Lock()
        self._leases: Dict[str, Tuple[str, datetime]] = {}

    def _purge_expired(self, now: datetime) -> None:
        expired = [scope for scope, (_, expires_at) in self._leases.items() if expires_at <= now]
        for scope in expired:
            del self._leases[scope]

    def _conflicts(self, scope: str) -> bool:
        if scope == ALL_TENANTS_SCOPE:
            return bool(self._leases)
        return scope in self._leases or ALL_TENANTS_SCOPE in self._leases

    def try_acquire(self, scope: str, owner: str, ttl_seconds: int) -> bool:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            if self._conflicts(scope):
                return False
            self._leases[scope] = (owner, now + timedelta(seconds=ttl_seconds))
            return True

    def renew(self, scope: str, owner: str, ttl_seconds: int) -> bool:
        """
        Push the expiry of `owner`'s lease out to now + ttl. A lease that lapsed
        is re-claimed if nothing conflicts; one taken over by another run is lost.
        """
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            held = self._leases.get(scope)
            if held is not None and held[0] != owner:
                return False
            if held is None and self._conflicts(scope):
                return False
            self._leases[scope] = (owner, now + timedelta(seconds=ttl_seconds))
            return True

    def release(self, scope: str, owner: str) -> None:
        with self._lock:
            held = self._leases.get(scope)
            if held is not None and held[0] == owner:
                del self._leases[scope]

    def holder(self, scope: str) -> Optional[str]:
        with self._lock:
            self._purge_expired(self._clock())
            held = self._leases.get(scope)
            return held[0] if held else None


__all__ = ["InMemoryJobLeaseManager"]
