"""
Notification repository (persistence).

Notifications are queued as rows in the `notifications` table, one per
recipient; delivery (push, email) is handled elsewhere.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from repositories.client import supabase

_NOTIFICATIONS_TABLE: str = "notifications"


def queue_notifications(
    user_ids: Sequence[int], event_type: str, payload: Mapping[str, Any]
) -> None:
    """
    Queue one notification per recipient.

    Raises:
    - RuntimeError if Supabase returns an error response.
    """

    if not user_ids:
        return

    created_at = datetime.now(timezone.utc).isoformat()
    rows = [
        {
            "user_id": user_id,
            "event_type": event_type,
            "payload": dict(payload),
            "created_at": created_at,
        }
        for user_id in user_ids
    ]
    response = supabase.table(_NOTIFICATIONS_TABLE).insert(rows).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to queue {event_type} notifications: {error}")


class SupabaseNotifier:
    def notify(self, user_ids: Sequence[int], event_type: str, payload: Mapping[str, Any]) -> None:
        queue_notifications(user_ids, event_type, payload)


__all__ = [
    "SupabaseNotifier",
    "queue_notifications",
]
