"""
Rewards repository (persistence).

Each award is an append-only row in `reward_events`; totals are computed by
the rewards module that owns that table.
"""

from __future__ import annotations

from datetime import datetime, timezone

from repositories.client import supabase

_REWARD_EVENTS_TABLE: str = "reward_events"


def record_reward(user_id: int, amount: int, reason: str) -> None:
    """
    Raises:
    - ValueError if amount is not positive.
    - RuntimeError if Supabase returns an error response.
    """

    if amount <= 0:
        raise ValueError("amount must be positive")

    payload = {
        "user_id": user_id,
        "amount": amount,
        "reason": reason,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    response = supabase.table(_REWARD_EVENTS_TABLE).insert(payload).execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to record reward for user {user_id}: {error}")


class SupabaseRewardsLedger:
    def award_points(self, user_id: int, amount: int, reason: str) -> None:
        record_reward(user_id, amount, reason)


__all__ = [
    "SupabaseRewardsLedger",
    "record_reward",
]
