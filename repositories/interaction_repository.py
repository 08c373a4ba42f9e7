"""
Interaction repository (persistence).

Read-only access to the `interactions` table. Interactions are recorded by
other parts of the platform; the lead engine only reads them as scoring and
velocity inputs.
"""

from __future__ import annotations

from typing import Any, List, Mapping

from domain.interaction import Interaction, InteractionType
from repositories.client import supabase
from repositories.lead_repository import _parse_utc_datetime

_INTERACTIONS_TABLE: str = "interactions"


def _row_to_interaction(row: Mapping[str, Any]) -> Interaction:
    """Convert a Supabase row into a domain Interaction."""

    return Interaction(
        interaction_id=int(row["id"]),
        lead_id=int(row["lead_id"]),
        interaction_type=InteractionType(str(row["type"])),
        occurred_at=_parse_utc_datetime(row["created_at"]),
    )


def list_interactions_for_lead(lead_id: int) -> List[Interaction]:
    """
    All non-deleted interactions of a lead, oldest first.

    Raises:
    - RuntimeError if Supabase returns an error response.
    """

    response = (
        supabase.table(_INTERACTIONS_TABLE)
        .select("id, lead_id, type, created_at")
        .eq("lead_id", lead_id)
        .eq("is_deleted", False)
        .order("created_at")
        .execute()
    )
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to list interactions for lead {lead_id}: {error}")

    rows = getattr(response, "data", None) or []
    return [_row_to_interaction(row) for row in rows]


class SupabaseInteractionSource:
    def list_interactions(self, lead_id: int) -> List[Interaction]:
        return list_interactions_for_lead(lead_id)


__all__ = [
    "SupabaseInteractionSource",
    "list_interactions_for_lead",
]
