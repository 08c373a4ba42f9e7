"""
Domain: Interaction value object.

An Interaction is one recorded touch point with a lead (email, call, meeting...).
Interactions are inputs to the Scoring Engine (engagement and behavioral
sub-scores) and to the Temperature State Machine (velocity).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional

from .time import require_utc_timestamp  # type: ignore[import-untyped]

# Trailing window used for interaction velocity.
VELOCITY_WINDOW = timedelta(days=7)


class InteractionType(str, Enum):
    EMAIL = "EMAIL"
    CALL = "CALL"
    MEETING = "MEETING"
    MESSAGE = "MESSAGE"
    DEMO = "DEMO"
    CONTENT_DOWNLOAD = "CONTENT_DOWNLOAD"
    WEBSITE_VISIT = "WEBSITE_VISIT"
    NOTE = "NOTE"


@dataclass(frozen=True, slots=True)
class Interaction:
    interaction_id: int
    lead_id: int
    interaction_type: InteractionType
    occurred_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("occurred_at", self.occurred_at)


def interactions_as_of(
    interactions: Iterable[Interaction], lead_id: int, as_of: datetime
) -> List[Interaction]:
    """Interactions of `lead_id` that happened at or before `as_of`."""

    require_utc_timestamp("as_of", as_of)
    return [i for i in interactions if i.lead_id == lead_id and i.occurred_at <= as_of]


def recent_interaction_count(
    interactions: Iterable[Interaction],
    lead_id: int,
    as_of: datetime,
    window: timedelta = VELOCITY_WINDOW,
) -> int:
    """Number of interactions in the trailing `window` ending at `as_of`."""

    since = as_of - window
    return sum(1 for i in interactions_as_of(interactions, lead_id, as_of) if i.occurred_at > since)


def latest_interaction_at(
    interactions: Iterable[Interaction], lead_id: int, as_of: datetime
) -> Optional[datetime]:
    seen = [i.occurred_at for i in interactions_as_of(interactions, lead_id, as_of)]
    return max(seen) if seen else None


__all__ = [
    "Interaction",
    "InteractionType",
    "VELOCITY_WINDOW",
    "interactions_as_of",
    "latest_interaction_at",
    "recent_interaction_count",
]
