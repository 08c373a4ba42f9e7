"""
Domain: Temperature State Machine.

Contract excerpts implemented here:
- Temperature is derived from {status, lead_score, hours since the last status
  change, interactions in the trailing 7 days, days since the last update}.
  The APPROVED rule additionally reads the current temperature.
- "Last status change" is the latest change_history entry. Field edits move
  updated_at (and so decay) but never the status-change clock. A lead with no
  history has no known change time and gets no freshness adjustments.
- Evaluation order is fixed: status rule -> velocity overlays -> decay ->
  final guards.
- Decay only ever lowers the temperature (HOT > WARM > COLD > FROZEN).
- DECLINED / CANCELLED are never HOT; APPROVED / CONVERTED are never COLD or
  FROZEN.
- next_temperature is pure: the caller decides whether to persist the result.

Thresholds are module constants; nothing outside this module hard-codes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from .interaction import Interaction, recent_interaction_count  # type: ignore[import-untyped]
from .lead import Lead, LeadStatus, LeadTemperature  # type: ignore[import-untyped]
from .time import hours_between, whole_days_between  # type: ignore[import-untyped]

# APPROVED
APPROVED_PROMOTE_SCORE = 70
APPROVED_PROMOTE_WITHIN_HOURS = 24.0
FAST_APPROVAL_HOURS = 6.0

# REVIEW score bands, highest first.
REVIEW_BANDS: Sequence[tuple[int, LeadTemperature]] = (
    (80, LeadTemperature.HOT),
    (60, LeadTemperature.WARM),
    (40, LeadTemperature.COLD),
)

# PENDING (and unknown statuses) score bands, highest first.
PENDING_BANDS: Sequence[tuple[int, LeadTemperature]] = (
    (75, LeadTemperature.HOT),
    (50, LeadTemperature.WARM),
    (25, LeadTemperature.COLD),
)
PENDING_FRESH_HOURS = 2.0
PENDING_STALE_HOURS = 168.0

# DECLINED / CANCELLED
REVIVAL_SCORE = 60

# Velocity: interactions in the trailing week.
VELOCITY_WARM_TO_HOT = 8
VELOCITY_COLD_TO_WARM = 5

# Decay: (idle days strictly greater than, warmest temperature allowed), coldest first.
DECAY_CEILINGS: Sequence[tuple[int, LeadTemperature]] = (
    (60, LeadTemperature.FROZEN),
    (30, LeadTemperature.COLD),
    (14, LeadTemperature.WARM),
)

_NEVER_HOT = frozenset({LeadStatus.DECLINED, LeadStatus.CANCELLED})
_NEVER_COLD = frozenset({LeadStatus.APPROVED, LeadStatus.CONVERTED})


@dataclass(frozen=True, slots=True)
class TemperatureInputs:
    """Everything the state machine looks at, already reduced to numbers."""

    status: LeadStatus
    lead_score: int
    current: LeadTemperature
    status_change_elapsed_hours: Optional[float]
    recent_interaction_count: int
    days_since_update: int


def _banded(score: int, bands: Sequence[tuple[int, LeadTemperature]]) -> LeadTemperature:
    for threshold, temperature in bands:
        if score >= threshold:
            return temperature
    return LeadTemperature.FROZEN


def _coolest(a: LeadTemperature, b: LeadTemperature) -> LeadTemperature:
    return a if a.rank <= b.rank else b


def _warmest(a: LeadTemperature, b: LeadTemperature) -> LeadTemperature:
    return a if a.rank >= b.rank else b


def _changed_within(inputs: TemperatureInputs, hours: float) -> bool:
    elapsed = inputs.status_change_elapsed_hours
    return elapsed is not None and elapsed <= hours


def status_rule(inputs: TemperatureInputs) -> LeadTemperature:
    """Temperature implied by the status alone (before overlays)."""

    status = inputs.status
    score = inputs.lead_score
    elapsed = inputs.status_change_elapsed_hours

    if status is LeadStatus.APPROVED:
        if inputs.current in (LeadTemperature.COLD, LeadTemperature.FROZEN):
            if score >= APPROVED_PROMOTE_SCORE or _changed_within(
                inputs, APPROVED_PROMOTE_WITHIN_HOURS
            ):
                return LeadTemperature.HOT
            return LeadTemperature.WARM
        if _changed_within(inputs, FAST_APPROVAL_HOURS):
            return LeadTemperature.HOT
        return inputs.current

    if status is LeadStatus.CONVERTED:
        return LeadTemperature.HOT

    if status is LeadStatus.REVIEW:
        return _banded(score, REVIEW_BANDS)

    if status in _NEVER_HOT:
        return LeadTemperature.COLD if score >= REVIVAL_SCORE else LeadTemperature.FROZEN

    banded = _banded(score, PENDING_BANDS)
    if status is LeadStatus.PENDING:
        if _changed_within(inputs, PENDING_FRESH_HOURS):
            return _warmest(banded, LeadTemperature.WARM)
        if elapsed is not None and elapsed > PENDING_STALE_HOURS:
            return _coolest(banded, LeadTemperature.COLD)
    return banded


def apply_velocity(temperature: LeadTemperature, inputs: TemperatureInputs) -> LeadTemperature:
    """Freshness boost first, then one step of interaction-count promotion."""

    if (
        inputs.status in (LeadStatus.APPROVED, LeadStatus.REVIEW)
        and _changed_within(inputs, FAST_APPROVAL_HOURS)
    ):
        return LeadTemperature.HOT

    count = inputs.recent_interaction_count
    if temperature is LeadTemperature.WARM and count >= VELOCITY_WARM_TO_HOT:
        return LeadTemperature.HOT
    if temperature is LeadTemperature.COLD and count >= VELOCITY_COLD_TO_WARM:
        return LeadTemperature.WARM
    return temperature


def apply_decay(temperature: LeadTemperature, days_since_update: int) -> LeadTemperature:
    """Cap the temperature by idle time. Never raises it."""

    for idle_days, ceiling in DECAY_CEILINGS:
        if days_since_update > idle_days:
            return _coolest(temperature, ceiling)
    return temperature


def apply_guards(temperature: LeadTemperature, status: LeadStatus) -> LeadTemperature:
    if status in _NEVER_HOT and temperature is LeadTemperature.HOT:
        return LeadTemperature.WARM
    if status in _NEVER_COLD:
        return _warmest(temperature, LeadTemperature.WARM)
    return temperature


def classify_temperature(inputs: TemperatureInputs) -> LeadTemperature:
    temperature = status_rule(inputs)
    temperature = apply_velocity(temperature, inputs)
    temperature = apply_decay(temperature, inputs.days_since_update)
    return apply_guards(temperature, inputs.status)


def _hours_since_status_change(lead: Lead, as_of: datetime) -> Optional[float]:
    latest = lead.latest_change
    if latest is None:
        return None
    return hours_between(latest.timestamp, as_of)


def temperature_inputs(
    lead: Lead, recent_interactions: Iterable[Interaction], as_of: datetime
) -> TemperatureInputs:
    """
    Reduce a lead and its interactions to TemperatureInputs at `as_of`.

    The recent count is always restricted to the trailing week ending at
    `as_of`, so passing the full interaction history is safe.
    """

    return TemperatureInputs(
        status=lead.status,
        lead_score=lead.lead_score,
        current=lead.temperature,
        status_change_elapsed_hours=_hours_since_status_change(lead, as_of),
        recent_interaction_count=recent_interaction_count(
            recent_interactions, lead.lead_id, as_of
        ),
        days_since_update=whole_days_between(lead.updated_at, as_of),
    )


def next_temperature(
    lead: Lead, recent_interactions: Iterable[Interaction], as_of: datetime
) -> LeadTemperature:
    return classify_temperature(temperature_inputs(lead, recent_interactions, as_of))


__all__ = [
    "DECAY_CEILINGS",
    "TemperatureInputs",
    "apply_decay",
    "apply_guards",
    "apply_velocity",
    "classify_temperature",
    "next_temperature",
    "status_rule",
    "temperature_inputs",
]
