"""
Single-lead reprocessing pipeline.

Scoring -> (optional) auto-progression -> temperature -> follow-up, as pure
steps over a Lead snapshot. Persisting the outcome is a separate call so the
batch orchestrator and the post-mutation handlers share the same rules.

Rules:
- A score entry is appended only when the breakdown differs from the stored
  one (or no score exists yet), so re-running over unchanged facts leaves the
  lead untouched.
- Auto-progression is applied only when requested (batch path).
- The follow-up date is recomputed when temperature or priority changed, or
  when the lead has none.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from domain.calendar import OrganizationCalendar
from domain.follow_up import next_follow_up
from domain.interaction import Interaction
from domain.lead import Lead, LeadPriority, LeadStatus, LeadTemperature, StatusHistoryEntry
from domain.progression import evaluate_auto_progression
from domain.scoring import ScoreBreakdown, apply_score, compute_score
from domain.temperature import next_temperature
from services.ports import LeadStore

Scorer = Callable[[Lead, Sequence[Interaction], datetime], ScoreBreakdown]

# Columns written by the pipeline (change_history is appended separately).
_TRACKED_FIELDS = (
    "lead_score",
    "scoring_data",
    "status",
    "lifecycle_stage",
    "temperature",
    "priority",
    "next_follow_up_date",
    "updated_at",
    "days_since_last_response",
)


@dataclass(frozen=True, slots=True)
class ReprocessOutcome:
    lead: Lead
    changed_fields: frozenset[str]
    new_history: tuple[StatusHistoryEntry, ...]
    previous_status: LeadStatus

    @property
    def status_changed(self) -> bool:
        return self.lead.status != self.previous_status

    @property
    def is_noop(self) -> bool:
        return not self.changed_fields and not self.new_history


def _same_breakdown(lead: Lead, breakdown: ScoreBreakdown) -> bool:
    data = lead.scoring_data
    if data is None:
        return False
    return (
        data.engagement_score,
        data.demographic_score,
        data.behavioral_score,
        data.fit_score,
    ) == (breakdown.engagement, breakdown.demographic, breakdown.behavioral, breakdown.fit)


def diff_fields(before: Lead, after: Lead) -> frozenset[str]:
    return frozenset(
        name for name in _TRACKED_FIELDS if getattr(before, name) != getattr(after, name)
    )


def reschedule_if_needed(
    lead: Lead,
    *,
    previous_temperature: LeadTemperature,
    previous_priority: LeadPriority,
    calendar: Optional[OrganizationCalendar],
    as_of: datetime,
) -> Lead:
    if (
        lead.next_follow_up_date is not None
        and lead.temperature == previous_temperature
        and lead.priority == previous_priority
    ):
        return lead
    follow_up = next_follow_up(lead.temperature, lead.priority, calendar, lead.tenant_id, as_of)
    return lead.with_changes(next_follow_up_date=follow_up)


def reprocess_lead(
    lead: Lead,
    interactions: Iterable[Interaction],
    calendar: Optional[OrganizationCalendar],
    as_of: datetime,
    *,
    reason: str,
    allow_progression: bool = False,
    scorer: Scorer = compute_score,
) -> ReprocessOutcome:
    """Run the scoring/classification/scheduling steps over one lead snapshot."""

    interactions = list(interactions)
    original = lead

    breakdown = scorer(lead, interactions, as_of)
    if not _same_breakdown(lead, breakdown):
        lead = apply_score(lead, breakdown, as_of, reason)

    if allow_progression:
        decision = evaluate_auto_progression(lead, as_of)
        if decision is not None:
            lead = lead.with_status_change(
                decision.new_status,
                at=as_of,
                reason=decision.reason,
                description=decision.description,
                next_step=decision.next_step,
            )

    temperature = next_temperature(lead, interactions, as_of)
    if temperature != lead.temperature:
        lead = lead.with_changes(temperature=temperature)

    lead = reschedule_if_needed(
        lead,
        previous_temperature=original.temperature,
        previous_priority=original.priority,
        calendar=calendar,
        as_of=as_of,
    )

    new_history = lead.change_history[len(original.change_history):]
    return ReprocessOutcome(
        lead=lead,
        changed_fields=diff_fields(original, lead),
        new_history=tuple(new_history),
        previous_status=original.status,
    )


def persist_outcome(store: LeadStore, outcome: ReprocessOutcome) -> None:
    """Write changed columns first, then append history entries in order."""

    if outcome.changed_fields:
        store.write_fields(outcome.lead, outcome.changed_fields)
    for entry in outcome.new_history:
        store.append_change(outcome.lead.lead_id, entry)


__all__ = [
    "ReprocessOutcome",
    "Scorer",
    "diff_fields",
    "persist_outcome",
    "reprocess_lead",
    "reschedule_if_needed",
]
