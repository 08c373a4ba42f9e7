"""
Lead repository (persistence).

This module provides *only* persistence operations for the Lead domain entity.
No business rules (scoring, temperature, scheduling, status graph) belong here.

Tables:
- leads: one row per lead; BANT flags and scoring data are JSON columns.
- lead_status_history: append-only audit rows, one per status change.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

from domain.errors import BatchItemFailure
from domain.lead import (
    BANTQualification,
    BudgetRange,
    BusinessSize,
    DecisionMakerRole,
    Industry,
    Lead,
    LeadIntent,
    LeadLifecycleStage,
    LeadPage,
    LeadPriority,
    LeadSource,
    LeadStatus,
    LeadTemperature,
    ScoreHistoryEntry,
    ScoringData,
    StatusHistoryEntry,
    Timeline,
    UrgencyLevel,
)
from domain.lead_defaults import UNSAVED_LEAD_ID
from repositories.client import supabase

logger = logging.getLogger(__name__)

# Supabase table names for Lead records.
# Keep these aligned with your database schema.
_LEADS_TABLE: str = "leads"
_HISTORY_TABLE: str = "lead_status_history"

# Domain field -> column, where they differ.
_COLUMN_FOR_FIELD: Mapping[str, str] = {"lead_id": "id"}


def _to_iso_utc(dt: datetime) -> str:
    """
    Convert a timezone-aware datetime to an ISO-8601 string in UTC.

    Notes:
    - Domain objects require UTC timestamps (offset 0). We still normalize via
      `astimezone(timezone.utc)` for safety.
    """

    if dt.tzinfo is None or dt.utcoffset() is None:
        raise ValueError("timestamps must be timezone-aware (UTC)")
    return dt.astimezone(timezone.utc).isoformat()


def _optional_iso(dt: Optional[datetime]) -> Optional[str]:
    return _to_iso_utc(dt) if dt is not None else None


def _parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        # Python's fromisoformat doesn't consistently accept 'Z' across versions.
        text = value.replace("Z", "+00:00")
        dt = datetime.fromisoformat(text)
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    # If the backend returns a naive timestamp, interpret it as UTC so that the
    # domain model's UTC invariant is satisfied.
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def _optional_datetime(value: Any) -> Optional[datetime]:
    return _parse_utc_datetime(value) if value else None


def _optional_enum(enum_cls: Any, value: Any) -> Any:
    return enum_cls(str(value)) if value else None


def _enum_value(value: Any) -> Optional[str]:
    return value.value if value is not None else None


def _bant_to_json(bant: BANTQualification) -> Dict[str, Any]:
    return {
        "budget_confirmed": bant.budget_confirmed,
        "authority_confirmed": bant.authority_confirmed,
        "need_confirmed": bant.need_confirmed,
        "timeline_confirmed": bant.timeline_confirmed,
        "need_urgency": bant.need_urgency.value,
    }


def _json_to_bant(data: Optional[Mapping[str, Any]]) -> BANTQualification:
    if not data:
        return BANTQualification()
    return BANTQualification(
        budget_confirmed=bool(data.get("budget_confirmed", False)),
        authority_confirmed=bool(data.get("authority_confirmed", False)),
        need_confirmed=bool(data.get("need_confirmed", False)),
        timeline_confirmed=bool(data.get("timeline_confirmed", False)),
        need_urgency=UrgencyLevel(str(data.get("need_urgency") or UrgencyLevel.UNKNOWN.value)),
    )


def _scoring_to_json(data: Optional[ScoringData]) -> Optional[Dict[str, Any]]:
    if data is None:
        return None
    return {
        "engagement_score": data.engagement_score,
        "demographic_score": data.demographic_score,
        "behavioral_score": data.behavioral_score,
        "fit_score": data.fit_score,
        "total_score": data.total_score,
        "last_calculated": _to_iso_utc(data.last_calculated),
        "score_history": [
            {"timestamp": _to_iso_utc(h.timestamp), "score": h.score, "reason": h.reason}
            for h in data.score_history
        ],
    }


def _json_to_scoring(data: Optional[Mapping[str, Any]]) -> Optional[ScoringData]:
    if not data:
        return None
    return ScoringData(
        engagement_score=int(data["engagement_score"]),
        demographic_score=int(data["demographic_score"]),
        behavioral_score=int(data["behavioral_score"]),
        fit_score=int(data["fit_score"]),
        last_calculated=_parse_utc_datetime(data["last_calculated"]),
        score_history=tuple(
            ScoreHistoryEntry(
                timestamp=_parse_utc_datetime(h["timestamp"]),
                score=int(h["score"]),
                reason=str(h.get("reason") or ""),
            )
            for h in data.get("score_history") or []
        ),
    )


def _lead_to_row(lead: Lead) -> dict[str, Any]:
    """Convert a domain Lead to a Supabase row payload (change history excluded)."""

    return {
        # Core identifiers
        "id": lead.lead_id,
        "tenant_id": lead.tenant_id,
        "branch_id": lead.branch_id,
        "created_at": _to_iso_utc(lead.created_at),
        "updated_at": _to_iso_utc(lead.updated_at),

        # Classification
        "status": lead.status.value,
        "temperature": lead.temperature.value,
        "priority": lead.priority.value,
        "lifecycle_stage": lead.lifecycle_stage.value,
        "source": _enum_value(lead.source),
        "intent": _enum_value(lead.intent),

        # Contact / demographic
        "name": lead.name,
        "company_name": lead.company_name,
        "email": lead.email,
        "phone": lead.phone,
        "job_title": lead.job_title,
        "decision_maker_role": _enum_value(lead.decision_maker_role),
        "industry": _enum_value(lead.industry),
        "business_size": _enum_value(lead.business_size),
        "budget_range": _enum_value(lead.budget_range),
        "purchase_timeline": _enum_value(lead.purchase_timeline),
        "user_quality_rating": lead.user_quality_rating,
        "bant": _bant_to_json(lead.bant),

        # Scoring
        "lead_score": lead.lead_score,
        "scoring_data": _scoring_to_json(lead.scoring_data),

        # Activity
        "last_contact_date": _optional_iso(lead.last_contact_date),
        "next_follow_up_date": _optional_iso(lead.next_follow_up_date),
        "total_interactions": lead.total_interactions,
        "average_response_time": lead.average_response_time,
        "days_since_last_response": lead.days_since_last_response,

        # Ownership
        "owner_id": lead.owner_id,
        "assignee_ids": list(lead.assignee_ids),
        "is_deleted": lead.is_deleted,
    }


def _history_to_row(lead_id: int, entry: StatusHistoryEntry) -> dict[str, Any]:
    return {
        "lead_id": lead_id,
        "timestamp": _to_iso_utc(entry.timestamp),
        "old_status": _enum_value(entry.old_status),
        "new_status": entry.new_status.value,
        "reason": entry.reason,
        "description": entry.description,
        "next_step": entry.next_step,
        "actor_id": entry.actor_id,
    }


def _row_to_history(row: Mapping[str, Any]) -> StatusHistoryEntry:
    return StatusHistoryEntry(
        timestamp=_parse_utc_datetime(row["timestamp"]),
        new_status=LeadStatus(str(row["new_status"])),
        old_status=_optional_enum(LeadStatus, row.get("old_status")),
        reason=row.get("reason"),
        description=row.get("description"),
        next_step=row.get("next_step"),
        actor_id=row.get("actor_id"),
    )


def _row_to_lead(
    row: Mapping[str, Any], history: Sequence[StatusHistoryEntry] = ()
) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    return Lead(
        # Core identifiers (required)
        lead_id=int(row["id"]),
        tenant_id=str(row["tenant_id"]),
        branch_id=row.get("branch_id"),
        created_at=_parse_utc_datetime(row["created_at"]),
        updated_at=_parse_utc_datetime(row["updated_at"]),

        # Classification
        status=LeadStatus(str(row["status"])),
        temperature=LeadTemperature(str(row.get("temperature") or LeadTemperature.COLD.value)),
        priority=LeadPriority(str(row.get("priority") or LeadPriority.MEDIUM.value)),
        lifecycle_stage=LeadLifecycleStage(
            str(row.get("lifecycle_stage") or LeadLifecycleStage.LEAD.value)
        ),
        source=_optional_enum(LeadSource, row.get("source")),
        intent=_optional_enum(LeadIntent, row.get("intent")),

        # Contact / demographic
        name=row.get("name"),
        company_name=row.get("company_name"),
        email=row.get("email"),
        phone=row.get("phone"),
        job_title=row.get("job_title"),
        decision_maker_role=_optional_enum(DecisionMakerRole, row.get("decision_maker_role")),
        industry=_optional_enum(Industry, row.get("industry")),
        business_size=_optional_enum(BusinessSize, row.get("business_size")),
        budget_range=_optional_enum(BudgetRange, row.get("budget_range")),
        purchase_timeline=_optional_enum(Timeline, row.get("purchase_timeline")),
        user_quality_rating=int(row.get("user_quality_rating") or 3),
        bant=_json_to_bant(row.get("bant")),

        # Scoring
        lead_score=int(row.get("lead_score") or 0),
        scoring_data=_json_to_scoring(row.get("scoring_data")),

        # Activity
        last_contact_date=_optional_datetime(row.get("last_contact_date")),
        next_follow_up_date=_optional_datetime(row.get("next_follow_up_date")),
        total_interactions=int(row.get("total_interactions") or 0),
        average_response_time=float(row.get("average_response_time") or 0.0),
        days_since_last_response=int(row.get("days_since_last_response") or 0),

        # Ownership / audit
        owner_id=row.get("owner_id"),
        assignee_ids=tuple(row.get("assignee_ids") or ()),
        change_history=tuple(history),
        is_deleted=bool(row.get("is_deleted", False)),
    )


def _check(response: Any, action: str) -> List[Mapping[str, Any]]:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


def _history_rows_by_lead(lead_ids: Sequence[int]) -> Dict[int, List[Mapping[str, Any]]]:
    if not lead_ids:
        return {}
    response = (
        supabase.table(_HISTORY_TABLE)
        .select("*")
        .in_("lead_id", list(lead_ids))
        .order("timestamp")
        .execute()
    )
    grouped: Dict[int, List[Mapping[str, Any]]] = {lead_id: [] for lead_id in lead_ids}
    for row in _check(response, "fetch lead status history"):
        grouped.setdefault(int(row["lead_id"]), []).append(row)
    return grouped


def insert_lead(lead: Lead) -> Lead:
    """
    Insert a new Lead (and its initial history) into Supabase.

    Returns the stored lead with the id assigned by the database.

    Raises:
    - RuntimeError if Supabase returns an error response.
    - ValueError/TypeError for invalid domain values (e.g., timestamps).
    """

    payload = _lead_to_row(lead)
    if lead.lead_id == UNSAVED_LEAD_ID:
        del payload["id"]

    response = supabase.table(_LEADS_TABLE).insert(payload).execute()
    rows = _check(response, "insert lead")
    if not rows:
        raise RuntimeError("Failed to insert lead: no row returned")

    lead_id = int(rows[0]["id"])
    for entry in lead.change_history:
        append_status_history(lead_id, entry)
    return _row_to_lead(rows[0], lead.change_history)


def get_lead_by_id(lead_id: int) -> Lead | None:
    """
    Fetch a Lead (with its change history) by ID.

    Returns:
    - Lead if found
    - None if no record exists for the given ID
    """

    response = (
        supabase.table(_LEADS_TABLE)
        .select("*")
        .eq("id", lead_id)
        .limit(1)
        .execute()
    )
    rows = _check(response, "fetch lead")
    if not rows:
        return None
    history = _history_rows_by_lead([lead_id]).get(lead_id, [])
    return _row_to_lead(rows[0], [_row_to_history(h) for h in history])


def list_leads_page(
    *,
    statuses: Sequence[LeadStatus],
    limit: int,
    after_id: int | None = None,
    tenant_id: str | None = None,
    follow_up_before: datetime | None = None,
    last_contact_before: datetime | None = None,
) -> LeadPage:
    """
    One page of non-deleted leads, ordered by id (keyset pagination).

    A row that does not convert into a valid Lead is logged and reported in
    LeadPage.failures; the rest of the page is still returned and last_id
    still moves past it.

    Args:
    - statuses: only leads in these statuses
    - limit: page size
    - after_id: only leads with id strictly greater than this
    - tenant_id: restrict to one organization
    - follow_up_before: only leads whose next follow-up is earlier than this
    - last_contact_before: only leads last contacted earlier than this
    """

    query = (
        supabase.table(_LEADS_TABLE)
        .select("*")
        .eq("is_deleted", False)
        .in_("status", [s.value for s in statuses])
    )
    if after_id is not None:
        query = query.gt("id", after_id)
    if tenant_id is not None:
        query = query.eq("tenant_id", tenant_id)
    if follow_up_before is not None:
        query = query.lt("next_follow_up_date", _to_iso_utc(follow_up_before))
    if last_contact_before is not None:
        query = query.lt("last_contact_date", _to_iso_utc(last_contact_before))

    response = query.order("id").limit(limit).execute()
    rows = _check(response, "list leads")

    ids = [int(row["id"]) for row in rows]
    history = _history_rows_by_lead(ids)

    leads: List[Lead] = []
    failures: List[BatchItemFailure] = []
    for lead_id, row in zip(ids, rows):
        try:
            entries = [_row_to_history(h) for h in history.get(lead_id, [])]
            leads.append(_row_to_lead(row, entries))
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Skipping unreadable lead row %s: %s", lead_id, exc)
            failures.append(BatchItemFailure.from_exception(lead_id, exc))

    return LeadPage(
        leads=tuple(leads),
        failures=tuple(failures),
        last_id=max(ids) if ids else None,
        row_count=len(rows),
    )


def update_lead_fields(lead: Lead, fields: Collection[str]) -> None:
    """
    Write only the named domain fields of `lead`.

    change_history is never written here; use append_status_history.
    """

    row = _lead_to_row(lead)
    payload = {}
    for name in fields:
        if name == "change_history":
            continue
        column = _COLUMN_FOR_FIELD.get(name, name)
        if column not in row:
            raise ValueError(f"Unknown lead field: {name}")
        payload[column] = row[column]
    if not payload:
        return

    response = supabase.table(_LEADS_TABLE).update(payload).eq("id", lead.lead_id).execute()
    _check(response, f"update lead {lead.lead_id}")


def append_status_history(lead_id: int, entry: StatusHistoryEntry) -> None:
    response = supabase.table(_HISTORY_TABLE).insert(_history_to_row(lead_id, entry)).execute()
    _check(response, f"append status history for lead {lead_id}")


class SupabaseLeadStore:
    """LeadStore backed by the functions of this module."""

    def get_lead(self, lead_id: int) -> Optional[Lead]:
        return get_lead_by_id(lead_id)

    def list_leads_page(
        self,
        *,
        statuses: Sequence[LeadStatus],
        limit: int,
        after_id: Optional[int] = None,
        tenant_id: Optional[str] = None,
        follow_up_before: Optional[datetime] = None,
        last_contact_before: Optional[datetime] = None,
    ) -> LeadPage:
        return list_leads_page(
            statuses=statuses,
            limit=limit,
            after_id=after_id,
            tenant_id=tenant_id,
            follow_up_before=follow_up_before,
            last_contact_before=last_contact_before,
        )

    def insert_lead(self, lead: Lead) -> Lead:
        return insert_lead(lead)

    def write_fields(self, lead: Lead, fields: Collection[str]) -> None:
        update_lead_fields(lead, fields)

    def append_change(self, lead_id: int, entry: StatusHistoryEntry) -> None:
        append_status_history(lead_id, entry)


__all__ = [
    "SupabaseLeadStore",
    "append_status_history",
    "get_lead_by_id",
    "insert_lead",
    "list_leads_page",
    "update_lead_fields",
]
