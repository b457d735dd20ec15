"""
Team-based access control for stored test reports.

Read path: build_team_access_filter() produces the OpenSearch bool/should
fragment restricting results to what a user may see:
1. reports stamped with any of the user's teams
2. reports the user uploaded
3. reports flagged isDemoData
4. reports stamped with the reserved "demo-data" team

Write path: build_report_metadata() snapshots the uploader's teams onto a
new report. An uploader with no teams gets userTeams=["demo-data"] and
isDemoData=true, so either marker alone grants visibility to everyone.

Everything in this module is pure and safe to call concurrently.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence


# Reserved team id for uploads from users without any team. Never a real team row.
DEMO_DATA_TEAM = "demo-data"

# Persisted report metadata fields (keyword sub-fields for exact matching)
USER_TEAMS_FIELD = "metadata.userTeams.keyword"
UPLOADED_BY_FIELD = "metadata.uploadedBy.keyword"
IS_DEMO_DATA_FIELD = "metadata.isDemoData"


def build_team_access_filter(user_id: str, user_team_ids: Sequence[str]) -> Dict[str, Any]:
    """
    Build the OpenSearch filter for team-based access control.

    The terms clause is left out entirely when the user has no teams;
    an empty ``terms`` list is never emitted.

    Args:
        user_id: Authenticated user's identifier (validated upstream)
        user_team_ids: Team ids the user belongs to, passed through as-is

    Returns:
        ``{"bool": {"should": [...], "minimum_should_match": 1}}``

    Example:
        >>> build_team_access_filter("u1", [])["bool"]["should"][0]
        {'term': {'metadata.uploadedBy.keyword': 'u1'}}
    """
    should_clauses: List[Dict[str, Any]] = []

    if user_team_ids:
        should_clauses.append({"terms": {USER_TEAMS_FIELD: list(user_team_ids)}})

    should_clauses.append({"term": {UPLOADED_BY_FIELD: user_id}})
    should_clauses.append({"term": {IS_DEMO_DATA_FIELD: True}})
    should_clauses.append({"term": {USER_TEAMS_FIELD: DEMO_DATA_TEAM}})

    return {
        "bool": {
            "should": should_clauses,
            "minimum_should_match": 1,
        }
    }


def get_effective_team_ids(user_team_ids: Sequence[str]) -> List[str]:
    """
    Determine the team ids to stamp onto a newly stored report.

    Args:
        user_team_ids: Team ids the uploader belongs to

    Returns:
        The uploader's team ids, or ``["demo-data"]`` if there are none.
        Never empty.
    """
    if user_team_ids:
        return list(user_team_ids)
    return [DEMO_DATA_TEAM]


def should_mark_as_demo_data(user_team_ids: Sequence[str]) -> bool:
    """Uploads from users without any team are shared as demo data."""
    return len(user_team_ids) == 0


@dataclass(frozen=True)
class ReportMetadata:
    """
    Access-control metadata stamped on a report at ingestion.

    Computed once from the uploader's teams at upload time and never
    recomputed when membership changes later.
    """

    uploaded_by: str
    user_teams: List[str]
    is_demo_data: bool
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.user_teams:
            raise ValueError("user_teams must not be empty; use get_effective_team_ids()")

    def to_document(self) -> Dict[str, Any]:
        """Render the persisted ``metadata`` object."""
        return {
            "uploadedBy": self.uploaded_by,
            "userTeams": list(self.user_teams),
            "isDemoData": self.is_demo_data,
            "uploadedAt": self.uploaded_at.isoformat(),
        }


def build_report_metadata(
    user_id: str,
    user_team_ids: Sequence[str],
    uploaded_at: Optional[datetime] = None,
) -> ReportMetadata:
    """
    Compute report metadata for an upload.

    Args:
        user_id: Uploader's identifier
        user_team_ids: Uploader's current team ids
        uploaded_at: Upload time (defaults to now, UTC)

    Returns:
        ReportMetadata with effective teams and demo flag applied
    """
    return ReportMetadata(
        uploaded_by=user_id,
        user_teams=get_effective_team_ids(user_team_ids),
        is_demo_data=should_mark_as_demo_data(user_team_ids),
        uploaded_at=uploaded_at or datetime.now(timezone.utc),
    )


# ============================================================================
# In-process evaluation
# ============================================================================

_FIELD_TO_METADATA_KEY = {
    USER_TEAMS_FIELD: "userTeams",
    UPLOADED_BY_FIELD: "uploadedBy",
    IS_DEMO_DATA_FIELD: "isDemoData",
}


def _field_values(metadata: Dict[str, Any], field_name: str) -> List[Any]:
    key = _FIELD_TO_METADATA_KEY.get(field_name)
    if key is None:
        raise ValueError(f"Unsupported access filter field: {field_name}")
    value = metadata.get(key)
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _clause_matches(clause: Dict[str, Any], metadata: Dict[str, Any]) -> bool:
    if "term" in clause:
        ((field_name, expected),) = clause["term"].items()
        return expected in _field_values(metadata, field_name)
    if "terms" in clause:
        ((field_name, expected_values),) = clause["terms"].items()
        present = _field_values(metadata, field_name)
        return any(value in present for value in expected_values)
    if "bool" in clause:
        return _bool_matches(clause["bool"], metadata)
    raise ValueError(f"Unsupported access filter clause: {sorted(clause)}")


def _bool_matches(bool_query: Dict[str, Any], metadata: Dict[str, Any]) -> bool:
    should = bool_query.get("should", [])
    minimum = bool_query.get("minimum_should_match", 1 if should else 0)
    matched = sum(1 for clause in should if _clause_matches(clause, metadata))
    return matched >= minimum


def document_matches_access_filter(access_filter: Dict[str, Any], document: Dict[str, Any]) -> bool:
    """
    Evaluate an access filter against a single stored report.

    Used when a report is fetched by id, which bypasses search queries.
    Matching follows keyword semantics: exact, case-sensitive equality.

    Args:
        access_filter: Fragment from build_team_access_filter()
        document: Stored report (``_source``) with a ``metadata`` object

    Returns:
        True if the document is visible under the filter
    """
    metadata = document.get("metadata") or {}
    return _clause_matches(access_filter, metadata)
