"""
Test report service: team-aware ingestion and querying.

Ingestion stamps each report with the uploader's teams at upload time.
Queries resolve the caller's current teams and restrict results with the
team access filter. Fetching a single report applies the same filter
in-process, and an inaccessible report is reported as not found.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.services.report_store import ReportStore
from backend.src.services.team_filters import (
    build_report_metadata,
    build_team_access_filter,
    document_matches_access_filter,
)
from backend.src.services.team_provider import TeamMembershipProvider, get_user_team_ids
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


class ReportService:
    """
    Service for storing and retrieving CTRF test reports.

    Usage:
        >>> service = ReportService(team_provider, report_store)
        >>> doc = await service.ingest_report(report, user_id)
        >>> reports, total = await service.list_reports(user_id)
    """

    def __init__(self, team_provider: TeamMembershipProvider, store: ReportStore):
        self.team_provider = team_provider
        self.store = store

    async def ingest_report(self, report: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        """
        Store a report stamped with the uploader's access metadata.

        Args:
            report: CTRF report body
            user_id: Uploader's user id

        Returns:
            The stored document (reportId, timestamp, storedAt, metadata filled)

        Raises:
            ValidationError: If the report has no results object
            ConflictError: If a report with the same reportId already exists
        """
        if not isinstance(report.get("results"), dict):
            raise ValidationError("Report must contain a results object", field="results")

        team_ids = await get_user_team_ids(self.team_provider, user_id)
        now = datetime.now(timezone.utc)
        metadata = build_report_metadata(user_id, team_ids, uploaded_at=now)

        document = dict(report)
        document["reportId"] = document.get("reportId") or str(uuid.uuid4())
        document["timestamp"] = document.get("timestamp") or now.isoformat()
        document["storedAt"] = now.isoformat()
        document["metadata"] = metadata.to_document()

        await run_in_threadpool(self.store.store_report, document)

        logger.info(
            "Stored test report",
            extra={
                "event": "report.stored",
                "report_id": document["reportId"],
                "uploaded_by": user_id,
                "user_teams": metadata.user_teams,
                "is_demo_data": metadata.is_demo_data,
            },
        )
        return document

    async def list_reports(
        self,
        user_id: str,
        page: int = 1,
        size: int = DEFAULT_PAGE_SIZE,
        tool: Optional[str] = None,
        environment: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        List reports visible to the user, newest first.

        Args:
            user_id: Caller's user id
            page: 1-based page number
            size: Page size, clamped to 1..100
            tool: Optional tool name filter
            environment: Optional test environment filter
            status: Optional test status; matches reports with any test in it

        Returns:
            (reports on this page, total visible reports)
        """
        page = max(page, 1)
        size = min(max(size, 1), MAX_PAGE_SIZE)

        team_ids = await get_user_team_ids(self.team_provider, user_id)
        access_filter = build_team_access_filter(user_id, team_ids)

        filters = {}
        if tool:
            filters["tool"] = tool
        if environment:
            filters["environment"] = environment
        if status:
            filters["status"] = status

        return await run_in_threadpool(
            self.store.search_reports, access_filter, page, size, filters
        )

    async def get_report(self, report_id: str, user_id: str) -> Dict[str, Any]:
        """
        Fetch a single report the user may see.

        Raises:
            NotFoundError: If the report does not exist or is not visible
        """
        document = await run_in_threadpool(self.store.get_report, report_id)
        if document is None:
            raise NotFoundError("Test report", report_id)

        team_ids = await get_user_team_ids(self.team_provider, user_id)
        access_filter = build_team_access_filter(user_id, team_ids)
        if not document_matches_access_filter(access_filter, document):
            logger.info(
                "Denied access to test report",
                extra={"event": "report.access.denied", "report_id": report_id, "user_id": user_id},
            )
            raise NotFoundError("Test report", report_id)
        return document
