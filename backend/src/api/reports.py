"""
Test Reports API endpoints.

Submitting a report requires the maintainer role and stamps it with the
uploader's teams. Listing and fetching are open to any authenticated
user and return only reports visible through team access control.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.src.api.dependencies import get_report_service
from backend.src.middleware.auth import AuthContext, require_auth, require_maintainer
from backend.src.schemas.report import (
    CtrfReportRequest,
    CtrfTestStatus,
    ReportListResponse,
    ReportMetadataResponse,
    ReportResponse,
    StoredReportResponse,
)
from backend.src.services.report_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, ReportService
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(prefix="/test-reports", tags=["Test Reports"])


@router.post("", response_model=StoredReportResponse, status_code=201)
async def submit_report(
    report: CtrfReportRequest,
    ctx: AuthContext = Depends(require_maintainer),
    service: ReportService = Depends(get_report_service),
):
    """
    Store a CTRF test report.

    **Requires maintainer role or higher.**

    reportId must be a UUID when supplied and is generated when omitted;
    an existing reportId is rejected with 409. timestamp defaults to now.
    The report is stamped with the uploader's teams; uploaders without
    teams produce demo data visible to everyone.
    """
    document = await service.ingest_report(report.to_document(), ctx.user_id)
    metadata = document["metadata"]

    return StoredReportResponse(
        id=document["reportId"],
        metadata=ReportMetadataResponse(
            uploaded_by=metadata["uploadedBy"],
            user_teams=metadata["userTeams"],
            is_demo_data=metadata["isDemoData"],
            uploaded_at=metadata["uploadedAt"],
        ),
    )


@router.get("", response_model=ReportListResponse)
async def list_reports(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
    tool: Optional[str] = Query(None, description="Filter by tool name"),
    environment: Optional[str] = Query(None, description="Filter by test environment"),
    status: Optional[CtrfTestStatus] = Query(None, description="Only reports containing a test with this status"),
    ctx: AuthContext = Depends(require_auth),
    service: ReportService = Depends(get_report_service),
):
    """
    List reports visible to the caller, newest first.

    Visible reports: the caller's teams, the caller's own uploads, and
    demo data.
    """
    reports, total = await service.list_reports(
        ctx.user_id, page=page, size=size, tool=tool, environment=environment, status=status,
    )
    return ReportListResponse(data=reports, total=total, page=page, size=size)


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: str,
    ctx: AuthContext = Depends(require_auth),
    service: ReportService = Depends(get_report_service),
):
    """
    Get a single report.

    Returns 404 both when the report does not exist and when the caller
    may not see it.
    """
    document = await service.get_report(report_id, ctx.user_id)
    return ReportResponse(data=document)
