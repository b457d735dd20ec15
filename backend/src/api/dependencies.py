"""
Shared FastAPI dependencies for API routes.

The team provider and report service are built once during application
startup and attached to app.state; these dependencies hand them to route
handlers. Tests override them through app.dependency_overrides.
"""

from fastapi import HTTPException, Request, status

from backend.src.services.report_service import ReportService
from backend.src.services.team_provider import TeamMembershipProvider


def get_team_provider(request: Request) -> TeamMembershipProvider:
    """Return the process-wide team membership provider."""
    provider = getattr(request.app.state, "team_provider", None)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Team provider not initialized",
        )
    return provider


def get_report_service(request: Request) -> ReportService:
    """Return the process-wide report service."""
    service = getattr(request.app.state, "report_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report service not initialized",
        )
    return service
