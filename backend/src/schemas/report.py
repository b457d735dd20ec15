"""
Test report Pydantic schemas.

Reports follow the Common Test Report Format (CTRF). Only the envelope
fields are validated; the results object is stored as submitted.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.src.utils.validation import is_valid_uuid


# CTRF test outcomes
CtrfTestStatus = Literal["passed", "failed", "skipped", "pending", "other"]


class CtrfReportRequest(BaseModel):
    """Request schema for submitting a CTRF report."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    report_format: str = Field("CTRF", alias="reportFormat", description="Report format identifier")
    spec_version: Optional[str] = Field(None, alias="specVersion", description="CTRF spec version")
    report_id: Optional[str] = Field(None, alias="reportId", description="Report id (generated if omitted)")
    timestamp: Optional[str] = Field(None, description="Report timestamp (now if omitted)")
    generated_by: Optional[str] = Field(None, alias="generatedBy")
    results: Dict[str, Any] = Field(..., description="CTRF results object (tool, summary, tests)")

    @field_validator("report_id")
    @classmethod
    def validate_report_id(cls, v: Optional[str]) -> Optional[str]:
        """Client-supplied report ids become document ids and must be UUIDs."""
        if v is not None and not is_valid_uuid(v):
            raise ValueError("reportId must be a valid UUID")
        return v

    def to_document(self) -> Dict[str, Any]:
        """Serialize with wire field names, dropping unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ReportMetadataResponse(BaseModel):
    """Access-control metadata stored with a report."""

    model_config = ConfigDict(populate_by_name=True)

    uploaded_by: str = Field(..., alias="uploadedBy")
    user_teams: List[str] = Field(..., alias="userTeams")
    is_demo_data: bool = Field(False, alias="isDemoData")
    uploaded_at: Optional[str] = Field(None, alias="uploadedAt")


class StoredReportResponse(BaseModel):
    """Response schema after a report is stored."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    id: str = Field(..., description="Stored report id")
    message: str = "CTRF report stored successfully"
    metadata: ReportMetadataResponse


class ReportListResponse(BaseModel):
    """Response schema for a page of reports."""

    success: bool = True
    data: List[Dict[str, Any]] = Field(..., description="Reports on this page")
    total: int = Field(..., description="Total visible reports")
    page: int
    size: int


class ReportResponse(BaseModel):
    """Response schema for a single report."""

    success: bool = True
    data: Dict[str, Any]
