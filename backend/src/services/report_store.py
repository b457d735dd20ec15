"""
OpenSearch document store for CTRF test reports.

Reports are stored with an access-control ``metadata`` object:

    {"uploadedBy": str, "userTeams": [str], "isDemoData": bool, "uploadedAt": date}

uploadedBy and userTeams are mapped as text with a ``keyword`` sub-field so
the team access filter can match them exactly. Search requests place that
filter in ``bool.filter`` unchanged.

The store is synchronous (opensearch-py); async callers wrap it with
run_in_threadpool.
"""

from typing import Any, Dict, List, Optional, Protocol, Tuple

from opensearchpy import OpenSearch
from opensearchpy.exceptions import ConflictError as OpenSearchConflictError
from opensearchpy.exceptions import NotFoundError as OpenSearchNotFoundError
from opensearchpy.exceptions import OpenSearchException

from backend.src.config.settings import AppSettings
from backend.src.services.exceptions import ConflictError, UpstreamError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


REPORTS_INDEX_MAPPINGS: Dict[str, Any] = {
    "properties": {
        "reportId": {"type": "keyword"},
        "reportFormat": {"type": "keyword"},
        "specVersion": {"type": "keyword"},
        "timestamp": {"type": "date"},
        "storedAt": {"type": "date"},
        "results": {
            "type": "object",
            "dynamic": False,
            "properties": {
                "tool": {
                    "properties": {
                        "name": {"type": "keyword"},
                        "version": {"type": "keyword"},
                    }
                },
                "summary": {
                    "properties": {
                        "tests": {"type": "integer"},
                        "passed": {"type": "integer"},
                        "failed": {"type": "integer"},
                        "skipped": {"type": "integer"},
                        "pending": {"type": "integer"},
                        "other": {"type": "integer"},
                        "start": {"type": "long"},
                        "stop": {"type": "long"},
                    }
                },
                "environment": {
                    "properties": {
                        "appName": {"type": "keyword"},
                        "buildName": {"type": "keyword"},
                        "branchName": {"type": "keyword"},
                        "testEnvironment": {"type": "keyword"},
                    }
                },
                "tests": {
                    "properties": {
                        "name": {"type": "keyword"},
                        "status": {"type": "keyword"},
                        "duration": {"type": "long"},
                    }
                },
            },
        },
        "metadata": {
            "properties": {
                "uploadedBy": {
                    "type": "text",
                    "fields": {"keyword": {"type": "keyword"}},
                },
                "userTeams": {
                    "type": "text",
                    "fields": {"keyword": {"type": "keyword"}},
                },
                "isDemoData": {"type": "boolean"},
                "uploadedAt": {"type": "date"},
            }
        },
    }
}

TOOL_FIELD = "results.tool.name"
ENVIRONMENT_FIELD = "results.environment.testEnvironment"
STATUS_FIELD = "results.tests.status"


class ReportStore(Protocol):
    """Document store operations used by ReportService."""

    def ensure_index(self) -> None: ...
    def store_report(self, document: Dict[str, Any]) -> Dict[str, Any]: ...
    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]: ...
    def search_reports(
        self,
        access_filter: Dict[str, Any],
        page: int = 1,
        size: int = 20,
        filters: Optional[Dict[str, str]] = None,
    ) -> Tuple[List[Dict[str, Any]], int]: ...
    def health_check(self) -> bool: ...


def build_search_body(
    access_filter: Dict[str, Any],
    page: int = 1,
    size: int = 20,
    filters: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Build the search request for a page of accessible reports.

    Args:
        access_filter: Fragment from build_team_access_filter()
        page: 1-based page number
        size: Page size
        filters: Optional exact-match filters keyed by "tool", "environment"
            or "status"; status matches reports containing any test with it

    Returns:
        OpenSearch request body
    """
    filter_clauses: List[Dict[str, Any]] = [access_filter]
    filters = filters or {}
    if filters.get("tool"):
        filter_clauses.append({"term": {TOOL_FIELD: filters["tool"]}})
    if filters.get("environment"):
        filter_clauses.append({"term": {ENVIRONMENT_FIELD: filters["environment"]}})
    if filters.get("status"):
        filter_clauses.append({"term": {STATUS_FIELD: filters["status"]}})

    return {
        "from": (page - 1) * size,
        "size": size,
        "query": {
            "bool": {
                "must": [{"match_all": {}}],
                "filter": filter_clauses,
            }
        },
        "sort": [{"storedAt": {"order": "desc"}}],
        "track_total_hits": True,
    }


class OpenSearchReportStore:
    """
    OpenSearch-backed report store.

    Example:
        store = OpenSearchReportStore(client, index_name="ctrf-reports")
        store.ensure_index()
        store.store_report(document)
    """

    def __init__(self, client: OpenSearch, index_name: str = "ctrf-reports"):
        """
        Initialize the store.

        Args:
            client: opensearch-py client
            index_name: Index holding the reports
        """
        self.client = client
        self.index_name = index_name

    def ensure_index(self) -> None:
        """Create the reports index with its mapping if it does not exist."""
        try:
            if self.client.indices.exists(index=self.index_name):
                return
            self.client.indices.create(
                index=self.index_name,
                body={"mappings": REPORTS_INDEX_MAPPINGS},
            )
            logger.info(
                f"Created reports index: {self.index_name}",
                extra={"event": "reports.index.created", "index": self.index_name},
            )
        except OpenSearchException as e:
            logger.error(f"Failed to ensure index {self.index_name}: {e}")
            raise UpstreamError(f"Failed to create index {self.index_name}: {e}") from e

    def store_report(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Index a new report under its reportId.

        Returns:
            The indexing response

        Raises:
            ConflictError: If a report with the same reportId already exists
        """
        try:
            return self.client.index(
                index=self.index_name,
                id=document["reportId"],
                body=document,
                op_type="create",
                refresh="wait_for",
            )
        except OpenSearchConflictError as e:
            raise ConflictError(f"Test report {document['reportId']} already exists") from e
        except OpenSearchException as e:
            logger.error(f"Failed to store report {document.get('reportId')}: {e}")
            raise UpstreamError(f"Failed to store report: {e}") from e

    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a report by id.

        Returns:
            The stored document, or None if it does not exist
        """
        try:
            result = self.client.get(index=self.index_name, id=report_id)
        except OpenSearchNotFoundError:
            return None
        except OpenSearchException as e:
            logger.error(f"Failed to fetch report {report_id}: {e}")
            raise UpstreamError(f"Failed to fetch report: {e}") from e

        if not result.get("found", True):
            return None
        return result.get("_source")

    def search_reports(
        self,
        access_filter: Dict[str, Any],
        page: int = 1,
        size: int = 20,
        filters: Optional[Dict[str, str]] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """
        Search accessible reports.

        Returns:
            (documents on this page, total matching documents)
        """
        body = build_search_body(access_filter, page=page, size=size, filters=filters)
        try:
            result = self.client.search(index=self.index_name, body=body)
        except OpenSearchNotFoundError:
            # Index not created yet: nothing stored
            return [], 0
        except OpenSearchException as e:
            logger.error(f"Report search failed: {e}")
            raise UpstreamError(f"Report search failed: {e}") from e

        hits = result.get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)
        return [hit.get("_source", {}) for hit in hits.get("hits", [])], int(total)

    def health_check(self) -> bool:
        """Check if the cluster answers a ping."""
        try:
            return bool(self.client.ping())
        except OpenSearchException as e:
            logger.warning(f"OpenSearch health check failed: {e}")
            return False


def create_opensearch_client(settings: AppSettings) -> OpenSearch:
    """
    Build an opensearch-py client from settings.

    Args:
        settings: Application settings

    Returns:
        OpenSearch client (no connection is made until first use)
    """
    return OpenSearch(
        hosts=[settings.opensearch_host],
        http_auth=settings.opensearch_auth,
        use_ssl=settings.opensearch_host.startswith("https"),
        verify_certs=settings.opensearch_ssl_verify,
        ssl_show_warn=False,
        timeout=30,
    )
