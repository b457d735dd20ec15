"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database engine, sessions and session factory
- Relational team provider bound to the test database
- Application settings
- Fake report store and sample CTRF reports
- Well-known user and team identifiers
"""

import os
import uuid
from typing import Any, Dict, List, Optional, Tuple

import pytest
from sqlalchemy.orm import sessionmaker

# Set test environment variables before importing app modules
os.environ['SCALEDTEST_DB_URL'] = 'sqlite:///:memory:'
os.environ['SCALEDTEST_AUTH_PROVIDER'] = 'database'

from backend.src.config.settings import AppSettings
from backend.src.db.database import create_db_engine, create_session_factory
from backend.src.models import Base
from backend.src.services.database_team_provider import DatabaseTeamProvider
from backend.src.services.exceptions import ConflictError
from backend.src.services.team_filters import document_matches_access_filter


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine with foreign keys enabled."""
    engine = create_db_engine('sqlite:///:memory:')
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_session_factory(test_db_engine) -> sessionmaker:
    """Create a session factory bound to the test engine."""
    return create_session_factory(test_db_engine)


@pytest.fixture(scope='function')
def test_db_session(test_session_factory):
    """Create a test database session."""
    session = test_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope='function')
def db_team_provider(test_session_factory):
    """Create a DatabaseTeamProvider against the test database."""
    return DatabaseTeamProvider(test_session_factory)


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture
def test_settings():
    """Settings for the relational backend against the test database."""
    return AppSettings(
        auth_provider='database',
        database_url='sqlite:///:memory:',
        opensearch_host='http://localhost:9200',
    )


@pytest.fixture
def keycloak_settings():
    """Settings for the Keycloak backend."""
    return AppSettings(
        auth_provider='keycloak',
        database_url='sqlite:///:memory:',
        keycloak_url='http://keycloak.test:8080/',
        keycloak_realm='scaledtest',
        keycloak_admin_username='admin',
        keycloak_admin_password='secret',
    )


# ============================================================================
# Identifier Fixtures
# ============================================================================

@pytest.fixture
def user_id() -> str:
    """A valid user id."""
    return str(uuid.uuid4())


@pytest.fixture
def other_user_id() -> str:
    """A second valid user id."""
    return str(uuid.uuid4())


# ============================================================================
# Report Store Fixtures
# ============================================================================

class InMemoryReportStore:
    """
    Report store keeping documents in a dict.

    Searches apply the access filter with document_matches_access_filter,
    so visibility behaves like the real index for the metadata fields.
    """

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.searches: List[Dict[str, Any]] = []

    def ensure_index(self) -> None:
        return None

    def store_report(self, document: Dict[str, Any]) -> Dict[str, Any]:
        if document['reportId'] in self.documents:
            raise ConflictError(f"Test report {document['reportId']} already exists")
        self.documents[document['reportId']] = document
        return {'result': 'created', '_id': document['reportId']}

    def get_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        return self.documents.get(report_id)

    def search_reports(
        self,
        access_filter: Dict[str, Any],
        page: int = 1,
        size: int = 20,
        filters: Optional[Dict[str, str]] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        self.searches.append({
            'access_filter': access_filter,
            'page': page,
            'size': size,
            'filters': filters or {},
        })
        filters = filters or {}
        matched = []
        for doc in self.documents.values():
            if not document_matches_access_filter(access_filter, doc):
                continue
            results = doc.get('results', {})
            if filters.get('tool') and results.get('tool', {}).get('name') != filters['tool']:
                continue
            if filters.get('environment') and (
                results.get('environment', {}).get('testEnvironment') != filters['environment']
            ):
                continue
            if filters.get('status') and not any(
                test.get('status') == filters['status'] for test in results.get('tests', [])
            ):
                continue
            matched.append(doc)
        matched.sort(key=lambda d: d.get('storedAt', ''), reverse=True)
        start = (page - 1) * size
        return matched[start:start + size], len(matched)

    def health_check(self) -> bool:
        return True


@pytest.fixture
def report_store():
    """Create an empty in-memory report store."""
    return InMemoryReportStore()


@pytest.fixture
def sample_report_data():
    """Factory for creating sample CTRF report bodies."""
    def _create(tool='jest', environment='staging', passed=8, failed=2, test_status='passed', **extra):
        report = {
            'reportFormat': 'CTRF',
            'specVersion': '1.0.0',
            'results': {
                'tool': {'name': tool, 'version': '29.7.0'},
                'summary': {
                    'tests': passed + failed,
                    'passed': passed,
                    'failed': failed,
                    'skipped': 0,
                    'pending': 0,
                    'other': 0,
                    'start': 1700000000000,
                    'stop': 1700000005000,
                },
                'tests': [
                    {'name': 'renders header', 'status': test_status, 'duration': 12},
                ],
                'environment': {'testEnvironment': environment},
            },
        }
        report.update(extra)
        return report
    return _create
