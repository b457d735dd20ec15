"""
Integration tests for the team management API.

Covers role enforcement, team CRUD through the relational backend,
default-team protection and the caller's own team listing.
"""

import uuid

import pytest

from fastapi.testclient import TestClient

from backend.src.api.dependencies import get_team_provider
from backend.src.main import app


def auth_headers(user_id, roles="owner", email=None):
    """Trusted proxy headers for a caller."""
    headers = {"X-User-Id": user_id, "X-User-Roles": roles}
    if email:
        headers["X-User-Email"] = email
    return headers


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def client(db_team_provider):
    """TestClient wired to the test database provider."""
    app.dependency_overrides[get_team_provider] = lambda: db_team_provider
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_team_provider, None)


@pytest.fixture
def owner_id():
    return str(uuid.uuid4())


def _create_team(client, owner_id, name="Platform QA", description=None):
    response = client.post(
        "/api/admin/teams",
        json={"name": name, "description": description},
        headers=auth_headers(owner_id, "owner"),
    )
    assert response.status_code == 201, response.text
    return response.json()


# ============================================================================
# Authorization
# ============================================================================


class TestAuthorization:
    """Role enforcement on admin team endpoints."""

    def test_missing_identity_is_unauthorized(self, client):
        response = client.get("/api/admin/teams")
        assert response.status_code == 401

    def test_readonly_cannot_list_teams(self, client, owner_id):
        response = client.get("/api/admin/teams", headers=auth_headers(owner_id, "readonly"))
        assert response.status_code == 403

    def test_maintainer_cannot_create_team(self, client, owner_id):
        response = client.post(
            "/api/admin/teams",
            json={"name": "Nope"},
            headers=auth_headers(owner_id, "maintainer"),
        )
        assert response.status_code == 403


# ============================================================================
# Team CRUD
# ============================================================================


class TestTeamCrud:
    """Create, list, update and delete teams."""

    def test_create_team(self, client, owner_id):
        body = _create_team(client, owner_id, "Platform QA", "End-to-end suites")

        assert uuid.UUID(body["id"])
        assert body["name"] == "Platform QA"
        assert body["description"] == "End-to-end suites"
        assert body["isDefault"] is False
        assert body["createdBy"] == owner_id

    def test_duplicate_team_conflicts(self, client, owner_id):
        _create_team(client, owner_id, "Dup")
        response = client.post(
            "/api/admin/teams", json={"name": "dup"}, headers=auth_headers(owner_id)
        )
        assert response.status_code == 409

    @pytest.mark.parametrize("name", ["", "bad/name", "x" * 51, "   "])
    def test_invalid_team_name_rejected(self, client, owner_id, name):
        response = client.post("/api/admin/teams", json={"name": name}, headers=auth_headers(owner_id))
        assert response.status_code == 422

    def test_list_includes_member_counts_and_permissions(self, client, owner_id, db_team_provider):
        team = _create_team(client, owner_id, "Counted")
        client.post(
            "/api/admin/team-assignments",
            json={"userId": str(uuid.uuid4()), "teamId": team["id"]},
            headers=auth_headers(owner_id, "maintainer"),
        )

        response = client.get("/api/admin/teams", headers=auth_headers(owner_id, "maintainer"))
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["teams"][0]["memberCount"] == 1
        assert body["permissions"] == {
            "canCreateTeam": False,
            "canDeleteTeam": False,
            "canAssignUsers": True,
            "canViewAllTeams": True,
        }

    def test_update_team(self, client, owner_id):
        team = _create_team(client, owner_id, "Before")
        response = client.put(
            f"/api/admin/teams/{team['id']}",
            json={"name": "After"},
            headers=auth_headers(owner_id),
        )
        assert response.status_code == 200
        assert response.json()["name"] == "After"

    def test_update_unknown_team(self, client, owner_id):
        response = client.put(
            f"/api/admin/teams/{uuid.uuid4()}", json={"name": "X"}, headers=auth_headers(owner_id)
        )
        assert response.status_code == 404

    def test_update_invalid_id(self, client, owner_id):
        response = client.put("/api/admin/teams/not-a-uuid", json={"name": "X"}, headers=auth_headers(owner_id))
        assert response.status_code == 400

    def test_delete_team(self, client, owner_id):
        team = _create_team(client, owner_id, "Doomed")
        response = client.delete(f"/api/admin/teams/{team['id']}", headers=auth_headers(owner_id))
        assert response.status_code == 200

        listing = client.get("/api/admin/teams", headers=auth_headers(owner_id))
        assert listing.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_delete_default_team_rejected(self, client, owner_id, db_team_provider):
        default = await db_team_provider.ensure_default_team_exists()

        response = client.delete(f"/api/admin/teams/{default.id}", headers=auth_headers(owner_id))

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot delete the default team"


# ============================================================================
# Caller's teams
# ============================================================================


class TestUserTeams:
    """GET /api/user-teams."""

    def test_user_without_teams(self, client, owner_id):
        response = client.get("/api/user-teams", headers=auth_headers(owner_id, "readonly"))
        assert response.status_code == 200
        assert response.json() == {"userId": owner_id, "teams": []}

    def test_user_with_team(self, client, owner_id):
        member = str(uuid.uuid4())
        team = _create_team(client, owner_id, "Mine")
        client.post(
            "/api/admin/team-assignments",
            json={"userId": member, "teamId": team["id"]},
            headers=auth_headers(owner_id),
        )

        response = client.get("/api/user-teams", headers=auth_headers(member, "readonly"))
        assert [t["id"] for t in response.json()["teams"]] == [team["id"]]
