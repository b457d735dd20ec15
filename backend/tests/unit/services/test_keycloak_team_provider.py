"""
Unit tests for KeycloakTeamProvider and KeycloakAdminClient.

Keycloak is simulated with httpx.MockTransport backed by a small
in-memory realm (groups, members, admin token endpoint).
"""

import json
import uuid
from typing import Dict, List, Set
from unittest.mock import patch

import httpx
import pytest

from backend.src.auth.keycloak_admin import KeycloakAdminClient
from backend.src.schemas.team import CreateTeamRequest, UpdateTeamRequest
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    ProtectedResourceError,
    UpstreamError,
    ValidationError,
)
from backend.src.services.keycloak_team_provider import KeycloakTeamProvider


REALM = "scaledtest"
ADMIN_PREFIX = f"/admin/realms/{REALM}"
TOKEN_PATH = "/realms/master/protocol/openid-connect/token"


class FakeKeycloak:
    """In-memory Keycloak realm answering Admin REST API calls."""

    def __init__(self):
        self.groups: Dict[str, dict] = {}
        self.members: Dict[str, Set[str]] = {}
        self.users: Set[str] = set()
        self.requests: List[httpx.Request] = []
        self.token_requests = 0
        self.fail_with: int = 0
        self.raise_transport_error = False
        self.malformed_body = False

    def add_user(self) -> str:
        user_id = str(uuid.uuid4())
        self.users.add(user_id)
        return user_id

    def add_group(self, name: str, attributes: dict = None) -> str:
        group_id = str(uuid.uuid4())
        self.groups[group_id] = {
            "id": group_id,
            "name": name,
            "path": f"/{name}",
            "attributes": attributes or {},
            "subGroups": [],
        }
        self.members[group_id] = set()
        return group_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        method = request.method

        if path == TOKEN_PATH:
            self.token_requests += 1
            form = dict(pair.split("=", 1) for pair in request.content.decode().split("&"))
            if form.get("password") != "secret":
                return httpx.Response(401, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": f"tok-{self.token_requests}", "expires_in": 300})

        if self.raise_transport_error:
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": "boom"})
        if self.malformed_body:
            return httpx.Response(200, text="<html>gateway page</html>")

        assert request.headers["Authorization"].startswith("Bearer tok-")
        assert path.startswith(ADMIN_PREFIX)
        parts = path[len(ADMIN_PREFIX):].strip("/").split("/")

        if parts == ["groups"] and method == "GET":
            search = request.url.params.get("search", "")
            return httpx.Response(200, json=[g for g in self.groups.values() if search in g["name"]])

        if parts == ["groups"] and method == "POST":
            body = json.loads(request.content)
            if any(g["name"] == body["name"] for g in self.groups.values()):
                return httpx.Response(409, json={"errorMessage": "Top level group named already exists."})
            group_id = self.add_group(body["name"], body.get("attributes"))
            return httpx.Response(
                201, headers={"Location": f"http://keycloak.test{ADMIN_PREFIX}/groups/{group_id}"}
            )

        if len(parts) == 2 and parts[0] == "groups":
            group = self.groups.get(parts[1])
            if group is None:
                return httpx.Response(404, json={"error": "Could not find group by id"})
            if method == "GET":
                return httpx.Response(200, json=group)
            if method == "PUT":
                body = json.loads(request.content)
                group.update({"name": body["name"], "attributes": body.get("attributes", {})})
                return httpx.Response(204)
            if method == "DELETE":
                del self.groups[parts[1]]
                self.members.pop(parts[1], None)
                return httpx.Response(204)

        if len(parts) == 3 and parts[0] == "groups" and parts[2] == "members":
            if parts[1] not in self.groups:
                return httpx.Response(404)
            first = int(request.url.params.get("first", 0))
            max_ = int(request.url.params.get("max", 100))
            members = sorted(self.members[parts[1]])[first:first + max_]
            return httpx.Response(200, json=[{"id": m} for m in members])

        if len(parts) == 3 and parts[0] == "users" and parts[2] == "groups" and method == "GET":
            if parts[1] not in self.users:
                return httpx.Response(404, json={"error": "User not found"})
            groups = [g for gid, g in self.groups.items() if parts[1] in self.members[gid]]
            return httpx.Response(200, json=groups)

        if len(parts) == 4 and parts[0] == "users" and parts[2] == "groups":
            user_id, group_id = parts[1], parts[3]
            if user_id not in self.users or group_id not in self.groups:
                return httpx.Response(404)
            if method == "PUT":
                self.members[group_id].add(user_id)
            elif method == "DELETE":
                self.members[group_id].discard(user_id)
            return httpx.Response(204)

        return httpx.Response(404)

    def mutating_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method in ("POST", "PUT", "DELETE") and r.url.path != TOKEN_PATH]


@pytest.fixture
def fake_keycloak():
    return FakeKeycloak()


@pytest.fixture
def admin_client(fake_keycloak):
    return KeycloakAdminClient(
        base_url="http://keycloak.test",
        realm=REALM,
        admin_username="admin",
        admin_password="secret",
        transport=httpx.MockTransport(fake_keycloak.handler),
    )


@pytest.fixture
def provider(admin_client):
    return KeycloakTeamProvider(admin_client)


def _create_request(name, description=None):
    return CreateTeamRequest(name=name, description=description)


# ============================================================================
# Admin client
# ============================================================================


class TestKeycloakAdminClient:
    """Tests for token handling and error mapping."""

    @pytest.mark.asyncio
    async def test_token_is_cached(self, admin_client, fake_keycloak):
        await admin_client.get_json("/groups")
        await admin_client.get_json("/groups")
        assert fake_keycloak.token_requests == 1

    @pytest.mark.asyncio
    async def test_token_refreshed_after_invalidation(self, admin_client, fake_keycloak):
        await admin_client.get_json("/groups")
        admin_client.invalidate_token()
        await admin_client.get_json("/groups")
        assert fake_keycloak.token_requests == 2

    @pytest.mark.asyncio
    async def test_bad_credentials_raise_upstream_error(self, fake_keycloak):
        client = KeycloakAdminClient(
            "http://keycloak.test", REALM, "admin", "wrong",
            transport=httpx.MockTransport(fake_keycloak.handler),
        )
        with pytest.raises(UpstreamError) as exc_info:
            await client.get_json("/groups")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_error_mapping(self, admin_client, fake_keycloak):
        with pytest.raises(NotFoundError):
            await admin_client.get_json(f"/groups/{uuid.uuid4()}", resource="Team")

        fake_keycloak.fail_with = 409
        with pytest.raises(ConflictError):
            await admin_client.request("POST", "/groups", json={"name": "x"})

        fake_keycloak.fail_with = 500
        with pytest.raises(UpstreamError) as exc_info:
            await admin_client.get_json("/groups")
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_error_raises_upstream_error(self, admin_client, fake_keycloak):
        await admin_client.get_json("/groups")
        fake_keycloak.raise_transport_error = True
        with pytest.raises(UpstreamError):
            await admin_client.get_json("/groups")

    @pytest.mark.asyncio
    async def test_non_json_body_raises_upstream_error(self, admin_client, fake_keycloak):
        fake_keycloak.malformed_body = True
        with pytest.raises(UpstreamError):
            await admin_client.get_json("/groups")


# ============================================================================
# Provider reads
# ============================================================================


class TestReads:
    """Tests for get_user_teams and get_all_teams."""

    @pytest.mark.asyncio
    async def test_user_teams_only_include_prefixed_groups(self, provider, fake_keycloak):
        user = fake_keycloak.add_user()
        team_group = fake_keycloak.add_group("team-Backend", {"description": ["API"], "isDefault": ["false"]})
        other_group = fake_keycloak.add_group("admins")
        fake_keycloak.members[team_group].add(user)
        fake_keycloak.members[other_group].add(user)

        teams = await provider.get_user_teams(user)

        assert len(teams) == 1
        assert teams[0].id == team_group
        assert teams[0].name == "Backend"
        assert teams[0].description == "API"
        assert teams[0].is_default is False

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_teams(self, provider):
        assert await provider.get_user_teams(str(uuid.uuid4())) == []

    @pytest.mark.asyncio
    async def test_invalid_user_id_degrades_without_request(self, provider, fake_keycloak):
        with patch("backend.src.services.team_provider.logger") as mock_logger:
            assert await provider.get_user_teams("../../users") == []
        assert fake_keycloak.requests == []
        assert mock_logger.warning.call_args.kwargs["extra"]["event"] == "teams.lookup.degraded"

    @pytest.mark.asyncio
    async def test_upstream_failure_degrades_with_warning(self, provider, fake_keycloak):
        user = fake_keycloak.add_user()
        fake_keycloak.fail_with = 503

        with patch("backend.src.services.team_provider.logger") as mock_logger:
            assert await provider.get_user_teams(user) == []
            assert await provider.get_all_teams() == []

        assert mock_logger.warning.call_count == 2
        extra = mock_logger.warning.call_args.kwargs["extra"]
        assert extra["event"] == "teams.lookup.degraded"
        assert extra["backend"] == "keycloak"

    @pytest.mark.asyncio
    async def test_non_json_body_degrades_with_warning(self, provider, fake_keycloak):
        user = fake_keycloak.add_user()
        fake_keycloak.malformed_body = True

        with patch("backend.src.services.team_provider.logger") as mock_logger:
            assert await provider.get_user_teams(user) == []
            assert await provider.get_all_teams() == []

        assert mock_logger.warning.call_count == 2
        assert mock_logger.warning.call_args.kwargs["extra"]["event"] == "teams.lookup.degraded"

    @pytest.mark.asyncio
    async def test_all_teams_with_member_count(self, provider, fake_keycloak):
        a = fake_keycloak.add_group("team-A")
        fake_keycloak.add_group("team-B")
        fake_keycloak.add_group("unrelated")
        for _ in range(3):
            fake_keycloak.members[a].add(fake_keycloak.add_user())

        counts = {e.team.name: e.member_count for e in await provider.get_all_teams_with_member_count()}
        assert counts == {"A": 3, "B": 0}


# ============================================================================
# Provider mutations
# ============================================================================


class TestMutations:
    """Tests for team lifecycle and membership changes."""

    @pytest.mark.asyncio
    async def test_create_team(self, provider, fake_keycloak):
        team = await provider.create_team(_create_request("QA", "Testers"), "creator-id")

        group = fake_keycloak.groups[team.id]
        assert group["name"] == "team-QA"
        assert group["attributes"]["description"] == ["Testers"]
        assert group["attributes"]["isDefault"] == ["false"]
        assert group["attributes"]["createdBy"] == ["creator-id"]
        assert team.name == "QA"
        assert team.created_at is not None

    @pytest.mark.asyncio
    async def test_create_duplicate_conflicts(self, provider, fake_keycloak):
        fake_keycloak.add_group("team-QA")
        with pytest.raises(ConflictError):
            await provider.create_team(_create_request("qa"), "creator-id")

    @pytest.mark.asyncio
    async def test_update_team(self, provider, fake_keycloak):
        group_id = fake_keycloak.add_group("team-Old", {"description": ["x"], "isDefault": ["false"]})
        team = await provider.update_team(group_id, UpdateTeamRequest(name="New", description="y"), "u")

        assert team.name == "New"
        assert fake_keycloak.groups[group_id]["name"] == "team-New"
        assert fake_keycloak.groups[group_id]["attributes"]["description"] == ["y"]

    @pytest.mark.asyncio
    async def test_update_non_team_group_not_found(self, provider, fake_keycloak):
        group_id = fake_keycloak.add_group("admins")
        with pytest.raises(NotFoundError):
            await provider.update_team(group_id, UpdateTeamRequest(name="X"), "u")

    @pytest.mark.asyncio
    async def test_mutations_validate_ids_before_requests(self, provider, fake_keycloak):
        with pytest.raises(ValidationError):
            await provider.delete_team("not-a-uuid", "u")
        with pytest.raises(ValidationError):
            await provider.assign_user_to_team("bad", str(uuid.uuid4()), "u")
        with pytest.raises(ValidationError):
            await provider.remove_user_from_team(str(uuid.uuid4()), "../x", "u")
        assert fake_keycloak.requests == []

    @pytest.mark.asyncio
    async def test_assign_and_remove(self, provider, fake_keycloak):
        user = fake_keycloak.add_user()
        group_id = fake_keycloak.add_group("team-Dev")

        await provider.assign_user_to_team(user, group_id, "admin")
        await provider.assign_user_to_team(user, group_id, "admin")
        assert fake_keycloak.members[group_id] == {user}

        await provider.remove_user_from_team(user, group_id, "admin")
        assert fake_keycloak.members[group_id] == set()

    @pytest.mark.asyncio
    async def test_assign_unknown_team(self, provider, fake_keycloak):
        user = fake_keycloak.add_user()
        with pytest.raises(NotFoundError):
            await provider.assign_user_to_team(user, str(uuid.uuid4()), "admin")

    @pytest.mark.asyncio
    async def test_default_team_cannot_be_deleted(self, provider, fake_keycloak):
        default = await provider.ensure_default_team_exists()
        before = len(fake_keycloak.mutating_requests())

        with pytest.raises(ProtectedResourceError):
            await provider.delete_team(default.id, "admin")

        assert len(fake_keycloak.mutating_requests()) == before
        assert default.id in fake_keycloak.groups

    @pytest.mark.asyncio
    async def test_cannot_remove_from_default_team(self, provider, fake_keycloak):
        user = fake_keycloak.add_user()
        await provider.assign_user_to_default_team(user)
        default = await provider.ensure_default_team_exists()
        before = len(fake_keycloak.mutating_requests())

        with pytest.raises(ProtectedResourceError):
            await provider.remove_user_from_team(user, default.id, "admin")

        assert len(fake_keycloak.mutating_requests()) == before
        assert user in fake_keycloak.members[default.id]

    @pytest.mark.asyncio
    async def test_ensure_default_team_is_idempotent(self, provider, fake_keycloak):
        first = await provider.ensure_default_team_exists()
        second = await provider.ensure_default_team_exists()

        assert first.id == second.id
        assert first.is_default is True
        assert first.name == "Default Team"
        assert first.created_by == "system"
        assert len([g for g in fake_keycloak.groups.values() if g["name"] == "team-Default Team"]) == 1

    @pytest.mark.asyncio
    async def test_custom_prefix(self, admin_client, fake_keycloak):
        provider = KeycloakTeamProvider(admin_client, group_prefix="grp_")
        fake_keycloak.add_group("grp_Mobile")
        fake_keycloak.add_group("team-Web")

        assert [t.name for t in await provider.get_all_teams()] == ["Mobile"]

    @pytest.mark.asyncio
    async def test_aclose(self, provider):
        await provider.aclose()
        assert provider.client._http.is_closed
