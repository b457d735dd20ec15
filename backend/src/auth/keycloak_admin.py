"""
Keycloak Admin REST API client.

Thin async wrapper over httpx used by the group-based team provider.
Authenticates as a master-realm admin with the password grant and caches
the access token until shortly before it expires.

Error mapping:
- 404 -> NotFoundError
- 409 -> ConflictError
- any other >= 400 -> UpstreamError
- transport errors and timeouts -> UpstreamUnavailableError
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    UpstreamError,
    UpstreamUnavailableError,
)
from backend.src.utils.logging_config import get_logger


logger = get_logger("auth")

TOKEN_PATH = "/realms/master/protocol/openid-connect/token"
ADMIN_CLIENT_ID = "admin-cli"

# Refresh the admin token this many seconds before it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 30


class KeycloakAdminClient:
    """
    Async client for the Keycloak Admin REST API of a single realm.

    Usage:
        >>> client = KeycloakAdminClient("http://kc:8080", "scaledtest", "admin", "secret")
        >>> groups = await client.request("GET", "/groups", params={"search": "team-"})
        >>> await client.aclose()
    """

    def __init__(
        self,
        base_url: str,
        realm: str,
        admin_username: str,
        admin_password: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Keycloak base URL (e.g., http://localhost:8080)
            realm: Realm holding users and team groups
            admin_username: Master realm admin user
            admin_password: Master realm admin password
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.realm = realm
        self._admin_username = admin_username
        self._admin_password = admin_password
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def admin_base_path(self) -> str:
        """Admin API path prefix for the configured realm."""
        return f"/admin/realms/{self.realm}"

    async def _get_token(self) -> str:
        """Return a valid admin token, fetching a new one when needed."""
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            try:
                response = await self._http.post(
                    TOKEN_PATH,
                    data={
                        "grant_type": "password",
                        "client_id": ADMIN_CLIENT_ID,
                        "username": self._admin_username,
                        "password": self._admin_password,
                    },
                )
            except httpx.HTTPError as e:
                logger.error(f"Failed to reach Keycloak token endpoint: {e}")
                raise UpstreamUnavailableError(f"Keycloak token request failed: {e}") from e

            if response.status_code != 200:
                logger.error(
                    "Keycloak admin authentication failed",
                    extra={"event": "keycloak.token.failed", "status_code": response.status_code},
                )
                raise UpstreamError(
                    f"Failed to get Keycloak admin token: HTTP {response.status_code}",
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
                expires_in = int(payload.get("expires_in", 60))
                self._token = payload["access_token"]
            except (ValueError, KeyError, AttributeError) as e:
                raise UpstreamError(
                    "Keycloak token response was malformed",
                    status_code=response.status_code,
                ) from e
            self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
            logger.debug("Obtained Keycloak admin token")
            return self._token

    def invalidate_token(self) -> None:
        """Forget the cached token so the next call re-authenticates."""
        self._token = None
        self._token_expires_at = 0.0

    async def request(
        self,
        method: str,
        path: str,
        *,
        resource: str = "Resource",
        identifier: Any = None,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """
        Send an authenticated request to the realm admin API.

        Args:
            method: HTTP method
            path: Path relative to /admin/realms/{realm}
            resource: Resource name used in NotFoundError messages
            identifier: Identifier used in NotFoundError messages
            params: Query parameters
            json: JSON body

        Returns:
            The successful httpx.Response

        Raises:
            NotFoundError: On 404
            ConflictError: On 409
            UpstreamError: On any other failure
        """
        token = await self._get_token()
        url = f"{self.admin_base_path}{path}"

        try:
            response = await self._http.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Keycloak request failed: {method} {url}: {e}")
            raise UpstreamUnavailableError(f"Keycloak request failed: {e}") from e

        if response.status_code == 401:
            self.invalidate_token()
        if response.status_code == 404:
            raise NotFoundError(resource, identifier if identifier is not None else path)
        if response.status_code == 409:
            raise ConflictError(f"{resource} already exists")
        if response.status_code >= 400:
            logger.error(
                f"Keycloak returned HTTP {response.status_code}: {method} {url}",
                extra={"event": "keycloak.request.failed", "status_code": response.status_code},
            )
            raise UpstreamError(
                f"Keycloak request failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def get_json(self, path: str, **kwargs) -> Any:
        """
        GET a path and decode the JSON body.

        Raises:
            UpstreamError: If the body is not valid JSON
        """
        response = await self.request("GET", path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                f"Keycloak returned a non-JSON body: GET {path}",
                extra={"event": "keycloak.response.invalid", "status_code": response.status_code},
            )
            raise UpstreamError(
                "Keycloak returned an invalid JSON response",
                status_code=response.status_code,
            ) from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
