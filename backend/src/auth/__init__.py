"""
Authentication module for the ScaledTest backend.

Components:
- keycloak_admin: Keycloak Admin REST API client used by the group-based
  team provider
"""

from backend.src.auth.keycloak_admin import KeycloakAdminClient

__all__ = [
    "KeycloakAdminClient",
]
