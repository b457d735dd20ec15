"""
Configuration module for ScaledTest backend.

Provides centralized configuration for:
- Team membership backend selection (Keycloak groups or relational tables)
- Keycloak admin API access
- OpenSearch document store
"""

from backend.src.config.settings import (
    AppSettings,
    get_settings,
    get_database_url,
    AUTH_PROVIDER_KEYCLOAK,
    AUTH_PROVIDER_DATABASE,
)

__all__ = [
    "AppSettings",
    "get_settings",
    "get_database_url",
    "AUTH_PROVIDER_KEYCLOAK",
    "AUTH_PROVIDER_DATABASE",
]
