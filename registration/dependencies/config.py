"""
Settings dependencies for routes and the integration wiring.
"""

from functools import lru_cache

from fastapi import Depends

from registration.core.config import AppSettings, OAuthIntegrationSettings, get_settings


@lru_cache()
def _settings_singleton() -> AppSettings:
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def integration_settings(settings: AppSettings) -> dict[str, OAuthIntegrationSettings]:
    """OAuth app settings keyed by integration name."""
    return {"crm": settings.hubspot, "calendar": settings.microsoft}


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "integration_settings"]
