"""
==============================================================================
Configuration Package
==============================================================================

Service settings (database, seed data, camera source, CORS) loaded with
pydantic-settings from the environment and an optional .env file.

Usage:
------
    from app.config import get_settings
    
    settings = get_settings()
    if settings.camera_source == "local":
        ...

Scan timings are not configurable; see app.scanner.constants.

==============================================================================
"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
