"""
promwarp configuration.

Pydantic-based settings loaded from environment variables (PROMWARP_ prefix)
and an optional .env file.
"""

from promwarp.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
