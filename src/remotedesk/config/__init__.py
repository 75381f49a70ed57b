"""Configuration management for remotedesk.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for deployment values like
the Redis connection URL.
"""

from remotedesk.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
