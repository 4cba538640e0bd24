"""
Configuration management for Backend Aether.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for thresholds and service configuration.
"""

from backend_aether.config.settings import Settings, get_settings, load_settings  # noqa: F401

__all__ = ["Settings", "get_settings", "load_settings"]
