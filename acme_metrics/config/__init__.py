"""
Configuration management for the ACME metrics service.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for all service configuration.
"""

from acme_metrics.config.settings import Settings, get_settings, reset_settings_cache  # noqa: F401

__all__ = ["Settings", "get_settings", "reset_settings_cache"]
