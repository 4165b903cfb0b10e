"""Configuration module."""

from clip_relay.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
