"""Configuration for planforge: static defaults plus environment settings."""

from planforge.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
