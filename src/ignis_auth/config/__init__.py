"""Configuration module for Ignis Patient Auth."""

from ignis_auth.config.base import Settings
from ignis_auth.config.loader import get_settings

__all__ = ["Settings", "get_settings"]
