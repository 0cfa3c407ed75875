"""Configuration module for Simple Docker Manager."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
