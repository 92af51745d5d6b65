"""Configuration module for gwipt."""

from .settings import Settings, settings

__all__ = [
    "settings",
    "Settings",
]
