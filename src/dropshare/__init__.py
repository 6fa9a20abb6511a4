"""Dropshare: ephemeral, optionally password-protected file sharing."""

from .main import AppDependencies, create_app
from .settings import ShareSettings

__version__ = "0.1.0"

__all__ = [
    "AppDependencies",
    "ShareSettings",
    "create_app",
]
