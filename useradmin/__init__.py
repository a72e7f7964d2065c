"""User creation form backed by a remote user management service."""

from __future__ import annotations

from typing import Any

from .backend import BackendError, UserBackendClient
from .config import BackendConfig, load_config_from_env
from .form import UserCreationForm
from .notifications import NotificationLog


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the user creation web application."""

    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "BackendConfig",
    "BackendError",
    "NotificationLog",
    "UserBackendClient",
    "UserCreationForm",
    "create_app",
    "load_config_from_env",
]
