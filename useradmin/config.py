"""Configuration management for the user creation backend connection."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml


DEFAULT_TIMEOUT = 30.0


def _parse_timeout(value: object) -> float:
    if value is None:
        return DEFAULT_TIMEOUT
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid backend timeout value: {value!r}") from exc


def _parse_verify_setting(value: object, base_path: Path | None = None) -> Optional[str | bool]:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"", "default"}:
        return None
    if lowered in {"0", "false", "no", "off"}:
        return False
    if lowered in {"1", "true", "yes", "on"}:
        return True
    path = Path(str(value)).expanduser()
    if not path.is_absolute() and base_path is not None:
        path = base_path / path
    return str(path.resolve(strict=False))


def _normalize_path(value: object, default: str) -> str:
    cleaned = str(value).strip() if value is not None else ""
    if not cleaned:
        return default
    if not cleaned.startswith("/"):
        cleaned = "/" + cleaned
    return cleaned


@dataclass(frozen=True)
class BackendConfig:
    """Connection settings for the service that owns profiles, roles and users."""

    base_url: str
    api_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    verify: Optional[str | bool] = None
    profiles_path: str = "/profiles"
    roles_path: str = "/roles"
    users_path: str = "/users"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "BackendConfig":
        """Create a :class:`BackendConfig` from raw dictionary data."""
        base_url = str(data.get("base_url") or "").strip().rstrip("/")
        if not base_url:
            raise ValueError("Missing required backend configuration field: base_url")

        raw_api_key = data.get("api_key")
        api_key = str(raw_api_key).strip() if raw_api_key is not None else ""
        verify = data.get("verify")

        return BackendConfig(
            base_url=base_url,
            api_key=api_key or None,
            timeout=_parse_timeout(data.get("timeout")),
            verify=_parse_verify_setting(verify, base_path) if verify is not None else None,
            profiles_path=_normalize_path(data.get("profiles_path"), "/profiles"),
            roles_path=_normalize_path(data.get("roles_path"), "/roles"),
            users_path=_normalize_path(data.get("users_path"), "/users"),
        )

    def with_env_overrides(self, environ: Mapping[str, str]) -> "BackendConfig":
        """Return a copy with ``USERADMIN_*`` environment values applied."""
        changes: Dict[str, object] = {}

        base_url = (environ.get("USERADMIN_BACKEND_URL") or "").strip().rstrip("/")
        if base_url:
            changes["base_url"] = base_url

        api_key = (environ.get("USERADMIN_API_KEY") or "").strip()
        if api_key:
            changes["api_key"] = api_key

        verify = environ.get("USERADMIN_BACKEND_VERIFY")
        if verify is not None:
            changes["verify"] = _parse_verify_setting(verify)

        timeout = environ.get("USERADMIN_BACKEND_TIMEOUT")
        if timeout:
            try:
                changes["timeout"] = float(timeout)
            except ValueError as exc:
                raise ValueError(f"Invalid USERADMIN_BACKEND_TIMEOUT value: {timeout!r}") from exc

        return replace(self, **changes) if changes else self


def load_backend_config(config_path: Path) -> BackendConfig:
    """Load backend settings from the ``backend`` section of a YAML file."""
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    section = raw.get("backend") if isinstance(raw, dict) else None
    if not isinstance(section, dict):
        raise ValueError("Configuration file must define a 'backend' mapping")

    return BackendConfig.from_dict(section, base_path=config_path.parent)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "backend.yaml").resolve(strict=False)
    return candidate


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> BackendConfig:
    """Combine the YAML file (when present) with environment overrides."""
    env = os.environ if environ is None else environ
    config_path = resolve_config_path(env.get("USERADMIN_CONFIG"))

    if config_path.exists():
        return load_backend_config(config_path).with_env_overrides(env)

    base_url = (env.get("USERADMIN_BACKEND_URL") or "").strip()
    if not base_url:
        raise ValueError(
            f"Backend URL is not configured; set USERADMIN_BACKEND_URL or create {config_path}"
        )
    return BackendConfig(base_url=base_url.rstrip("/")).with_env_overrides(env)


__all__ = [
    "BackendConfig",
    "DEFAULT_TIMEOUT",
    "load_backend_config",
    "load_config_from_env",
    "resolve_config_path",
]
