"""HTTP client for the backend that owns profiles, roles and user accounts."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Type

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import BackendConfig
from .models import CreationRequest, OptionRecord


logger = logging.getLogger("useradmin.backend")


class BackendError(RuntimeError):
    """Raised when the backend cannot be reached or rejects a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


def _identifier_to_str(value: object) -> object:
    # Identifiers may arrive as JSON numbers.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class ProfileOptionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profile_id: str = Field(..., alias="profileId", min_length=1)
    profile_name: str = Field(..., alias="profileName")

    @field_validator("profile_id", mode="before")
    @classmethod
    def _normalize_profile_id(cls, value: object) -> object:
        return _identifier_to_str(value)

    def to_record(self) -> OptionRecord:
        return OptionRecord(id=self.profile_id, name=self.profile_name)


class RoleOptionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role_id: str = Field(..., alias="roleId", min_length=1)
    role_name: str = Field(..., alias="roleName")

    @field_validator("role_id", mode="before")
    @classmethod
    def _normalize_role_id(cls, value: object) -> object:
        return _identifier_to_str(value)

    def to_record(self) -> OptionRecord:
        return OptionRecord(id=self.role_id, name=self.role_name)


def _build_endpoint(base_url: str, path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    return f"{base_url}{path}"


def extract_error_message(payload: object, default: str) -> str:
    """Return a human readable message from an error body, or ``default``."""
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


class UserBackendClient:
    """Execute the three remote operations used by the user creation form."""

    def __init__(
        self,
        config: BackendConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        headers = {"Accept": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"

        client_options: dict[str, Any] = {
            "headers": headers,
            "timeout": config.timeout,
        }
        if config.verify is not None:
            client_options["verify"] = config.verify
        if transport is not None:
            client_options["transport"] = transport
        self._client = httpx.AsyncClient(**client_options)

    async def __aenter__(self) -> "UserBackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_profile_options(self) -> List[OptionRecord]:
        data = await self._request("GET", self._config.profiles_path, operation="profile options")
        return self._parse_records(data, ProfileOptionPayload, "profile options")

    async def fetch_role_options(self) -> List[OptionRecord]:
        data = await self._request("GET", self._config.roles_path, operation="role options")
        return self._parse_records(data, RoleOptionPayload, "role options")

    async def create_user(self, request: CreationRequest) -> Any:
        return await self._request(
            "POST",
            self._config.users_path,
            operation="user creation",
            json=request.to_payload(),
        )

    async def _request(self, method: str, path: str, *, operation: str, **kwargs: Any) -> Any:
        url = _build_endpoint(self._config.base_url, path)

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise BackendError(f"Failed to contact backend for {operation}: {exc}") from exc

        try:
            parsed = response.json()
        except ValueError:
            parsed = None

        if response.status_code >= 400:
            message = f"Backend {operation} request failed with status {response.status_code}"
            payload = parsed if parsed is not None else response.text
            raise BackendError(
                extract_error_message(payload, message),
                status_code=response.status_code,
                payload=payload,
            )

        if parsed is None and response.content:
            raise BackendError(
                f"Backend returned an invalid response for {operation}",
                status_code=response.status_code,
                payload=response.text,
            )

        logger.debug("%s %s returned status %s", method, url, response.status_code)
        return parsed

    @staticmethod
    def _parse_records(
        data: object,
        model: Type[ProfileOptionPayload] | Type[RoleOptionPayload],
        operation: str,
    ) -> List[OptionRecord]:
        if not isinstance(data, (list, tuple)):
            raise BackendError(f"Backend returned an unexpected payload for {operation}", payload=data)

        items: Sequence[object] = data
        try:
            return [model.model_validate(item).to_record() for item in items]
        except ValidationError as exc:
            raise BackendError(
                f"Backend {operation} response was missing required fields",
                payload=data,
            ) from exc


__all__ = [
    "BackendError",
    "ProfileOptionPayload",
    "RoleOptionPayload",
    "UserBackendClient",
    "extract_error_message",
]
