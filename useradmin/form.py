"""Form state and submission control for creating backend user accounts.

A :class:`UserCreationForm` owns three concerns:

* loading the profile and role option lists when the form is initialised,
* holding the values typed or selected by the operator,
* submitting a creation request and turning its outcome into a notification.

Submission is fire-and-forget: :meth:`UserCreationForm.submit` schedules the
backend call on the running event loop and clears the visible fields straight
away, before the request has completed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set

from .backend import BackendError
from .models import CreationRequest, Notification, OptionPair, OptionRecord
from .notifications import NotificationSink


logger = logging.getLogger("useradmin.form")

SUCCESS_TITLE = "User Created"
SUCCESS_MESSAGE = "User created successfully."
ERROR_TITLE = "Error Message"
GENERIC_ERROR_MESSAGE = "User creation failed."

USERNAME_FIELD = "Username"

# Input names as posted by the page, mapped to FormState attributes.
TEXT_FIELDS: Dict[str, str] = {
    "firstName": "first_name",
    "lastName": "last_name",
    "alias": "alias",
    "username": "username",
    "email": "email",
}


class UserBackend(Protocol):
    async def fetch_profile_options(self) -> List[OptionRecord]:
        ...

    async def fetch_role_options(self) -> List[OptionRecord]:
        ...

    async def create_user(self, request: CreationRequest) -> Any:
        ...


@dataclass
class FormState:
    """Current values of the user creation form."""

    first_name: str = ""
    last_name: str = ""
    alias: str = ""
    username: str = ""
    email: str = ""
    profile_id: str = ""
    role_id: str = ""

    def snapshot(self) -> CreationRequest:
        # profile_id is deliberately not part of the creation request.
        return CreationRequest(
            first_name=self.first_name,
            last_name=self.last_name,
            alias=self.alias,
            username=self.username,
            email=self.email,
            role_id=self.role_id,
        )

    def clear_submitted(self) -> None:
        """Blank the fields shown after a submit; the profile stays selected."""
        for attribute in TEXT_FIELDS.values():
            setattr(self, attribute, "")
        self.role_id = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "alias": self.alias,
            "username": self.username,
            "email": self.email,
            "profileId": self.profile_id,
            "roleId": self.role_id,
        }


def to_option_pairs(records: Iterable[OptionRecord]) -> List[OptionPair]:
    return [OptionPair.from_record(record) for record in records]


def extract_field_error_code(payload: object, field: str = USERNAME_FIELD) -> Optional[str]:
    """Return ``fieldErrors[field][0].statusCode`` from an error body.

    ``None`` is returned whenever any level of that structure is missing or
    has an unexpected type.
    """
    if not isinstance(payload, dict):
        return None
    field_errors = payload.get("fieldErrors")
    if not isinstance(field_errors, dict):
        return None
    entries = field_errors.get(field)
    if not isinstance(entries, (list, tuple)) or not entries:
        return None
    first = entries[0]
    if not isinstance(first, dict):
        return None
    code = first.get("statusCode")
    if isinstance(code, str) and code.strip():
        return code.strip()
    return None


class UserCreationForm:
    """Controller behind the single user registration form."""

    def __init__(self, backend: UserBackend, notifications: NotificationSink) -> None:
        self._backend = backend
        self._notifications = notifications
        self.state = FormState()
        self.profile_options: Optional[List[OptionPair]] = None
        self.role_options: Optional[List[OptionPair]] = None
        self._submissions: Set[asyncio.Task] = set()

    @property
    def notifications(self) -> NotificationSink:
        return self._notifications

    async def load_options(self) -> None:
        """Fetch both option lists concurrently; a failed list is left unset."""
        await asyncio.gather(self._load_profile_options(), self._load_role_options())

    async def _load_profile_options(self) -> None:
        try:
            records = await self._backend.fetch_profile_options()
        except BackendError as exc:
            logger.warning("Failed to load profile options: %s", exc)
            return
        self.profile_options = to_option_pairs(records)

    async def _load_role_options(self) -> None:
        try:
            records = await self._backend.fetch_role_options()
        except BackendError as exc:
            logger.warning("Failed to load role options: %s", exc)
            return
        self.role_options = to_option_pairs(records)

    def set_field(self, name: str, value: str) -> None:
        attribute = TEXT_FIELDS.get(name)
        if attribute is None and name in TEXT_FIELDS.values():
            attribute = name
        if attribute is None:
            logger.debug("Ignoring update for unknown form field %r", name)
            return
        setattr(self.state, attribute, value)

    def set_profile(self, value: str) -> None:
        self.state.profile_id = value

    def set_role(self, value: str) -> None:
        self.state.role_id = value

    @property
    def pending(self) -> int:
        return len(self._submissions)

    def submit(self) -> "asyncio.Task[Any]":
        """Send the current values to the backend and clear the form.

        The returned task resolves to the creation result, or ``None`` when the
        backend rejected the request. Backend failures are reported through the
        notification sink and never raised from the task.
        """
        request = self.state.snapshot()
        task = asyncio.get_running_loop().create_task(self._create_user(request))
        self._submissions.add(task)
        task.add_done_callback(self._submissions.discard)
        task.add_done_callback(_log_unexpected_failure)
        self.state.clear_submitted()
        return task

    async def wait_pending(self) -> None:
        if self._submissions:
            await asyncio.gather(*list(self._submissions))

    async def _create_user(self, request: CreationRequest) -> Any:
        try:
            result = await self._backend.create_user(request)
        except BackendError as exc:
            status_code = extract_field_error_code(exc.payload)
            self._notify("error", ERROR_TITLE, status_code or GENERIC_ERROR_MESSAGE)
            logger.warning(
                "User not created (status code %s): %s (payload: %r)",
                status_code,
                exc,
                exc.payload,
            )
            return None

        self._notify("success", SUCCESS_TITLE, SUCCESS_MESSAGE)
        logger.info("User created: %s", result)
        return result

    def _notify(self, variant: str, title: str, message: str) -> None:
        self._notifications.publish(Notification(title=title, variant=variant, message=message))

    def to_dict(self) -> Dict[str, object]:
        return {
            "values": self.state.to_dict(),
            "profileOptions": _options_to_list(self.profile_options),
            "roleOptions": _options_to_list(self.role_options),
            "pending": self.pending,
        }


def _log_unexpected_failure(task: "asyncio.Task[Any]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("User creation task failed unexpectedly", exc_info=exc)


def _options_to_list(options: Optional[List[OptionPair]]) -> Optional[List[Dict[str, str]]]:
    if options is None:
        return None
    return [option.to_dict() for option in options]


__all__ = [
    "ERROR_TITLE",
    "FormState",
    "GENERIC_ERROR_MESSAGE",
    "SUCCESS_MESSAGE",
    "SUCCESS_TITLE",
    "TEXT_FIELDS",
    "UserBackend",
    "UserCreationForm",
    "extract_field_error_code",
    "to_option_pairs",
]
