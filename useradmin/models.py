"""Domain models shared by the user creation form and its backend client."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Literal


NotificationVariant = Literal["success", "error"]


@dataclass(frozen=True)
class OptionRecord:
    """A profile or role exactly as returned by the backend."""

    id: str
    name: str


@dataclass(frozen=True)
class OptionPair:
    """Display-ready projection of an :class:`OptionRecord`."""

    label: str
    value: str

    @staticmethod
    def from_record(record: OptionRecord) -> "OptionPair":
        return OptionPair(label=record.name, value=record.id)

    def to_dict(self) -> Dict[str, str]:
        return {"label": self.label, "value": self.value}


@dataclass(frozen=True)
class CreationRequest:
    """Snapshot of the form values sent to the backend on submit."""

    first_name: str
    last_name: str
    alias: str
    username: str
    email: str
    role_id: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "alias": self.alias,
            "username": self.username,
            "email": self.email,
            "roleId": self.role_id,
        }


@dataclass(frozen=True)
class Notification:
    """Transient message surfaced to the operator."""

    title: str
    variant: NotificationVariant
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


__all__ = [
    "CreationRequest",
    "Notification",
    "NotificationVariant",
    "OptionPair",
    "OptionRecord",
]
