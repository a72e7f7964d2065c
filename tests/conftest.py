from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from useradmin.backend import BackendError  # noqa: E402
from useradmin.models import CreationRequest, OptionRecord  # noqa: E402


class FakeBackend:
    """Stand-in for the remote service used by form, web and CLI tests."""

    def __init__(
        self,
        *,
        profiles: Optional[List[OptionRecord]] = None,
        roles: Optional[List[OptionRecord]] = None,
        profile_error: Optional[BackendError] = None,
        role_error: Optional[BackendError] = None,
        create_result: Any = None,
        create_error: Optional[BackendError] = None,
    ) -> None:
        self.profiles = profiles if profiles is not None else []
        self.roles = roles if roles is not None else []
        self.profile_error = profile_error
        self.role_error = role_error
        self.create_result = create_result if create_result is not None else {"id": "005000000000001"}
        self.create_error = create_error
        self.created: List[CreationRequest] = []
        self.profile_calls = 0
        self.role_calls = 0

    async def fetch_profile_options(self) -> List[OptionRecord]:
        self.profile_calls += 1
        if self.profile_error is not None:
            raise self.profile_error
        return list(self.profiles)

    async def fetch_role_options(self) -> List[OptionRecord]:
        self.role_calls += 1
        if self.role_error is not None:
            raise self.role_error
        return list(self.roles)

    async def create_user(self, request: CreationRequest) -> Any:
        self.created.append(request)
        if self.create_error is not None:
            raise self.create_error
        return self.create_result


PROFILES = [
    OptionRecord(id="00e000000000001", name="Standard User"),
    OptionRecord(id="00e000000000002", name="System Administrator"),
]

ROLES = [
    OptionRecord(id="00E000000000001", name="CEO"),
    OptionRecord(id="00E000000000002", name="Sales Manager"),
    OptionRecord(id="00E000000000003", name="Support Agent"),
]


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend(profiles=list(PROFILES), roles=list(ROLES))
