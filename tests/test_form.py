from __future__ import annotations

import asyncio
import logging

import pytest

from conftest import PROFILES, ROLES, FakeBackend
from useradmin.backend import BackendError
from useradmin.form import (
    ERROR_TITLE,
    GENERIC_ERROR_MESSAGE,
    SUCCESS_MESSAGE,
    SUCCESS_TITLE,
    UserCreationForm,
    extract_field_error_code,
)
from useradmin.models import Notification, OptionPair
from useradmin.notifications import NotificationLog


def _filled_form(backend: FakeBackend, log: NotificationLog) -> UserCreationForm:
    form = UserCreationForm(backend, log)
    form.set_field("firstName", "A")
    form.set_field("lastName", "B")
    form.set_field("alias", "ab")
    form.set_field("username", "ab1")
    form.set_field("email", "a@b.com")
    form.set_role("r1")
    form.set_profile("p1")
    return form


def _notifications(log: NotificationLog) -> list[Notification]:
    return [entry.notification for entry in log.consume()]


def test_profile_options_map_name_to_label_and_id_to_value(backend: FakeBackend) -> None:
    form = UserCreationForm(backend, NotificationLog())

    asyncio.run(form.load_options())

    assert form.profile_options == [
        OptionPair(label="Standard User", value="00e000000000001"),
        OptionPair(label="System Administrator", value="00e000000000002"),
    ]


def test_role_options_preserve_backend_order(backend: FakeBackend) -> None:
    form = UserCreationForm(backend, NotificationLog())

    asyncio.run(form.load_options())

    assert form.role_options is not None
    assert len(form.role_options) == len(ROLES)
    assert [option.label for option in form.role_options] == [role.name for role in ROLES]
    assert [option.value for option in form.role_options] == [role.id for role in ROLES]


def test_option_reload_replaces_previous_list(backend: FakeBackend) -> None:
    form = UserCreationForm(backend, NotificationLog())
    asyncio.run(form.load_options())

    backend.roles = [ROLES[2]]
    asyncio.run(form.load_options())

    assert form.role_options == [OptionPair(label="Support Agent", value="00E000000000003")]


def test_fetch_failure_is_logged_without_notification(caplog: pytest.LogCaptureFixture) -> None:
    backend = FakeBackend(
        profiles=list(PROFILES),
        role_error=BackendError("Backend role options request failed with status 500", status_code=500),
    )
    log = NotificationLog()
    form = UserCreationForm(backend, log)

    with caplog.at_level(logging.WARNING, logger="useradmin.form"):
        asyncio.run(form.load_options())

    assert form.role_options is None
    assert form.profile_options is not None
    assert log.consume() == []
    assert "Failed to load role options" in caplog.text


def test_fetch_failure_keeps_previous_list(backend: FakeBackend) -> None:
    form = UserCreationForm(backend, NotificationLog())
    asyncio.run(form.load_options())

    backend.profile_error = BackendError("unreachable")
    asyncio.run(form.load_options())

    assert form.profile_options is not None
    assert len(form.profile_options) == len(PROFILES)


def test_set_field_updates_only_the_named_field(backend: FakeBackend) -> None:
    form = _filled_form(backend, NotificationLog())
    before = form.state.to_dict()

    form.set_field("email", "new@example.com")

    after = form.state.to_dict()
    assert after["email"] == "new@example.com"
    for name in before:
        if name != "email":
            assert after[name] == before[name]


def test_set_field_accepts_attribute_names(backend: FakeBackend) -> None:
    form = UserCreationForm(backend, NotificationLog())

    form.set_field("first_name", "Ada")

    assert form.state.first_name == "Ada"


def test_set_field_ignores_unknown_names(backend: FakeBackend) -> None:
    form = _filled_form(backend, NotificationLog())
    before = form.state.to_dict()

    form.set_field("nickname", "x")
    form.set_field("roleId", "r2")

    assert form.state.to_dict() == before


def test_submit_request_omits_profile(backend: FakeBackend) -> None:
    form = _filled_form(backend, NotificationLog())

    async def scenario() -> None:
        await form.submit()

    asyncio.run(scenario())

    assert len(backend.created) == 1
    payload = backend.created[0].to_payload()
    assert payload == {
        "firstName": "A",
        "lastName": "B",
        "alias": "ab",
        "username": "ab1",
        "email": "a@b.com",
        "roleId": "r1",
    }
    assert "profileId" not in payload


def test_submit_clears_fields_before_request_completes(backend: FakeBackend) -> None:
    form = _filled_form(backend, NotificationLog())
    observed = {}

    async def scenario() -> None:
        task = form.submit()
        observed["done"] = task.done()
        observed["values"] = form.state.to_dict()
        observed["sent"] = len(backend.created)
        await task

    asyncio.run(scenario())

    assert observed["done"] is False
    assert observed["sent"] == 0
    assert observed["values"] == {
        "firstName": "",
        "lastName": "",
        "alias": "",
        "username": "",
        "email": "",
        "profileId": "p1",
        "roleId": "",
    }


def test_submit_clears_fields_when_backend_fails() -> None:
    backend = FakeBackend(create_error=BackendError("rejected", status_code=400, payload={}))
    form = _filled_form(backend, NotificationLog())

    async def scenario() -> None:
        await form.submit()

    asyncio.run(scenario())

    assert form.state.username == ""
    assert form.state.role_id == ""
    assert form.state.profile_id == "p1"


def test_duplicate_username_status_code_becomes_message() -> None:
    payload = {"fieldErrors": {"Username": [{"statusCode": "DUPLICATE_USERNAME", "message": "Duplicate"}]}}
    backend = FakeBackend(create_error=BackendError("rejected", status_code=400, payload=payload))
    log = NotificationLog()
    form = _filled_form(backend, log)

    async def scenario() -> object:
        return await form.submit()

    result = asyncio.run(scenario())

    assert result is None
    assert _notifications(log) == [
        Notification(title=ERROR_TITLE, variant="error", message="DUPLICATE_USERNAME"),
    ]


def test_missing_field_errors_fall_back_to_generic_message() -> None:
    backend = FakeBackend(
        create_error=BackendError("rejected", status_code=400, payload={"fieldErrors": {"Email": []}}),
    )
    log = NotificationLog()
    form = _filled_form(backend, log)

    async def scenario() -> None:
        await form.submit()

    asyncio.run(scenario())

    assert _notifications(log) == [
        Notification(title=ERROR_TITLE, variant="error", message=GENERIC_ERROR_MESSAGE),
    ]


def test_transport_failure_without_payload_is_reported() -> None:
    backend = FakeBackend(create_error=BackendError("Failed to contact backend for user creation"))
    log = NotificationLog()
    form = _filled_form(backend, log)

    async def scenario() -> None:
        await form.submit()

    asyncio.run(scenario())

    notifications = _notifications(log)
    assert len(notifications) == 1
    assert notifications[0].variant == "error"
    assert notifications[0].message == GENERIC_ERROR_MESSAGE


def test_top_level_backend_message_is_not_shown_to_operator(caplog: pytest.LogCaptureFixture) -> None:
    backend = FakeBackend(
        create_error=BackendError(
            "Insufficient access",
            status_code=403,
            payload={"message": "Insufficient access rights on cross-reference id"},
        ),
    )
    log = NotificationLog()
    form = _filled_form(backend, log)

    async def scenario() -> None:
        await form.submit()

    with caplog.at_level(logging.WARNING, logger="useradmin.form"):
        asyncio.run(scenario())

    assert _notifications(log) == [
        Notification(title=ERROR_TITLE, variant="error", message=GENERIC_ERROR_MESSAGE),
    ]
    assert "Insufficient access rights on cross-reference id" in caplog.text


def test_success_emits_single_success_notification(
    backend: FakeBackend, caplog: pytest.LogCaptureFixture
) -> None:
    log = NotificationLog()
    form = _filled_form(backend, log)

    async def scenario() -> object:
        return await form.submit()

    with caplog.at_level(logging.INFO, logger="useradmin.form"):
        result = asyncio.run(scenario())

    assert result == {"id": "005000000000001"}
    assert _notifications(log) == [
        Notification(title=SUCCESS_TITLE, variant="success", message=SUCCESS_MESSAGE),
    ]
    assert "User created" in caplog.text


def test_resubmission_is_not_blocked_while_in_flight(backend: FakeBackend) -> None:
    log = NotificationLog()
    form = _filled_form(backend, log)

    async def scenario() -> int:
        form.submit()
        form.set_field("username", "second")
        form.submit()
        pending = form.pending
        await form.wait_pending()
        return pending

    pending = asyncio.run(scenario())

    assert pending == 2
    assert form.pending == 0
    assert [request.username for request in backend.created] == ["ab1", "second"]
    assert [item.variant for item in _notifications(log)] == ["success", "success"]


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "Internal Server Error",
        [],
        {},
        {"fieldErrors": None},
        {"fieldErrors": {}},
        {"fieldErrors": {"Username": []}},
        {"fieldErrors": {"Username": "DUPLICATE_USERNAME"}},
        {"fieldErrors": {"Username": [None]}},
        {"fieldErrors": {"Username": [{"message": "no code"}]}},
        {"fieldErrors": {"Username": [{"statusCode": ""}]}},
    ],
)
def test_extract_field_error_code_is_total(payload: object) -> None:
    assert extract_field_error_code(payload) is None


def test_extract_field_error_code_reads_first_entry() -> None:
    payload = {
        "fieldErrors": {
            "Username": [
                {"statusCode": "DUPLICATE_USERNAME"},
                {"statusCode": "INVALID_FIELD"},
            ]
        }
    }

    assert extract_field_error_code(payload) == "DUPLICATE_USERNAME"
    assert extract_field_error_code(payload, field="Email") is None


class _BrokenBackend(FakeBackend):
    async def create_user(self, request):
        raise KeyError("roleId")


def test_unexpected_submission_failure_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    log = NotificationLog()
    form = _filled_form(_BrokenBackend(), log)

    async def scenario() -> None:
        task = form.submit()
        await asyncio.wait([task])
        await asyncio.sleep(0)

    with caplog.at_level(logging.ERROR, logger="useradmin.form"):
        asyncio.run(scenario())

    records = [record for record in caplog.records if record.name == "useradmin.form"]
    assert [record.getMessage() for record in records] == ["User creation task failed unexpectedly"]
    assert records[0].exc_info is not None
    assert isinstance(records[0].exc_info[1], KeyError)
    assert log.consume() == []
    assert form.pending == 0
