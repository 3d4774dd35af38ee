from __future__ import annotations

import pytest
from conftest import FakeIdentityProvider, FakeTransport, make_executor, reply

from mapch.auth import AuthService, user_message
from mapch.config import MapchConfig
from mapch.exceptions import IdentityCreationError, MapchIdentityError, MapchValidationError, RegistrationError
from mapch.identity.base import IdentityErrorCode
from mapch.provisioning import ProvisioningWorkflow
from mapch.session import SessionGuard


def _service(provider: FakeIdentityProvider, transport: FakeTransport, config: MapchConfig) -> tuple[AuthService, SessionGuard]:
    guard = SessionGuard(provider)
    workflow = ProvisioningWorkflow(provider, make_executor(transport), config)
    return AuthService(provider, workflow, guard), guard


@pytest.mark.asyncio
async def test_sign_up_marks_session_authenticated(provider: FakeIdentityProvider, config: MapchConfig) -> None:
    service, guard = _service(provider, FakeTransport([reply(201)]), config)

    attempt = await service.sign_up("new@example.com", "hunter22")

    assert attempt.succeeded
    assert guard.status.principal is not None
    assert guard.status.principal.id == "uid-1"


@pytest.mark.asyncio
async def test_sign_up_raises_when_registration_fails(provider: FakeIdentityProvider, config: MapchConfig) -> None:
    service, guard = _service(provider, FakeTransport([reply(500), reply(500)]), config)

    with pytest.raises(RegistrationError):
        await service.sign_up("new@example.com", "hunter22")

    assert not guard.is_authenticated
    assert provider.accounts == {}


@pytest.mark.asyncio
async def test_sign_up_reports_identity_errors(provider: FakeIdentityProvider, config: MapchConfig) -> None:
    provider.create_error = MapchIdentityError("WEAK_PASSWORD", code=IdentityErrorCode.WEAK_PASSWORD)
    service, _ = _service(provider, FakeTransport(), config)

    with pytest.raises(IdentityCreationError) as excinfo:
        await service.sign_up("new@example.com", "123")

    assert user_message(excinfo.value) == "The password must be at least 6 characters."


@pytest.mark.asyncio
async def test_sign_in_and_sign_out(provider: FakeIdentityProvider, config: MapchConfig) -> None:
    provider.add_account("uid-9", "a@example.com", current=False)
    service, guard = _service(provider, FakeTransport(), config)

    identity = await service.sign_in(" a@example.com ", "pw")
    assert identity.id == "uid-9"
    assert guard.is_authenticated

    await service.sign_out()
    assert not guard.is_authenticated
    assert provider.sign_out_calls == 1


@pytest.mark.asyncio
async def test_sign_in_failure_leaves_session_unauthenticated(provider: FakeIdentityProvider, config: MapchConfig) -> None:
    provider.sign_in_error = MapchIdentityError("INVALID_PASSWORD", code=IdentityErrorCode.WRONG_PASSWORD)
    service, guard = _service(provider, FakeTransport(), config)

    with pytest.raises(MapchIdentityError) as excinfo:
        await service.sign_in("a@example.com", "nope")

    assert user_message(excinfo.value) == "The password is incorrect."
    assert not guard.is_authenticated


@pytest.mark.asyncio
async def test_reset_password(provider: FakeIdentityProvider, config: MapchConfig) -> None:
    service, _ = _service(provider, FakeTransport(), config)

    await service.reset_password("a@example.com")
    assert provider.resets == ["a@example.com"]

    with pytest.raises(MapchValidationError):
        await service.reset_password(" ")


@pytest.mark.asyncio
@pytest.mark.parametrize(("email", "password"), [("", "pw"), ("a@example.com", "")])
async def test_empty_inputs_fail_before_any_call(
    provider: FakeIdentityProvider, config: MapchConfig, email: str, password: str
) -> None:
    transport = FakeTransport()
    service, _ = _service(provider, transport, config)

    with pytest.raises(MapchValidationError):
        await service.sign_in(email, password)
    with pytest.raises(MapchValidationError):
        await service.sign_up(email, password)

    assert provider.created == []
    assert transport.requests == []


def test_user_message_falls_back_to_error_text() -> None:
    assert user_message(MapchIdentityError("odd", code=IdentityErrorCode.UNKNOWN)) == "odd"
    assert user_message(ValueError("plain")) == "plain"
