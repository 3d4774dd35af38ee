from __future__ import annotations

import pytest
from conftest import FakeIdentityProvider

from mapch.exceptions import MapchIdentityError
from mapch.identity.base import IdentityErrorCode
from mapch.session import SessionGuard, SessionStatus
from mapch.state.bus import EventBus
from mapch.state.events import SessionChanged


async def _started_guard(provider: FakeIdentityProvider, bus: EventBus | None = None) -> SessionGuard:
    guard = SessionGuard(provider, bus=bus)
    guard.start()
    await guard.wait_pending()
    return guard


@pytest.mark.asyncio
async def test_start_restores_and_reconciles_current_identity(provider: FakeIdentityProvider) -> None:
    identity = provider.add_account()

    guard = await _started_guard(provider)

    assert guard.is_authenticated
    assert guard.status.principal == identity


@pytest.mark.asyncio
async def test_start_without_identity_is_unauthenticated(provider: FakeIdentityProvider) -> None:
    guard = await _started_guard(provider)

    assert not guard.is_authenticated


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code",
    [
        IdentityErrorCode.USER_DISABLED,
        IdentityErrorCode.USER_NOT_FOUND,
        IdentityErrorCode.INVALID_USER_TOKEN,
        IdentityErrorCode.USER_TOKEN_EXPIRED,
    ],
)
async def test_terminal_token_refresh_error_signs_out(provider: FakeIdentityProvider, code: IdentityErrorCode) -> None:
    identity = provider.add_account()
    guard = await _started_guard(provider)
    provider.token_error = MapchIdentityError("refresh rejected", code=code)

    provider.fire_token_changed(identity)
    await guard.wait_pending()

    assert not guard.is_authenticated
    assert guard.status.reason == str(code)
    assert provider.sign_out_calls == 1
    assert provider.token_calls == [True]


@pytest.mark.asyncio
async def test_account_disabled_while_unauthenticated_stays_unauthenticated(provider: FakeIdentityProvider) -> None:
    identity = provider.add_account(current=False)
    guard = await _started_guard(provider)
    provider.token_error = MapchIdentityError("disabled", code=IdentityErrorCode.USER_DISABLED)

    provider.fire_token_changed(identity)
    await guard.wait_pending()

    assert not guard.is_authenticated


@pytest.mark.asyncio
async def test_non_terminal_error_keeps_session(provider: FakeIdentityProvider) -> None:
    identity = provider.add_account()
    guard = await _started_guard(provider)
    provider.token_error = MapchIdentityError("offline", code=IdentityErrorCode.NETWORK_ERROR)

    provider.fire_token_changed(identity)
    await guard.wait_pending()

    assert guard.is_authenticated
    assert provider.sign_out_calls == 0


@pytest.mark.asyncio
async def test_failed_local_sign_out_still_marks_unauthenticated(provider: FakeIdentityProvider) -> None:
    identity = provider.add_account()
    guard = await _started_guard(provider)
    provider.token_error = MapchIdentityError("expired", code=IdentityErrorCode.USER_TOKEN_EXPIRED)
    provider.sign_out_error = MapchIdentityError("keychain", code=IdentityErrorCode.UNKNOWN)

    provider.fire_token_changed(identity)
    await guard.wait_pending()

    assert not guard.is_authenticated
    assert provider.sign_out_calls == 1


@pytest.mark.asyncio
async def test_foreground_reconcile_detects_deleted_account(provider: FakeIdentityProvider) -> None:
    provider.add_account()
    guard = await _started_guard(provider)
    provider.reload_error = MapchIdentityError("gone", code=IdentityErrorCode.USER_NOT_FOUND)

    guard.on_foreground()
    await guard.wait_pending()

    assert not guard.is_authenticated
    assert provider.sign_out_calls == 1


@pytest.mark.asyncio
async def test_foreground_reconcile_ignores_transient_errors(provider: FakeIdentityProvider) -> None:
    provider.add_account()
    guard = await _started_guard(provider)
    provider.reload_error = MapchIdentityError("offline", code=IdentityErrorCode.NETWORK_ERROR)

    guard.on_foreground()
    await guard.wait_pending()

    assert guard.is_authenticated


@pytest.mark.asyncio
async def test_own_token_refresh_does_not_loop(provider: FakeIdentityProvider) -> None:
    identity = provider.add_account()
    guard = await _started_guard(provider)
    provider.announce_refreshed_token = True

    provider.fire_token_changed(identity)
    await guard.wait_pending()

    assert provider.token_calls == [True]
    assert guard.is_authenticated


@pytest.mark.asyncio
async def test_session_changes_are_published(provider: FakeIdentityProvider) -> None:
    bus = EventBus()
    events: list[SessionChanged] = []
    bus.subscribe(SessionChanged, events.append)
    identity = provider.add_account()
    guard = await _started_guard(provider, bus)

    await guard.sign_out()

    assert [(e.authenticated, e.principal_id) for e in events] == [(True, identity.id), (False, None)]
    assert guard.status.reason == "sign_out"


@pytest.mark.asyncio
async def test_close_unsubscribes_from_provider(provider: FakeIdentityProvider) -> None:
    identity = provider.add_account()
    guard = await _started_guard(provider)
    await guard.close()
    provider.token_error = MapchIdentityError("disabled", code=IdentityErrorCode.USER_DISABLED)

    provider.fire_token_changed(identity)
    await guard.wait_pending()

    assert guard.is_authenticated
    assert provider.token_calls == []


def test_session_status_factories(provider: FakeIdentityProvider) -> None:
    identity = provider.add_account()

    assert SessionStatus.authenticated_as(identity).authenticated
    assert not SessionStatus.unauthenticated("x").authenticated
    assert SessionStatus.unauthenticated().age >= 0
