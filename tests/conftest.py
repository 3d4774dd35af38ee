from __future__ import annotations

import json
from collections import deque
from collections.abc import Callable
from typing import Any

import pytest

from mapch._transport import RequestDescriptor, Response
from mapch.config import MapchConfig
from mapch.exceptions import MapchIdentityError
from mapch.executor import RequestExecutor
from mapch.identity.base import Credential, Identity, IdentityErrorCode, IdentityListener, Unsubscribe

TEST_BASE_URL = "https://api.test"

Reply = Response | BaseException


def reply(status: int = 200, body: Any = None, *, text: str | None = None) -> Response:
    if text is None:
        text = json.dumps(body) if body is not None else ""
    return Response(status=status, text=text, url=TEST_BASE_URL)


class FakeTransport:
    """Records requests and answers from a queue or a routing callable."""

    def __init__(
        self,
        replies: list[Reply] | None = None,
        *,
        handler: Callable[[RequestDescriptor], Reply] | None = None,
    ) -> None:
        self.requests: list[RequestDescriptor] = []
        self._replies: deque[Reply] = deque(replies or [])
        self._handler = handler

    async def send(self, request: RequestDescriptor) -> Response:
        self.requests.append(request)
        result = self._handler(request) if self._handler is not None else self._replies.popleft()
        if isinstance(result, BaseException):
            raise result
        return result

    @property
    def paths(self) -> list[str]:
        return [request.url.removeprefix(TEST_BASE_URL) for request in self.requests]


class FakeIdentityProvider:
    """In-memory identity provider with injectable failures."""

    def __init__(self) -> None:
        self.accounts: dict[str, Identity] = {}
        self.current: Identity | None = None
        self.created: list[str] = []
        self.delete_calls = 0
        self.reauthenticated: list[str] = []
        self.resets: list[str] = []
        self.token_calls: list[bool] = []
        self.sign_out_calls = 0

        self.create_error: MapchIdentityError | None = None
        self.sign_in_error: MapchIdentityError | None = None
        self.delete_errors: list[MapchIdentityError] = []
        self.reauth_error: MapchIdentityError | None = None
        self.reload_error: MapchIdentityError | None = None
        self.token_error: MapchIdentityError | None = None
        self.sign_out_error: MapchIdentityError | None = None
        self.announce_refreshed_token = False

        self._token_listeners: list[IdentityListener] = []
        self._auth_listeners: list[IdentityListener] = []

    def add_account(self, identity_id: str = "uid-1", email: str = "user@example.com", *, current: bool = True) -> Identity:
        identity = Identity(id=identity_id, email=email, id_token=f"token-{identity_id}")
        self.accounts[identity_id] = identity
        if current:
            self.current = identity
        return identity

    def fire_token_changed(self, identity: Identity | None) -> None:
        for listener in list(self._token_listeners):
            listener(identity)

    def fire_auth_state_changed(self, identity: Identity | None) -> None:
        for listener in list(self._auth_listeners):
            listener(identity)

    async def create_account(self, email: str, password: str) -> Identity:
        if self.create_error is not None:
            raise self.create_error
        identity = self.add_account(f"uid-{len(self.created) + 1}", email)
        self.created.append(identity.id)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        if self.sign_in_error is not None:
            raise self.sign_in_error
        for identity in self.accounts.values():
            if identity.email == email:
                self.current = identity
                self.fire_auth_state_changed(identity)
                return identity
        raise MapchIdentityError("no such user", code=IdentityErrorCode.USER_NOT_FOUND)

    async def send_password_reset(self, email: str) -> None:
        self.resets.append(email)

    async def delete_account(self, identity_id: str) -> None:
        self.delete_calls += 1
        if self.delete_errors:
            raise self.delete_errors.pop(0)
        self.accounts.pop(identity_id, None)
        if self.current is not None and self.current.id == identity_id:
            self.current = None

    async def reauthenticate(self, identity_id: str, credential: Credential) -> Identity:
        self.reauthenticated.append(identity_id)
        if self.reauth_error is not None:
            raise self.reauth_error
        return self.accounts[identity_id]

    async def reload_account(self, identity_id: str) -> Identity:
        if self.reload_error is not None:
            raise self.reload_error
        return self.accounts[identity_id]

    async def get_token(self, identity_id: str, *, force_refresh: bool = False) -> str:
        self.token_calls.append(force_refresh)
        if self.token_error is not None:
            raise self.token_error
        if self.announce_refreshed_token and identity_id in self.accounts:
            self.fire_token_changed(self.accounts[identity_id])
        return f"token-{identity_id}"

    def current_identity(self) -> Identity | None:
        return self.current

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.current = None
        self.fire_auth_state_changed(None)

    def on_token_changed(self, listener: IdentityListener) -> Unsubscribe:
        self._token_listeners.append(listener)
        return lambda: self._token_listeners.remove(listener)

    def on_auth_state_changed(self, listener: IdentityListener) -> Unsubscribe:
        self._auth_listeners.append(listener)
        return lambda: self._auth_listeners.remove(listener)


@pytest.fixture
def config() -> MapchConfig:
    return MapchConfig(
        base_url=TEST_BASE_URL,
        firebase_api_key="test-key",
        retry_backoff=0.0,
        viewport_debounce=0.01,
    )


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


def make_executor(transport: FakeTransport, **kwargs: Any) -> RequestExecutor:
    kwargs.setdefault("retry_backoff", 0.0)
    return RequestExecutor(transport, **kwargs)
