"""Firebase Auth over its public REST APIs.

Endpoints:
  - identitytoolkit ``accounts:signUp`` / ``accounts:signInWithPassword``
  - identitytoolkit ``accounts:sendOobCode`` / ``accounts:delete`` / ``accounts:lookup``
  - securetoken ``token`` (refresh-token exchange)

Calls go through :class:`~mapch.executor.RequestExecutor`, so they share
the timeout and single transient retry of every other request.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import time
from typing import Any

from mapch._constants import FORM_CONTENT_TYPE
from mapch._transport import RequestDescriptor
from mapch.config import MapchConfig
from mapch.exceptions import (
    MapchConfigError,
    MapchIdentityError,
    MapchPermanentError,
    MapchRequestError,
    MapchTransientError,
)
from mapch.executor import RequestExecutor
from mapch.identity.base import Credential, Identity, IdentityErrorCode, IdentityListener, Unsubscribe

_logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Refresh a little before the advertised expiry.
_TOKEN_EXPIRY_MARGIN_S = 60.0

_REST_ERROR_CODES: dict[str, IdentityErrorCode] = {
    "EMAIL_EXISTS": IdentityErrorCode.EMAIL_ALREADY_IN_USE,
    "INVALID_EMAIL": IdentityErrorCode.INVALID_EMAIL,
    "MISSING_EMAIL": IdentityErrorCode.INVALID_EMAIL,
    "WEAK_PASSWORD": IdentityErrorCode.WEAK_PASSWORD,
    "EMAIL_NOT_FOUND": IdentityErrorCode.USER_NOT_FOUND,
    "USER_NOT_FOUND": IdentityErrorCode.USER_NOT_FOUND,
    "INVALID_PASSWORD": IdentityErrorCode.WRONG_PASSWORD,
    "INVALID_LOGIN_CREDENTIALS": IdentityErrorCode.WRONG_PASSWORD,
    "USER_DISABLED": IdentityErrorCode.USER_DISABLED,
    "INVALID_ID_TOKEN": IdentityErrorCode.INVALID_USER_TOKEN,
    "INVALID_REFRESH_TOKEN": IdentityErrorCode.INVALID_USER_TOKEN,
    "TOKEN_EXPIRED": IdentityErrorCode.USER_TOKEN_EXPIRED,
    "CREDENTIAL_TOO_OLD_LOGIN_AGAIN": IdentityErrorCode.REQUIRES_RECENT_LOGIN,
}


def map_rest_error(message: str) -> IdentityErrorCode:
    """Map a REST error message such as ``"WEAK_PASSWORD : Password should be…"``."""
    token = message.split(":", 1)[0].strip().split(" ", 1)[0]
    return _REST_ERROR_CODES.get(token, IdentityErrorCode.UNKNOWN)


def _error_message(exc: MapchRequestError) -> str:
    try:
        payload = json.loads(exc.body) if exc.body else {}
    except ValueError:
        return ""
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", ""))
    if isinstance(payload, dict) and isinstance(payload.get("error_description"), str):
        return payload["error_description"]
    return str(error or "")


@dataclasses.dataclass(slots=True)
class _AccountTokens:
    email: str | None
    id_token: str
    refresh_token: str
    expires_at: float

    @property
    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at - _TOKEN_EXPIRY_MARGIN_S


class FirebaseIdentityProvider:
    """:class:`~mapch.identity.base.IdentityProvider` backed by Firebase REST."""

    def __init__(self, config: MapchConfig, executor: RequestExecutor) -> None:
        if not config.firebase_api_key:
            raise MapchConfigError("firebase_api_key is required for FirebaseIdentityProvider")
        self._config = config
        self._executor = executor
        self._accounts: dict[str, _AccountTokens] = {}
        self._current_id: str | None = None
        self._token_listeners: list[IdentityListener] = []
        self._auth_listeners: list[IdentityListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_token_changed(self, listener: IdentityListener) -> Unsubscribe:
        self._token_listeners.append(listener)
        return lambda: self._remove_listener(self._token_listeners, listener)

    def on_auth_state_changed(self, listener: IdentityListener) -> Unsubscribe:
        self._auth_listeners.append(listener)
        return lambda: self._remove_listener(self._auth_listeners, listener)

    @staticmethod
    def _remove_listener(listeners: list[IdentityListener], listener: IdentityListener) -> None:
        if listener in listeners:
            listeners.remove(listener)

    @staticmethod
    def _notify(listeners: list[IdentityListener], identity: Identity | None) -> None:
        for listener in list(listeners):
            try:
                listener(identity)
            except Exception:
                _logger.debug("Identity listener failed", exc_info=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _post(self, url: str, *, json_body: Any = None, form: tuple[tuple[str, str], ...] = ()) -> dict[str, Any]:
        headers = {"Content-Type": FORM_CONTENT_TYPE} if form else {}
        request = RequestDescriptor(
            method="POST",
            url=url,
            headers=headers,
            params={"key": self._config.firebase_api_key or ""},
            json_body=json_body,
            form=form,
            timeout=self._config.request_timeout,
        )
        try:
            response = await self._executor.execute(request)
        except MapchTransientError as exc:
            raise MapchIdentityError(f"Identity provider unreachable: {exc}", code=IdentityErrorCode.NETWORK_ERROR) from exc
        except MapchPermanentError as exc:
            message = _error_message(exc)
            code = map_rest_error(message)
            raise MapchIdentityError(message or str(exc), code=code) from exc

        try:
            data = response.json()
        except MapchPermanentError as exc:
            raise MapchIdentityError(f"Undecodable identity response from {url}", code=IdentityErrorCode.UNKNOWN) from exc
        if not isinstance(data, dict):
            raise MapchIdentityError(f"Unexpected identity response from {url}", code=IdentityErrorCode.UNKNOWN)
        return data

    def _store_tokens(self, data: dict[str, Any], *, email: str | None) -> Identity:
        identity_id = str(data.get("localId") or data.get("user_id") or "")
        id_token = data.get("idToken") or data.get("id_token")
        refresh_token = data.get("refreshToken") or data.get("refresh_token")
        if not identity_id or not id_token or not refresh_token:
            raise MapchIdentityError("Identity response missing token fields", code=IdentityErrorCode.UNKNOWN)
        try:
            expires_in = float(data.get("expiresIn") or data.get("expires_in") or 3600)
        except (TypeError, ValueError):
            expires_in = 3600.0
        previous = self._accounts.get(identity_id)
        self._accounts[identity_id] = _AccountTokens(
            email=email or data.get("email") or (previous.email if previous else None),
            id_token=str(id_token),
            refresh_token=str(refresh_token),
            expires_at=time.monotonic() + expires_in,
        )
        return self._identity(identity_id)

    def _identity(self, identity_id: str) -> Identity:
        tokens = self._accounts[identity_id]
        return Identity(id=identity_id, email=tokens.email, id_token=tokens.id_token)

    def _require_tokens(self, identity_id: str) -> _AccountTokens:
        tokens = self._accounts.get(identity_id)
        if tokens is None:
            raise MapchIdentityError(f"No credentials held for {identity_id}", code=IdentityErrorCode.INVALID_USER_TOKEN)
        return tokens

    def _become_current(self, identity: Identity) -> None:
        self._current_id = identity.id
        self._notify(self._auth_listeners, identity)
        self._notify(self._token_listeners, identity)

    # ------------------------------------------------------------------
    # IdentityProvider
    # ------------------------------------------------------------------

    def current_identity(self) -> Identity | None:
        if self._current_id is None or self._current_id not in self._accounts:
            return None
        return self._identity(self._current_id)

    async def create_account(self, email: str, password: str) -> Identity:
        data = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signUp",
            json_body={"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._store_tokens(data, email=email)
        _logger.debug("Created identity %s", identity.id)
        self._become_current(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        data = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword",
            json_body={"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._store_tokens(data, email=email)
        self._become_current(identity)
        return identity

    async def send_password_reset(self, email: str) -> None:
        await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:sendOobCode",
            json_body={"requestType": "PASSWORD_RESET", "email": email},
        )

    async def delete_account(self, identity_id: str) -> None:
        tokens = self._require_tokens(identity_id)
        await self._post(f"{IDENTITY_TOOLKIT_URL}/accounts:delete", json_body={"idToken": tokens.id_token})
        self._accounts.pop(identity_id, None)
        if self._current_id == identity_id:
            self._current_id = None
            self._notify(self._auth_listeners, None)

    async def reauthenticate(self, identity_id: str, credential: Credential) -> Identity:
        data = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword",
            json_body={"email": credential.email, "password": credential.password, "returnSecureToken": True},
        )
        if str(data.get("localId", "")) != identity_id:
            raise MapchIdentityError("Credential belongs to a different account", code=IdentityErrorCode.UNKNOWN)
        return self._store_tokens(data, email=credential.email)

    async def reload_account(self, identity_id: str) -> Identity:
        tokens = self._require_tokens(identity_id)
        data = await self._post(f"{IDENTITY_TOOLKIT_URL}/accounts:lookup", json_body={"idToken": tokens.id_token})
        users = data.get("users")
        if not isinstance(users, list) or not users:
            raise MapchIdentityError(f"Account {identity_id} not found", code=IdentityErrorCode.USER_NOT_FOUND)
        user = users[0] if isinstance(users[0], dict) else {}
        if user.get("disabled"):
            raise MapchIdentityError(f"Account {identity_id} is disabled", code=IdentityErrorCode.USER_DISABLED)
        if user.get("email"):
            tokens.email = str(user["email"])
        return self._identity(identity_id)

    async def get_token(self, identity_id: str, *, force_refresh: bool = False) -> str:
        tokens = self._require_tokens(identity_id)
        if not force_refresh and not tokens.is_expired:
            return tokens.id_token

        data = await self._post(
            SECURE_TOKEN_URL,
            form=(("grant_type", "refresh_token"), ("refresh_token", tokens.refresh_token)),
        )
        data.setdefault("user_id", identity_id)
        previous_token = tokens.id_token
        identity = self._store_tokens(data, email=tokens.email)
        if identity.id_token != previous_token and self._current_id == identity_id:
            self._notify(self._token_listeners, identity)
        return identity.id_token or ""

    async def sign_out(self) -> None:
        if self._current_id is None:
            return
        self._accounts.pop(self._current_id, None)
        self._current_id = None
        self._notify(self._auth_listeners, None)
        self._notify(self._token_listeners, None)
