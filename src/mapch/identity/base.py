"""Identity-provider capability surface.

The provider (Firebase Auth in production) is an external collaborator;
the rest of the library only depends on :class:`IdentityProvider`.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field


class IdentityErrorCode(StrEnum):
    USER_NOT_FOUND = "user_not_found"
    USER_DISABLED = "user_disabled"
    INVALID_USER_TOKEN = "invalid_user_token"
    USER_TOKEN_EXPIRED = "user_token_expired"
    EMAIL_ALREADY_IN_USE = "email_already_in_use"
    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    WRONG_PASSWORD = "wrong_password"
    REQUIRES_RECENT_LOGIN = "requires_recent_login"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


#: Errors meaning the identity no longer exists or may no longer be used.
#: Any of these forces the session to unauthenticated.
TERMINAL_SESSION_ERRORS: frozenset[IdentityErrorCode] = frozenset(
    {
        IdentityErrorCode.USER_NOT_FOUND,
        IdentityErrorCode.USER_DISABLED,
        IdentityErrorCode.INVALID_USER_TOKEN,
        IdentityErrorCode.USER_TOKEN_EXPIRED,
    }
)


class Credential(BaseModel):
    """Email/password credential used for sign-in and re-authentication."""

    model_config = ConfigDict(frozen=True)

    email: str
    password: str = Field(repr=False)


class Identity(BaseModel):
    """An account known to the identity provider (the session principal)."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str | None = None
    id_token: str | None = Field(default=None, repr=False)
    disabled: bool = False


IdentityListener = Callable[[Identity | None], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    """Operations consumed from the identity provider.

    Failures are raised as :class:`~mapch.exceptions.MapchIdentityError`
    carrying an :class:`IdentityErrorCode`.
    """

    async def create_account(self, email: str, password: str) -> Identity:
        ...

    async def sign_in(self, email: str, password: str) -> Identity:
        ...

    async def send_password_reset(self, email: str) -> None:
        ...

    async def delete_account(self, identity_id: str) -> None:
        ...

    async def reauthenticate(self, identity_id: str, credential: Credential) -> Identity:
        ...

    async def reload_account(self, identity_id: str) -> Identity:
        ...

    async def get_token(self, identity_id: str, *, force_refresh: bool = False) -> str:
        ...

    def current_identity(self) -> Identity | None:
        ...

    async def sign_out(self) -> None:
        ...

    def on_token_changed(self, listener: IdentityListener) -> Unsubscribe:
        ...

    def on_auth_state_changed(self, listener: IdentityListener) -> Unsubscribe:
        ...
