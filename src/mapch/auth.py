"""User-facing authentication operations."""

from __future__ import annotations

import logging

from mapch.exceptions import MapchIdentityError, MapchValidationError
from mapch.identity.base import Identity, IdentityErrorCode, IdentityProvider
from mapch.provisioning import ProvisioningAttempt, ProvisioningWorkflow
from mapch.session import SessionGuard

_logger = logging.getLogger(__name__)

_MESSAGES: dict[str, str] = {
    IdentityErrorCode.EMAIL_ALREADY_IN_USE: "This email address is already in use.",
    IdentityErrorCode.INVALID_EMAIL: "The email address is not valid.",
    IdentityErrorCode.WEAK_PASSWORD: "The password must be at least 6 characters.",
    IdentityErrorCode.USER_NOT_FOUND: "No account was found for this email address.",
    IdentityErrorCode.WRONG_PASSWORD: "The password is incorrect.",
    IdentityErrorCode.USER_DISABLED: "This account has been disabled.",
    IdentityErrorCode.NETWORK_ERROR: "Could not reach the server. Check your connection.",
}


def user_message(error: Exception) -> str:
    """Message suitable for display for an authentication failure."""
    cause = getattr(error, "cause", None)
    if isinstance(cause, MapchIdentityError):
        error = cause
    if isinstance(error, MapchIdentityError):
        return _MESSAGES.get(str(error.code), str(error))
    return str(error)


class AuthService:
    """Sign-up, sign-in, password reset and sign-out.

    Successful sign-in/sign-up is reported to the :class:`SessionGuard`.
    """

    def __init__(self, provider: IdentityProvider, workflow: ProvisioningWorkflow, guard: SessionGuard) -> None:
        self._provider = provider
        self._workflow = workflow
        self._guard = guard

    @staticmethod
    def _require(**values: str) -> None:
        missing = [name for name, value in values.items() if not value or not value.strip()]
        if missing:
            raise MapchValidationError(f"Required: {', '.join(missing)}")

    async def sign_up(self, email: str, password: str) -> ProvisioningAttempt:
        """Create the account with the provider and the backend.

        Raises
        ------
        MapchValidationError
            Empty email or password.
        IdentityCreationError, RegistrationError
            When provisioning did not commit.
        """
        self._require(email=email, password=password)
        attempt = await self._workflow.run(email, password)
        attempt.raise_for_state()
        if attempt.identity is not None:
            self._guard.mark_authenticated(attempt.identity, "sign_up")
        return attempt

    async def sign_in(self, email: str, password: str) -> Identity:
        self._require(email=email, password=password)
        identity = await self._provider.sign_in(email.strip(), password)
        self._guard.mark_authenticated(identity, "sign_in")
        return identity

    async def reset_password(self, email: str) -> None:
        self._require(email=email)
        await self._provider.send_password_reset(email.strip())
        _logger.debug("Password reset requested")

    async def sign_out(self) -> None:
        await self._guard.sign_out()
