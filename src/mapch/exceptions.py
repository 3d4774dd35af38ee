"""Custom exception hierarchy for mapch."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mapch.identity.base import IdentityErrorCode


class MapchError(Exception):
    """Base exception for all mapch errors."""


class MapchConfigError(MapchError):
    """Invalid or missing configuration."""


class MapchValidationError(MapchError, ValueError):
    """Caller input rejected before any network call was made."""


class MapchRequestError(MapchError):
    """A request did not produce a 2xx response.

    ``status_code`` is ``None`` when no HTTP response was received at all
    (connection failure, timeout, malformed URL). ``body`` holds the raw
    response text when one was available.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(message)


class MapchTransientError(MapchRequestError):
    """Timeout, lost connection or 5xx.

    Eligible for exactly one retry by the request executor.
    """


class MapchPermanentError(MapchRequestError):
    """4xx, undecodable response or malformed request. Never retried."""


class MapchAggregatedFailure(MapchRequestError):
    """Every candidate of a probe failed.

    ``status_code``/``body`` mirror the last failure; ``failures`` keeps
    all of them in the order the candidates were tried.
    """

    def __init__(
        self,
        message: str,
        *,
        failures: list[MapchRequestError],
        endpoint: str = "",
    ) -> None:
        self.failures = list(failures)
        last = self.failures[-1] if self.failures else None
        super().__init__(
            message,
            status_code=last.status_code if last is not None else None,
            body=last.body if last is not None else "",
            endpoint=endpoint or (last.endpoint if last is not None else ""),
        )


class MapchIdentityError(MapchError):
    """The identity provider rejected an operation."""

    def __init__(self, message: str, *, code: IdentityErrorCode | str) -> None:
        self.code = code
        super().__init__(message)


class MapchProvisioningError(MapchError):
    """Sign-up did not complete both phases."""


class IdentityCreationError(MapchProvisioningError):
    """The identity provider refused to create the account."""

    def __init__(self, message: str, *, cause: MapchIdentityError | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class RegistrationError(MapchProvisioningError):
    """Backend registration failed; the created identity was rolled back."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        self.cause = cause
        super().__init__(message)


class MapchCompensationError(MapchError):
    """Rolling back a created identity failed (orphaned identity).

    Logged and recorded on the provisioning attempt; never raised to the
    caller in place of the original :class:`RegistrationError`.
    """

    def __init__(self, message: str, *, identity_id: str) -> None:
        self.identity_id = identity_id
        super().__init__(message)
