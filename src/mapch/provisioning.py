"""Account provisioning: identity creation plus backend registration, with rollback.

Sign-up is only reported as successful once both the identity provider
and the backend have accepted the account. If backend registration fails
irrecoverably the freshly created identity is deleted again.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import StrEnum

from mapch._api.users import registration_request
from mapch.config import MapchConfig
from mapch.exceptions import (
    IdentityCreationError,
    MapchCompensationError,
    MapchIdentityError,
    MapchProvisioningError,
    MapchRequestError,
    MapchTransientError,
    MapchValidationError,
    RegistrationError,
)
from mapch.executor import RequestExecutor
from mapch.identity.base import Credential, Identity, IdentityProvider

_logger = logging.getLogger(__name__)


class ProvisioningPhase(StrEnum):
    IDLE = "idle"
    CREATING_IDENTITY = "creating_identity"
    REGISTERING_BACKEND = "registering_backend"
    ROLLING_BACK = "rolling_back"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclasses.dataclass(frozen=True, slots=True)
class ProvisioningState:
    """One state of the provisioning state machine.

    ``attempt`` is set for ``REGISTERING_BACKEND`` (0 or 1) and ``reason``
    for ``FAILED``.
    """

    phase: ProvisioningPhase
    attempt: int | None = None
    reason: str | None = None


@dataclasses.dataclass(slots=True)
class ProvisioningAttempt:
    """Outcome and trace of one :meth:`ProvisioningWorkflow.run` call."""

    email: str
    transitions: list[ProvisioningState] = dataclasses.field(
        default_factory=lambda: [ProvisioningState(ProvisioningPhase.IDLE)]
    )
    identity: Identity | None = None
    registration_calls: int = 0
    rollback_calls: int = 0
    error: MapchProvisioningError | None = None
    compensation_error: MapchCompensationError | None = None

    @property
    def state(self) -> ProvisioningState:
        return self.transitions[-1]

    @property
    def succeeded(self) -> bool:
        return self.state.phase is ProvisioningPhase.COMMITTED

    def raise_for_state(self) -> None:
        """Raise the provisioning error if the attempt did not commit."""
        if self.error is not None:
            raise self.error
        if not self.succeeded:
            raise MapchProvisioningError(f"Provisioning did not complete (state {self.state.phase})")

    def _enter(self, phase: ProvisioningPhase, *, attempt: int | None = None, reason: str | None = None) -> None:
        state = ProvisioningState(phase, attempt=attempt, reason=reason)
        _logger.debug("Provisioning %s: %s -> %s", self.email, self.state.phase, state)
        self.transitions.append(state)

    def _fail(self, error: MapchProvisioningError) -> None:
        self.error = error
        self._enter(ProvisioningPhase.FAILED, reason=str(error))


class ProvisioningWorkflow:
    """Create an identity, register it with the backend, roll back on failure.

    Each :meth:`run` owns its own :class:`ProvisioningAttempt`; concurrent
    runs share nothing but the collaborators.
    """

    def __init__(self, provider: IdentityProvider, executor: RequestExecutor, config: MapchConfig) -> None:
        self._provider = provider
        self._executor = executor
        self._config = config

    async def run(self, email: str, password: str) -> ProvisioningAttempt:
        """Provision an account.

        Parameters
        ----------
        email : str
            Account email.
        password : str
            Account password. Kept only for re-authentication during rollback.

        Returns
        -------
        ProvisioningAttempt
            ``succeeded`` is true only when both phases completed.
            Otherwise ``error`` holds an :class:`IdentityCreationError` or a
            :class:`RegistrationError`.

        Raises
        ------
        MapchValidationError
            If *email* or *password* is empty. Nothing is sent.
        """
        email = email.strip()
        if not email or not password:
            raise MapchValidationError("Email and password are required")

        attempt = ProvisioningAttempt(email=email)
        attempt._enter(ProvisioningPhase.CREATING_IDENTITY)
        try:
            identity = await self._provider.create_account(email, password)
        except MapchIdentityError as exc:
            attempt._fail(IdentityCreationError(f"Identity creation failed: {exc}", cause=exc))
            return attempt
        attempt.identity = identity

        try:
            bearer = await self._bearer_token(identity)
            await self._register(attempt, identity, email, bearer)
        except Exception as exc:
            # The identity exists from here on; any failure must roll it back.
            if not isinstance(exc, MapchRequestError):
                _logger.error("Unexpected error registering %s: %r", identity.id, exc)
            attempt._enter(ProvisioningPhase.ROLLING_BACK)
            await self._rollback(attempt, identity, Credential(email=email, password=password))
            attempt._fail(RegistrationError(f"Backend registration failed: {exc}", cause=exc))
            return attempt

        attempt._enter(ProvisioningPhase.COMMITTED)
        _logger.info("Provisioned account %s", identity.id)
        return attempt

    async def _bearer_token(self, identity: Identity) -> str | None:
        try:
            return await self._provider.get_token(identity.id)
        except MapchIdentityError as exc:
            _logger.debug("No bearer token for %s; registering without one: %s", identity.id, exc)
            return identity.id_token

    async def _register(self, attempt: ProvisioningAttempt, identity: Identity, email: str, bearer: str | None) -> None:
        request = registration_request(self._config, identity_id=identity.id, email=email, bearer_token=bearer)

        def on_retry(next_attempt: int, error: MapchTransientError) -> None:
            attempt.registration_calls += 1
            attempt._enter(ProvisioningPhase.REGISTERING_BACKEND, attempt=next_attempt)

        attempt._enter(ProvisioningPhase.REGISTERING_BACKEND, attempt=0)
        attempt.registration_calls = 1
        await self._executor.execute(request, on_retry=on_retry)

    async def _rollback(self, attempt: ProvisioningAttempt, identity: Identity, credential: Credential) -> None:
        attempt.rollback_calls += 1
        try:
            await self._provider.delete_account(identity.id)
            return
        except MapchIdentityError as exc:
            _logger.debug("Direct delete of %s rejected (%s); re-authenticating", identity.id, exc)

        attempt.rollback_calls += 1
        try:
            await self._provider.reauthenticate(identity.id, credential)
            await self._provider.delete_account(identity.id)
        except MapchIdentityError as exc:
            error = MapchCompensationError(f"Could not delete identity {identity.id}: {exc}", identity_id=identity.id)
            attempt.compensation_error = error
            _logger.warning("Rollback abandoned; identity %s is orphaned: %s", identity.id, exc)
