"""Session state and the guard that keeps it consistent with the identity provider."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Coroutine
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mapch.exceptions import MapchIdentityError
from mapch.identity.base import TERMINAL_SESSION_ERRORS, Identity, IdentityProvider, Unsubscribe
from mapch.state.bus import EventBus
from mapch.state.events import SessionChanged

_logger = logging.getLogger(__name__)


class SessionStatus(BaseModel):
    """Authenticated (with a principal) or unauthenticated.

    Parameters
    ----------
    principal : Identity or None
        The signed-in identity; ``None`` when unauthenticated.
    changed_at : float
        Monotonic timestamp of the transition into this status.
    reason : str
        Why the status was entered (``"sign_in"``, ``"user_disabled"``...).
    """

    model_config = ConfigDict(frozen=True)

    principal: Identity | None = None
    changed_at: float = Field(default_factory=time.monotonic)
    reason: str = ""

    @classmethod
    def unauthenticated(cls, reason: str = "") -> SessionStatus:
        return cls(principal=None, reason=reason)

    @classmethod
    def authenticated_as(cls, principal: Identity, reason: str = "") -> SessionStatus:
        return cls(principal=principal, reason=reason)

    @property
    def authenticated(self) -> bool:
        return self.principal is not None

    @property
    def age(self) -> float:
        """Seconds since the status was entered."""
        return time.monotonic() - self.changed_at


class SessionGuard:
    """Single writer of :class:`SessionStatus`.

    Listens to the provider's token and auth-state notifications. A token
    change triggers a forced token refresh; a refresh or reload failing
    with a terminal error (account deleted, disabled, token revoked or
    expired) signs the user out. Any other failure is treated as
    transient and leaves the session as it is.

    Usage::

        guard = SessionGuard(provider, bus=bus)
        guard.start()
        ...
        guard.on_foreground()
    """

    def __init__(self, provider: IdentityProvider, *, bus: EventBus | None = None) -> None:
        self._provider = provider
        self._bus = bus
        self._status = SessionStatus.unauthenticated("initial")
        self._tasks: set[asyncio.Task[None]] = set()
        self._unsubscribers: list[Unsubscribe] = []
        self._refreshing: set[str] = set()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_authenticated(self) -> bool:
        return self._status.authenticated

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the provider and reconcile with it (process start)."""
        if not self._unsubscribers:
            self._unsubscribers = [
                self._provider.on_token_changed(self._on_token_changed),
                self._provider.on_auth_state_changed(self._on_auth_state_changed),
            ]
        current = self._provider.current_identity()
        if current is not None:
            self._set_status(SessionStatus.authenticated_as(current, "restored"))
        self._spawn(self.reconcile())

    def on_foreground(self) -> None:
        """App returned to the foreground: re-check the account with the provider."""
        self._spawn(self.reconcile())

    async def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_pending(self) -> None:
        """Wait for scheduled reconcile/refresh work to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Explicit actions
    # ------------------------------------------------------------------

    def mark_authenticated(self, identity: Identity, reason: str = "sign_in") -> None:
        self._set_status(SessionStatus.authenticated_as(identity, reason))

    async def sign_out(self, reason: str = "sign_out") -> None:
        """Mark the session unauthenticated and sign out with the provider."""
        self._set_status(SessionStatus.unauthenticated(reason))
        await self._provider.sign_out()

    # ------------------------------------------------------------------
    # Provider reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self) -> None:
        """Reload the current identity from the provider and apply the result."""
        current = self._provider.current_identity()
        if current is None:
            self._set_status(SessionStatus.unauthenticated("no_current_identity"))
            return
        try:
            refreshed = await self._provider.reload_account(current.id)
        except MapchIdentityError as exc:
            await self._handle_error(exc, context="reload")
            return
        self._set_status(SessionStatus.authenticated_as(refreshed, "reloaded"))

    def _on_token_changed(self, identity: Identity | None) -> None:
        if identity is None or identity.id in self._refreshing:
            # Our own forced refresh re-announces the token.
            return
        self._spawn(self._revalidate_token(identity))

    def _on_auth_state_changed(self, identity: Identity | None) -> None:
        if identity is None:
            if self._status.authenticated:
                self._set_status(SessionStatus.unauthenticated("provider_signed_out"))
        elif self._status.principal is None or self._status.principal.id != identity.id:
            self._set_status(SessionStatus.authenticated_as(identity, "provider_signed_in"))

    async def _revalidate_token(self, identity: Identity) -> None:
        self._refreshing.add(identity.id)
        try:
            await self._provider.get_token(identity.id, force_refresh=True)
        except MapchIdentityError as exc:
            await self._handle_error(exc, context="token_refresh")
        finally:
            self._refreshing.discard(identity.id)

    async def _handle_error(self, exc: MapchIdentityError, *, context: str) -> None:
        if exc.code not in TERMINAL_SESSION_ERRORS:
            _logger.debug("Ignoring non-terminal %s error (%s): %s", context, exc.code, exc)
            return
        _logger.info("Session invalidated by provider (%s during %s); signing out", exc.code, context)
        self._set_status(SessionStatus.unauthenticated(str(exc.code)))
        try:
            await self._provider.sign_out()
        except MapchIdentityError:
            _logger.debug("Local sign-out failed after %s", exc.code, exc_info=True)

    def _set_status(self, status: SessionStatus) -> None:
        previous = self._status
        if not previous.authenticated and not status.authenticated:
            return
        self._status = status
        if previous.authenticated and status.authenticated and previous.principal.id == status.principal.id:  # type: ignore[union-attr]
            return
        _logger.debug("Session %s -> %s (%s)", previous.authenticated, status.authenticated, status.reason)
        if self._bus is not None:
            self._bus.publish(
                SessionChanged(
                    authenticated=status.authenticated,
                    principal_id=status.principal.id if status.principal is not None else None,
                    reason=status.reason,
                )
            )
