"""Map viewport synchronisation: debounce, near-duplicate suppression and stale-result discard."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from mapch._constants import VIEWPORT_DEBOUNCE, VIEWPORT_EPSILON
from mapch.exceptions import MapchError
from mapch.models.geo import BoundingBox, ViewportSnapshot
from mapch.models.spot import Spot
from mapch.state.bus import EventBus, Subscription
from mapch.state.events import SpotCreated, SpotDeleted, SpotEvent, SpotsLoaded, SpotUpdated

_logger = logging.getLogger(__name__)

SpotFetcher = Callable[[BoundingBox], Awaitable[list[Spot]]]


class ViewportPhase(StrEnum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    FETCHING = "fetching"


class ViewportSyncController:
    """Keep the published spot list in sync with the visible map region.

    Every viewport change restarts a debounce timer; when the timer fires
    the fetch generation is bumped and a fetch for the region is started.
    Older fetches are never aborted, their results are dropped on arrival
    if a newer generation has started since.

    All methods must be called from the event loop that owns the
    controller.

    Parameters
    ----------
    fetch_spots
        Coroutine function returning the spots inside a bounding box.
    bus
        Optional event bus. ``SpotsLoaded`` is published on it and
        spot create/update/delete events trigger a forced refresh.
    debounce
        Quiet period in seconds before a change is fetched.
    epsilon
        Edge tolerance in degrees for near-duplicate suppression.
    """

    def __init__(
        self,
        fetch_spots: SpotFetcher,
        *,
        bus: EventBus | None = None,
        debounce: float = VIEWPORT_DEBOUNCE,
        epsilon: float = VIEWPORT_EPSILON,
    ) -> None:
        self._fetch_spots = fetch_spots
        self._bus = bus
        self._debounce = debounce
        self._epsilon = epsilon

        self._viewport: ViewportSnapshot | None = None
        self._last_fetched: BoundingBox | None = None
        self._generation = 0
        self._debounce_task: asyncio.Task[None] | None = None
        self._fetch_tasks: dict[int, asyncio.Task[None]] = {}
        self._spots: list[Spot] = []
        self.last_error: Exception | None = None

        self._subscriptions: list[Subscription] = []
        if bus is not None:
            for event_type in (SpotCreated, SpotUpdated, SpotDeleted):
                self._subscriptions.append(bus.subscribe(event_type, self._on_spot_changed))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def generation(self) -> int:
        """Generation of the most recently started fetch."""
        return self._generation

    @property
    def spots(self) -> list[Spot]:
        """The published result set."""
        return list(self._spots)

    @property
    def viewport(self) -> ViewportSnapshot | None:
        return self._viewport

    @property
    def last_fetched_box(self) -> BoundingBox | None:
        return self._last_fetched

    @property
    def phase(self) -> ViewportPhase:
        if self._debounce_task is not None and not self._debounce_task.done():
            return ViewportPhase.DEBOUNCING
        current = self._fetch_tasks.get(self._generation)
        if current is not None and not current.done():
            return ViewportPhase.FETCHING
        return ViewportPhase.IDLE

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def viewport_changed(self, viewport: ViewportSnapshot) -> bool:
        """Record a new visible region and schedule a debounced fetch.

        Returns ``False`` when the region is near-identical to the last
        fetched one and nothing was scheduled.
        """
        self._viewport = viewport
        box = viewport.bounding_box()
        if self._last_fetched is not None and box.is_near(self._last_fetched, self._epsilon):
            # Moved back onto the fetched region: a pending timer is obsolete.
            self._cancel_debounce()
            _logger.debug("Viewport change suppressed; within %.4f deg of last fetch", self._epsilon)
            return False

        self._cancel_debounce()
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounce_then_fetch(box))
        return True

    def force_refresh(self) -> bool:
        """Forget the last fetched region and re-run the current viewport."""
        self._last_fetched = None
        if self._viewport is None:
            return False
        return self.viewport_changed(self._viewport)

    def _on_spot_changed(self, event: SpotEvent) -> None:
        _logger.debug("%s for spot %s; refreshing viewport", type(event).__name__, event.spot_id)
        self.force_refresh()

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _cancel_debounce(self) -> None:
        task = self._debounce_task
        self._debounce_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _debounce_then_fetch(self, box: BoundingBox) -> None:
        if self._debounce > 0:
            await asyncio.sleep(self._debounce)
        self._debounce_task = None
        self._generation += 1
        generation = self._generation
        self._last_fetched = box
        # Separate task: a later debounce cancellation must not abort this fetch.
        task = asyncio.get_running_loop().create_task(self._fetch(generation, box))
        self._fetch_tasks[generation] = task
        task.add_done_callback(lambda _t: self._fetch_tasks.pop(generation, None))

    async def _fetch(self, generation: int, box: BoundingBox) -> None:
        try:
            spots = await self._fetch_spots(box)
        except Exception as exc:
            if generation != self._generation:
                _logger.debug("Ignoring failure of superseded fetch generation %d: %s", generation, exc)
                return
            self.last_error = exc
            if isinstance(exc, MapchError):
                _logger.debug("Viewport fetch generation %d failed: %s", generation, exc)
            else:
                _logger.warning("Viewport fetch generation %d raised %r", generation, exc)
            return

        if generation != self._generation:
            _logger.debug("Discarding stale fetch generation %d (current %d)", generation, self._generation)
            return
        self._spots = list(spots)
        self.last_error = None
        _logger.debug("Published %d spots for generation %d", len(spots), generation)
        if self._bus is not None:
            self._bus.publish(SpotsLoaded(generation=generation, count=len(spots)))

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or fetch is outstanding."""
        while True:
            pending = [task for task in self._fetch_tasks.values() if not task.done()]
            if self._debounce_task is not None and not self._debounce_task.done():
                pending.append(self._debounce_task)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding work and drop event subscriptions."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        self._cancel_debounce()
        tasks = list(self._fetch_tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
