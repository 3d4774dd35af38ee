"""High-level async client for the Map-channel backend."""

from __future__ import annotations

import functools
import logging
from typing import Any

import aiohttp

from mapch._api import boards as _boards_api
from mapch._api import posts as _posts_api
from mapch._api import spots as _spots_api
from mapch._transport import AiohttpTransport, Transport
from mapch.auth import AuthService
from mapch.config import MapchConfig
from mapch.exceptions import MapchConfigError, MapchError, MapchValidationError
from mapch.executor import RequestExecutor
from mapch.identity.base import IdentityProvider
from mapch.identity.firebase import FirebaseIdentityProvider
from mapch.models.board import BoardPage, BoardSort, PageCursor
from mapch.models.geo import BoundingBox
from mapch.models.requests import PostForm, SpotEdit, SpotForm
from mapch.models.spot import Post, Spot
from mapch.probe import CandidateProbe
from mapch.provisioning import ProvisioningWorkflow
from mapch.session import SessionGuard
from mapch.state.bus import EventBus
from mapch.state.events import SpotCreated, SpotDeleted, SpotPhotosUpdated, SpotUpdated
from mapch.state.store import KeyValueStore, MemoryStore, PhotoCache, resolve_photo_url
from mapch.viewport import ViewportSyncController

_logger = logging.getLogger(__name__)


class MapchClient:
    """Async client for the Map-channel API.

    Usage::

        async with MapchClient(config) as client:
            spots = await client.fetch_spots_in_bounds(bbox)
            controller = client.viewport_controller()

    Parameters
    ----------
    config
        Client configuration.
    session
        Borrowed ``aiohttp.ClientSession``; closed by its owner, not here.
    transport
        Custom transport. When given no HTTP session is created.
    store
        Persistent key-value store for the photo cache (in-memory by default).
    identity_provider
        Identity provider; a :class:`FirebaseIdentityProvider` is built on
        demand from ``config.firebase_api_key`` when omitted.
    """

    def __init__(
        self,
        config: MapchConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        store: KeyValueStore | None = None,
        identity_provider: IdentityProvider | None = None,
    ) -> None:
        self._config = config or MapchConfig()
        self._external_session = session is not None
        self._http_session = session
        self._custom_transport = transport
        self._executor: RequestExecutor | None = None
        self._probe: CandidateProbe | None = None
        self._identity_provider = identity_provider
        self.bus = EventBus()
        self.photo_cache = PhotoCache(store if store is not None else MemoryStore(), bus=self.bus)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MapchClient:
        transport = self._custom_transport
        if transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = AiohttpTransport(
                self._http_session,
                user_agent=self._config.user_agent,
                trace=self._config.trace_requests,
            )
        self._executor = RequestExecutor(transport, retry_backoff=self._config.retry_backoff)
        self._probe = CandidateProbe(self._executor)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._executor = None
        self._probe = None

    @property
    def config(self) -> MapchConfig:
        return self._config

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_executor(self) -> RequestExecutor:
        if self._executor is None:
            raise MapchError("Client not initialized. Use 'async with MapchClient(...) as client:'")
        return self._executor

    def _require_probe(self) -> CandidateProbe:
        self._require_executor()
        assert self._probe is not None  # noqa: S101
        return self._probe

    @property
    def executor(self) -> RequestExecutor:
        return self._require_executor()

    @property
    def identity_provider(self) -> IdentityProvider:
        if self._identity_provider is None:
            if not self._config.firebase_api_key:
                raise MapchConfigError("No identity provider: set firebase_api_key or pass identity_provider")
            self._identity_provider = FirebaseIdentityProvider(self._config, self._require_executor())
        return self._identity_provider

    # ------------------------------------------------------------------
    # Spots
    # ------------------------------------------------------------------

    async def fetch_spots_in_bounds(self, bbox: BoundingBox, *, limit: int | None = None) -> list[Spot]:
        """Spots inside *bbox*, at most ``limit`` (``config.spot_fetch_limit`` by default)."""
        return await _spots_api.fetch_spots_in_bounds(
            self._config,
            self._require_executor(),
            bbox,
            limit=limit or self._config.spot_fetch_limit,
        )

    async def create_spot(self, form: SpotForm) -> None:
        await _spots_api.create_spot(self._config, self._require_probe(), form)
        self.bus.publish(SpotCreated())

    async def update_spot(
        self,
        spot_id: int,
        *,
        spot_name: str | None = None,
        evaluation: int | None = None,
    ) -> None:
        """Change the name and/or rating of a spot.

        Raises
        ------
        MapchValidationError
            Nothing to update, or a rating outside 0..5.
        MapchAggregatedFailure
            No update route accepted the request.
        """
        name = spot_name.strip() if spot_name else None
        if not name and evaluation is None:
            raise MapchValidationError("Nothing to update")
        if evaluation is not None and not 0 <= evaluation <= 5:
            raise MapchValidationError(f"evaluation must be within 0..5, got {evaluation}")
        await _spots_api.update_spot(self._config, self._require_probe(), spot_id, spot_name=name, evaluation=evaluation)
        self.bus.publish(SpotUpdated(spot_id=spot_id))

    async def delete_spot(self, spot_id: int) -> None:
        await _spots_api.delete_spot(self._config, self._require_probe(), spot_id)
        self.photo_cache.put(spot_id, [])
        self.bus.publish(SpotDeleted(spot_id=spot_id))

    async def edit_spot(self, edit: SpotEdit) -> list[str]:
        """Apply an edit form and return the spot's photo paths afterwards.

        When the server does not echo the photo list the previously known
        photos minus the deleted ones are assumed.
        """
        paths = await _spots_api.edit_spot(self._config, self._require_executor(), edit)
        if not paths:
            paths = edit.fallback_paths()
            _logger.debug("Spot %s edit did not echo photos; assuming %d known paths", edit.spot_id, len(paths))
        self.bus.publish(SpotPhotosUpdated(spot_id=edit.spot_id, photo_paths=tuple(paths)))
        self.bus.publish(SpotUpdated(spot_id=edit.spot_id))
        return self.photo_cache.get(edit.spot_id) or []

    def spot_photo_urls(self, spot: Spot) -> list[str]:
        """Absolute photo URLs for *spot*, preferring the locally cached list."""
        paths = self.photo_cache.initial_paths(spot.id, spot.photo_paths)
        urls = (resolve_photo_url(path, self._config.image_base_url) for path in paths)
        return [url for url in urls if url]

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    async def fetch_posts(self, spot_id: int) -> list[Post]:
        return await _posts_api.fetch_posts(self._config, self._require_probe(), spot_id)

    async def submit_post(self, form: PostForm) -> None:
        await _posts_api.submit_post(self._config, self._require_executor(), form)

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    async def fetch_boards(
        self,
        *,
        sort: BoardSort = BoardSort.LATEST,
        category_id: int | None = None,
        cursor: PageCursor | None = None,
        bearer_token: str | None = None,
    ) -> BoardPage:
        return await _boards_api.fetch_boards(
            self._config,
            self._require_executor(),
            sort=sort,
            category_id=category_id,
            cursor=cursor,
            bearer_token=bearer_token,
        )

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def viewport_controller(self) -> ViewportSyncController:
        fetch = functools.partial(self.fetch_spots_in_bounds, limit=self._config.spot_fetch_limit)
        return ViewportSyncController(
            fetch,
            bus=self.bus,
            debounce=self._config.viewport_debounce,
            epsilon=self._config.viewport_epsilon,
        )

    def provisioning_workflow(self) -> ProvisioningWorkflow:
        return ProvisioningWorkflow(self.identity_provider, self._require_executor(), self._config)

    def session_guard(self) -> SessionGuard:
        return SessionGuard(self.identity_provider, bus=self.bus)

    def auth_service(self, guard: SessionGuard | None = None) -> AuthService:
        return AuthService(self.identity_provider, self.provisioning_workflow(), guard or self.session_guard())
