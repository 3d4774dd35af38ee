"""Client configuration for mapch."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from mapch._constants import (
    BASE_URL,
    BOARD_PAGE_SIZE,
    IMAGE_BASE_URL,
    READ_TIMEOUT,
    REGISTER_PATH,
    REGISTRATION_TIMEOUT,
    RETRY_BACKOFF,
    SPOT_FETCH_LIMIT,
    USER_AGENT,
    VIEWPORT_DEBOUNCE,
    VIEWPORT_EPSILON,
)
from mapch.exceptions import MapchConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class MapchConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Backend root URL. Endpoint paths are appended to it.
    image_base_url : str
        Root used to resolve relative photo paths (``photo/...``).
    boards_base_url : str or None
        Root of the bulletin-board API. Defaults to ``{base_url}/api/v1``.
    register_path : str
        Path of the account registration endpoint.
    firebase_api_key : str or None
        Web API key for :class:`~mapch.identity.firebase.FirebaseIdentityProvider`.
    request_timeout : float
        Timeout in seconds for read-class calls.
    registration_timeout : float
        Timeout in seconds for account registration calls.
    retry_backoff : float
        Delay in seconds before the single retry of a transient failure.
    viewport_debounce : float
        Quiet period in seconds before a viewport change triggers a fetch.
    viewport_epsilon : float
        Per-edge tolerance in degrees for near-identical viewports.
    spot_fetch_limit : int
        Result cap sent with every viewport fetch.
    board_page_size : int
        Default page size for the bulletin-board feed.
    trace_requests : bool
        Log every request/response pair at DEBUG (redacted).
    user_agent : str
        ``User-Agent`` header sent with every request.
    """

    base_url: str = BASE_URL
    image_base_url: str = IMAGE_BASE_URL
    boards_base_url: str | None = None
    register_path: str = REGISTER_PATH
    firebase_api_key: str | None = None
    request_timeout: float = READ_TIMEOUT
    registration_timeout: float = REGISTRATION_TIMEOUT
    retry_backoff: float = RETRY_BACKOFF
    viewport_debounce: float = VIEWPORT_DEBOUNCE
    viewport_epsilon: float = VIEWPORT_EPSILON
    spot_fetch_limit: int = SPOT_FETCH_LIMIT
    board_page_size: int = BOARD_PAGE_SIZE
    trace_requests: bool = False
    user_agent: str = USER_AGENT

    def __post_init__(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise MapchConfigError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if self.request_timeout <= 0 or self.registration_timeout <= 0:
            raise MapchConfigError("timeouts must be positive; unbounded waits are not allowed")
        if self.retry_backoff < 0 or self.viewport_debounce < 0:
            raise MapchConfigError("retry_backoff and viewport_debounce must not be negative")
        if self.spot_fetch_limit <= 0 or self.board_page_size <= 0:
            raise MapchConfigError("spot_fetch_limit and board_page_size must be positive")

    @property
    def boards_url(self) -> str:
        return (self.boards_base_url or f"{self.base_url}/api/v1").rstrip("/")

    def url(self, path: str) -> str:
        """Join *path* onto :attr:`base_url`."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    @classmethod
    def from_env(cls, **overrides: Any) -> MapchConfig:
        """Create configuration from environment variables.

        Reads optional ``MAPCH_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        MapchConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "MAPCH_BASE_URL": "base_url",
            "MAPCH_IMAGE_BASE_URL": "image_base_url",
            "MAPCH_BOARDS_BASE_URL": "boards_base_url",
            "MAPCH_REGISTER_PATH": "register_path",
            "MAPCH_FIREBASE_API_KEY": "firebase_api_key",
            "MAPCH_USER_AGENT": "user_agent",
        }
        _ENV_FLOAT_MAP = {
            "MAPCH_REQUEST_TIMEOUT": "request_timeout",
            "MAPCH_REGISTRATION_TIMEOUT": "registration_timeout",
            "MAPCH_RETRY_BACKOFF": "retry_backoff",
            "MAPCH_VIEWPORT_DEBOUNCE": "viewport_debounce",
            "MAPCH_VIEWPORT_EPSILON": "viewport_epsilon",
        }
        _ENV_INT_MAP = {
            "MAPCH_SPOT_FETCH_LIMIT": "spot_fetch_limit",
            "MAPCH_BOARD_PAGE_SIZE": "board_page_size",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
        except ValueError as exc:
            raise MapchConfigError(f"Invalid numeric MAPCH_* value: {exc}") from exc

        if "trace_requests" not in overrides:
            config_kwargs["trace_requests"] = _env_bool(env.get("MAPCH_TRACE_REQUESTS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
