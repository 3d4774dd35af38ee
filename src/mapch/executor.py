"""Single-request execution with outcome classification and one bounded retry."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import aiohttp

from mapch._constants import RETRY_BACKOFF
from mapch._transport import RequestDescriptor, Response, Transport
from mapch.exceptions import MapchPermanentError, MapchRequestError, MapchTransientError

_logger = logging.getLogger(__name__)

RetryHook = Callable[[int, MapchTransientError], None]


def classify_status(response: Response, *, endpoint: str) -> MapchRequestError | None:
    """Return the failure for a non-2xx response, ``None`` on success."""
    if response.ok:
        return None
    message = f"HTTP {response.status} from {endpoint}: {response.text[:200]}"
    if 500 <= response.status <= 599:
        return MapchTransientError(message, status_code=response.status, body=response.text, endpoint=endpoint)
    return MapchPermanentError(message, status_code=response.status, body=response.text, endpoint=endpoint)


def classify_exception(exc: BaseException, *, endpoint: str) -> MapchRequestError:
    """Map a transport-level exception onto the transient/permanent split."""
    # InvalidURL is also a ValueError; it must win over the connection checks.
    if isinstance(exc, aiohttp.InvalidURL):
        return MapchPermanentError(f"Malformed URL for {endpoint}: {exc}", endpoint=endpoint)
    if isinstance(exc, TimeoutError):
        return MapchTransientError(f"Request to {endpoint} timed out", endpoint=endpoint)
    if isinstance(exc, (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, OSError)):
        return MapchTransientError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint)
    return MapchPermanentError(f"Request to {endpoint} failed: {exc!r}", endpoint=endpoint)


class RequestExecutor:
    """Issue one request, classify the outcome and retry a transient failure once.

    The executor holds no shared state besides its transport; concurrent
    ``execute`` calls are independent.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        retry_backoff: float = RETRY_BACKOFF,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._retry_backoff = retry_backoff
        self._sleep = sleep

    @property
    def transport(self) -> Transport:
        return self._transport

    async def _execute_once(self, request: RequestDescriptor) -> Response:
        endpoint = request.endpoint
        try:
            async with asyncio.timeout(request.timeout):
                response = await self._transport.send(request)
        except asyncio.CancelledError:
            raise
        except MapchRequestError:
            raise
        except Exception as exc:
            raise classify_exception(exc, endpoint=endpoint) from exc

        failure = classify_status(response, endpoint=endpoint)
        if failure is not None:
            raise failure
        return response

    async def execute(
        self,
        request: RequestDescriptor,
        *,
        retry: bool = True,
        on_retry: RetryHook | None = None,
    ) -> Response:
        """Send *request* and return the 2xx :class:`Response`.

        A :class:`MapchTransientError` on the first attempt is followed by
        one retry after ``retry_backoff`` seconds (when *retry* is true);
        a second transient failure is raised as-is. Permanent failures are
        raised immediately.

        Parameters
        ----------
        request
            The request to send.
        retry
            Allow the single retry of a transient failure.
        on_retry
            Called with ``(attempt, error)`` right before the retry is
            scheduled; ``attempt`` is the index of the upcoming attempt.

        Raises
        ------
        MapchTransientError, MapchPermanentError
        """
        try:
            return await self._execute_once(request)
        except MapchTransientError as exc:
            if not retry:
                raise
            _logger.debug(
                "Transient failure status=%s endpoint=%s; retrying in %.1fs",
                exc.status_code,
                request.endpoint,
                self._retry_backoff,
            )
            if on_retry is not None:
                on_retry(1, exc)
            if self._retry_backoff > 0:
                await self._sleep(self._retry_backoff)

        return await self._execute_once(request)
