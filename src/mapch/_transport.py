"""HTTP transport: request descriptors, responses and the aiohttp sender."""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from mapch._constants import ACCEPT_JSON, READ_TIMEOUT
from mapch._redact import redact_for_log
from mapch.exceptions import MapchPermanentError

_logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class UploadFile:
    """A file part for a multipart body. The field name is chosen per request."""

    data: bytes
    filename: str
    mime: str = "image/jpeg"


@dataclasses.dataclass(frozen=True, slots=True)
class RequestDescriptor:
    """A fully-formed request.

    At most one body kind is used: ``json_body``, or ``form`` (url-encoded),
    or ``form`` + ``files`` / ``multipart=True`` (multipart/form-data).
    """

    method: str
    url: str
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    params: Mapping[str, str] = dataclasses.field(default_factory=dict)
    json_body: Any = None
    form: tuple[tuple[str, str], ...] = ()
    files: tuple[tuple[str, UploadFile], ...] = ()
    multipart: bool = False
    timeout: float = READ_TIMEOUT

    @property
    def endpoint(self) -> str:
        return f"{self.method} {self.url}"

    @property
    def is_multipart(self) -> bool:
        return self.multipart or bool(self.files)

    def with_headers(self, **headers: str) -> RequestDescriptor:
        merged = {**self.headers, **headers}
        return dataclasses.replace(self, headers=merged)


@dataclasses.dataclass(frozen=True, slots=True)
class Response:
    """A received HTTP response, whatever its status."""

    status: int
    text: str
    url: str = ""
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises
        ------
        MapchPermanentError
            If the body is not valid JSON.
        """
        try:
            return json.loads(self.text)
        except json.JSONDecodeError as exc:
            raise MapchPermanentError(
                f"Invalid JSON from {self.url}: {self.text[:200]}",
                status_code=self.status,
                body=self.text,
                endpoint=self.url,
            ) from exc


class Transport(Protocol):
    """Structural transport interface used by the request executor.

    Implementations return a :class:`Response` for any HTTP status and let
    network-level exceptions (``aiohttp.ClientError``, ``TimeoutError``,
    ``ValueError`` for malformed URLs) propagate; classification is the
    executor's job.
    """

    async def send(self, request: RequestDescriptor) -> Response:
        ...


def _build_body(request: RequestDescriptor) -> aiohttp.FormData | None:
    if not request.form and not request.is_multipart:
        return None
    # Rebuilt per send: a FormData instance can only be serialized once.
    form = aiohttp.FormData(default_to_multipart=request.is_multipart)
    for name, value in request.form:
        form.add_field(name, value)
    for name, upload in request.files:
        form.add_field(name, upload.data, filename=upload.filename, content_type=upload.mime)
    return form


class AiohttpTransport:
    """Transport backed by a shared ``aiohttp.ClientSession``."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        user_agent: str | None = None,
        trace: bool = False,
    ) -> None:
        self._http = http_session
        self._user_agent = user_agent
        self._trace = trace

    async def send(self, request: RequestDescriptor) -> Response:
        headers: dict[str, str] = {"accept": ACCEPT_JSON}
        if self._user_agent:
            headers["user-agent"] = self._user_agent
        headers.update(request.headers)

        kwargs: dict[str, Any] = {
            "headers": headers,
            "timeout": aiohttp.ClientTimeout(total=request.timeout),
        }
        if request.params:
            kwargs["params"] = dict(request.params)
        body = _build_body(request)
        if body is not None:
            kwargs["data"] = body
        elif request.json_body is not None:
            kwargs["json"] = request.json_body

        _logger.debug("%s %s", request.method, request.url)
        if self._trace:
            _logger.debug(
                "request headers=%s params=%s json=%s form=%s files=%d",
                redact_for_log(headers),
                redact_for_log(dict(request.params)),
                redact_for_log(request.json_body),
                redact_for_log(request.form),
                len(request.files),
            )

        async with self._http.request(request.method, request.url, **kwargs) as resp:
            raw = await resp.read()
            text = raw.decode(resp.charset or "utf-8", errors="replace")
            response = Response(
                status=resp.status,
                text=text,
                url=str(resp.url),
                headers={k: v for k, v in resp.headers.items()},
            )

        if self._trace:
            _logger.debug("response status=%d body=%s", response.status, redact_for_log(text, max_string=256))
        return response
