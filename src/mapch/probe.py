"""Candidate probing for backend contracts that are not statically known.

The backend has shipped several revisions of the same operations under
different paths, HTTP verbs and multipart field names. Rather than
scattering fallbacks through every endpoint, each operation declares an
ordered tuple of :class:`CandidateRequest` values and runs them through
:meth:`CandidateProbe.probe`, which returns the first 2xx response.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from collections.abc import Callable, Mapping, Sequence

from mapch._constants import ACCEPT_JSON, FORM_CONTENT_TYPE, METHOD_OVERRIDE_HEADER, METHOD_SPOOF_FIELD
from mapch._transport import RequestDescriptor, Response, UploadFile
from mapch.config import MapchConfig
from mapch.exceptions import MapchAggregatedFailure, MapchPermanentError, MapchRequestError
from mapch.executor import RequestExecutor

_logger = logging.getLogger(__name__)


class BodyEncoding(enum.StrEnum):
    NONE = "none"
    JSON = "json"
    FORM = "form"
    MULTIPART = "multipart"


@dataclasses.dataclass(frozen=True, slots=True)
class CandidateRequest:
    """One request shape to try.

    Parameters
    ----------
    path : str
        Path relative to the backend root (or an absolute URL).
    method : str
        HTTP verb actually sent on the wire.
    encoding : BodyEncoding
        How the payload is encoded.
    override : str or None
        Verb to announce through ``X-HTTP-Method-Override`` for servers
        that reject PATCH/DELETE directly.
    spoof_method : bool
        Also send the override verb as a ``_method`` body field.
    file_field : str or None
        Multipart field name for file parts.
    params : tuple
        Query parameters as ``(name, value)`` pairs.
    """

    path: str
    method: str = "GET"
    encoding: BodyEncoding = BodyEncoding.NONE
    override: str | None = None
    spoof_method: bool = False
    file_field: str | None = None
    params: tuple[tuple[str, str], ...] = ()

    def describe(self) -> str:
        suffix = f" (override {self.override})" if self.override else ""
        field = f" [{self.file_field}]" if self.file_field else ""
        return f"{self.method} {self.path}{field}{suffix}"


PayloadBuilder = Callable[[CandidateRequest], RequestDescriptor]
ResponseCheck = Callable[[Response], bool]


def build_candidate_request(
    config: MapchConfig,
    candidate: CandidateRequest,
    *,
    fields: Mapping[str, str] | Sequence[tuple[str, str]] = (),
    json_body: object = None,
    files: Sequence[UploadFile] = (),
    headers: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> RequestDescriptor:
    """Default payload builder shared by the endpoint modules.

    Encodes *fields* / *json_body* / *files* as the candidate asks and adds
    the method-override header and ``_method`` field where requested.
    """
    pairs = list(fields.items()) if isinstance(fields, Mapping) else list(fields)
    request_headers: dict[str, str] = {"Accept": ACCEPT_JSON}
    if headers:
        request_headers.update(headers)
    if candidate.override:
        request_headers[METHOD_OVERRIDE_HEADER] = candidate.override
        if candidate.spoof_method:
            pairs.insert(0, (METHOD_SPOOF_FIELD, candidate.override))

    kwargs: dict[str, object] = {}
    if candidate.encoding is BodyEncoding.JSON:
        kwargs["json_body"] = json_body if json_body is not None else dict(pairs)
    elif candidate.encoding is BodyEncoding.FORM:
        request_headers["Content-Type"] = FORM_CONTENT_TYPE
        kwargs["form"] = tuple(pairs)
    elif candidate.encoding is BodyEncoding.MULTIPART:
        file_field = candidate.file_field or "file"
        kwargs["form"] = tuple(pairs)
        kwargs["files"] = tuple((file_field, upload) for upload in files)
        kwargs["multipart"] = True

    return RequestDescriptor(
        method=candidate.method,
        url=config.url(candidate.path),
        headers=request_headers,
        params=dict(candidate.params),
        timeout=timeout if timeout is not None else config.request_timeout,
        **kwargs,  # type: ignore[arg-type]
    )


class CandidateProbe:
    """Run candidates in order through a :class:`RequestExecutor`."""

    def __init__(self, executor: RequestExecutor) -> None:
        self._executor = executor

    async def probe(
        self,
        candidates: Sequence[CandidateRequest],
        payload_builder: PayloadBuilder,
        *,
        accept: ResponseCheck | None = None,
        operation: str = "",
    ) -> Response:
        """Return the first successful response.

        Candidates are tried strictly in the given order. A candidate fails
        when the executor raises (after its own single transient retry) or
        when *accept* rejects a 2xx response (e.g. an unknown envelope).

        Raises
        ------
        MapchAggregatedFailure
            When every candidate failed; carries the last status and body.
        """
        if not candidates:
            raise ValueError("probe requires at least one candidate")

        label = operation or candidates[0].path
        failures: list[MapchRequestError] = []
        for index, candidate in enumerate(candidates, start=1):
            request = payload_builder(candidate)
            try:
                response = await self._executor.execute(request)
            except MapchRequestError as exc:
                _logger.debug(
                    "%s candidate %d/%d %s failed: status=%s",
                    label,
                    index,
                    len(candidates),
                    candidate.describe(),
                    exc.status_code,
                )
                failures.append(exc)
                continue

            if accept is not None and not accept(response):
                _logger.debug(
                    "%s candidate %d/%d %s returned an unrecognized body",
                    label,
                    index,
                    len(candidates),
                    candidate.describe(),
                )
                failures.append(
                    MapchPermanentError(
                        f"Unrecognized response from {request.endpoint}",
                        status_code=response.status,
                        body=response.text,
                        endpoint=request.endpoint,
                    )
                )
                continue

            if index > 1:
                _logger.debug("%s succeeded with candidate %d %s", label, index, candidate.describe())
            return response

        last = failures[-1]
        raise MapchAggregatedFailure(
            f"{label}: all {len(candidates)} candidates failed (last status={last.status_code})",
            failures=failures,
        )
