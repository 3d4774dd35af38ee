"""Spot endpoints.

Endpoints:
  - GET  /api/spots/in-bounds (viewport listing)
  - POST /api/spots/store (multipart create, file field probed)
  - /api/spots/update/{id}, /api/spots/{id}, /api/spots/update (update, probed)
  - /api/spots/delete/{id}, /api/spots/{id}, /api/spots/delete (delete, probed)
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from mapch._constants import PHOTO_FIELD_CANDIDATES
from mapch._transport import RequestDescriptor
from mapch.config import MapchConfig
from mapch.exceptions import MapchPermanentError
from mapch.executor import RequestExecutor
from mapch.models.geo import BoundingBox
from mapch.models.requests import SpotEdit, SpotForm
from mapch.models.spot import Spot
from mapch.probe import BodyEncoding, CandidateProbe, CandidateRequest, build_candidate_request

_logger = logging.getLogger(__name__)

SPOTS_IN_BOUNDS_PATH = "/api/spots/in-bounds"
SPOT_STORE_PATH = "/api/spots/store"


def _parse_spots(payload: Any, *, endpoint: str) -> list[Spot]:
    if not isinstance(payload, list):
        raise MapchPermanentError(f"Expected a list of spots from {endpoint}", endpoint=endpoint)
    try:
        return [Spot.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise MapchPermanentError(f"Undecodable spot from {endpoint}: {exc}", endpoint=endpoint) from exc


async def fetch_spots_in_bounds(
    config: MapchConfig,
    executor: RequestExecutor,
    bbox: BoundingBox,
    *,
    limit: int,
) -> list[Spot]:
    """Fetch the spots inside *bbox*, capped at *limit*."""
    request = RequestDescriptor(
        method="GET",
        url=config.url(SPOTS_IN_BOUNDS_PATH),
        params={**bbox.to_query(), "limit": str(limit)},
        timeout=config.request_timeout,
    )
    response = await executor.execute(request)
    return _parse_spots(response.json(), endpoint=request.endpoint)


def create_spot_candidates(form: SpotForm) -> tuple[CandidateRequest, ...]:
    """Without images only the primary field name is tried."""
    fields = PHOTO_FIELD_CANDIDATES if form.images else PHOTO_FIELD_CANDIDATES[:1]
    return tuple(
        CandidateRequest(SPOT_STORE_PATH, "POST", BodyEncoding.MULTIPART, file_field=field) for field in fields
    )


async def create_spot(config: MapchConfig, probe: CandidateProbe, form: SpotForm) -> None:
    """Register a spot, probing the multipart file field name.

    Raises
    ------
    MapchAggregatedFailure
        Carrying the last status and server message when no field name works.
    """
    text_fields = form.text_fields()
    await probe.probe(
        create_spot_candidates(form),
        lambda candidate: build_candidate_request(config, candidate, fields=text_fields, files=form.images),
        operation="create_spot",
    )


def update_spot_candidates(spot_id: int) -> tuple[CandidateRequest, ...]:
    return (
        CandidateRequest(f"/api/spots/update/{spot_id}", "PATCH", BodyEncoding.JSON),
        CandidateRequest(f"/api/spots/{spot_id}", "PUT", BodyEncoding.JSON),
        CandidateRequest(f"/api/spots/update/{spot_id}", "POST", BodyEncoding.FORM, override="PATCH", spoof_method=True),
        CandidateRequest("/api/spots/update", "POST", BodyEncoding.FORM, override="PATCH"),
    )


async def update_spot(
    config: MapchConfig,
    probe: CandidateProbe,
    spot_id: int,
    *,
    spot_name: str | None,
    evaluation: int | None,
) -> None:
    """Update name and/or rating, trying the known route/verb combinations in order."""
    json_body: dict[str, str] = {}
    if spot_name:
        json_body["spot_name"] = spot_name
    if evaluation is not None:
        # The backend has stored evaluation as a string.
        json_body["evaluation"] = str(evaluation)
    form_fields = [
        ("spot_name", spot_name or ""),
        ("evaluation", "" if evaluation is None else str(evaluation)),
    ]

    def build(candidate: CandidateRequest) -> RequestDescriptor:
        fields = form_fields
        if candidate.path == "/api/spots/update":
            fields = [("id", str(spot_id)), *form_fields]
        return build_candidate_request(config, candidate, fields=fields, json_body=json_body)

    await probe.probe(update_spot_candidates(spot_id), build, operation="update_spot")


def delete_spot_candidates(spot_id: int) -> tuple[CandidateRequest, ...]:
    return (
        CandidateRequest(f"/api/spots/delete/{spot_id}", "DELETE"),
        CandidateRequest(f"/api/spots/{spot_id}", "DELETE"),
        CandidateRequest(f"/api/spots/delete/{spot_id}", "POST", BodyEncoding.FORM, override="DELETE", spoof_method=True),
        CandidateRequest("/api/spots/delete", "POST", BodyEncoding.FORM, override="DELETE"),
    )


async def delete_spot(config: MapchConfig, probe: CandidateProbe, spot_id: int) -> None:
    def build(candidate: CandidateRequest) -> RequestDescriptor:
        fields = [("id", str(spot_id))] if candidate.path == "/api/spots/delete" else []
        return build_candidate_request(config, candidate, fields=fields)

    await probe.probe(delete_spot_candidates(spot_id), build, operation="delete_spot")


def _echoed_photo_paths(payload: Any) -> list[str]:
    if not isinstance(payload, dict):
        return []
    photos = payload.get("photos")
    if not isinstance(photos, list):
        return []
    paths: list[str] = []
    for photo in photos:
        if isinstance(photo, dict) and isinstance(photo.get("photo_path"), str):
            path = photo["photo_path"].strip()
            if path:
                paths.append(path)
    return paths


async def edit_spot(config: MapchConfig, executor: RequestExecutor, edit: SpotEdit) -> list[str]:
    """Submit the multipart edit form.

    Returns the photo paths echoed by the server, or ``[]`` when the
    response does not carry them.
    """
    fields: list[tuple[str, str]] = [
        ("_method", "PATCH"),
        ("spot_name", edit.spot_name),
        ("evaluation", str(edit.rating)),
    ]
    fields += [("delete_photo_ids[]", str(photo_id)) for photo_id in edit.delete_photo_ids]
    request = RequestDescriptor(
        method="POST",
        url=config.url(f"/api/spots/update/{edit.spot_id}"),
        form=tuple(fields),
        files=tuple((PHOTO_FIELD_CANDIDATES[0], upload) for upload in edit.new_images),
        multipart=True,
        timeout=config.request_timeout,
    )
    response = await executor.execute(request)
    try:
        payload = response.json()
    except MapchPermanentError:
        _logger.debug("edit_spot response for %s is not JSON; no photo list echoed", edit.spot_id)
        return []
    return _echoed_photo_paths(payload)
