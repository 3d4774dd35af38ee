"""Post (review) endpoints.

The post listing has lived under many routes; reads are probed with GET
query variants first and form POST variants second.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from mapch._api._envelope import unwrap_list
from mapch._transport import RequestDescriptor, Response
from mapch.config import MapchConfig
from mapch.exceptions import MapchAggregatedFailure, MapchPermanentError
from mapch.executor import RequestExecutor
from mapch.models.requests import PostForm
from mapch.models.spot import Post
from mapch.probe import BodyEncoding, CandidateProbe, CandidateRequest, build_candidate_request

_logger = logging.getLogger(__name__)

POST_STORE_PATH = "/api/posts/store"

_GET_ROUTES = (
    ("/api/posts/by-spot/{id}", None),
    ("/api/posts", "spot_id"),
    ("/api/spots/{id}", None),
    ("/api/getPosts", "id"),
    ("/api/posts/get", "id"),
    ("/getPosts", "id"),
    ("/posts/get", "id"),
)
_POST_ROUTES = ("/api/getPosts", "/api/posts/get", "/getPosts", "/posts/get")


def fetch_posts_candidates(spot_id: int) -> tuple[CandidateRequest, ...]:
    candidates: list[CandidateRequest] = []
    for template, query_key in _GET_ROUTES:
        params = ((query_key, str(spot_id)),) if query_key else ()
        candidates.append(CandidateRequest(template.format(id=spot_id), "GET", params=params))
    candidates += [CandidateRequest(path, "POST", BodyEncoding.FORM) for path in _POST_ROUTES]
    return tuple(candidates)


def _posts_payload(response: Response) -> list[object] | None:
    try:
        return unwrap_list(response.json())
    except MapchPermanentError:
        return None


async def fetch_posts(config: MapchConfig, probe: CandidateProbe, spot_id: int) -> list[Post]:
    """Fetch the posts attached to a spot.

    A spot whose posts cannot be located on any route is shown without
    posts, so exhaustion of the candidates yields ``[]``.
    """

    def build(candidate: CandidateRequest) -> RequestDescriptor:
        fields = [("id", str(spot_id))] if candidate.encoding is BodyEncoding.FORM else []
        return build_candidate_request(config, candidate, fields=fields)

    try:
        response = await probe.probe(
            fetch_posts_candidates(spot_id),
            build,
            accept=lambda resp: _posts_payload(resp) is not None,
            operation="fetch_posts",
        )
    except MapchAggregatedFailure as exc:
        _logger.debug("No post route answered for spot %s: %s", spot_id, exc)
        return []

    items = _posts_payload(response) or []
    posts: list[Post] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            posts.append(Post.model_validate(item))
        except ValidationError as exc:
            _logger.debug("Skipping undecodable post for spot %s: %s", spot_id, exc)
    return posts


async def submit_post(config: MapchConfig, executor: RequestExecutor, form: PostForm) -> None:
    body: dict[str, object] = {"spot_id": form.spot_id, "content": form.content}
    if form.author:
        body["author"] = form.author
    request = RequestDescriptor(
        method="POST",
        url=config.url(POST_STORE_PATH),
        headers={"Accept": "application/json"},
        json_body=body,
        timeout=config.request_timeout,
    )
    await executor.execute(request)
