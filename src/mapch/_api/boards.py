"""Bulletin-board feed endpoint."""

from __future__ import annotations

from pydantic import ValidationError

from mapch._transport import RequestDescriptor
from mapch.config import MapchConfig
from mapch.exceptions import MapchPermanentError, MapchValidationError
from mapch.executor import RequestExecutor
from mapch.models.board import Board, BoardPage, BoardSort, PageCursor, PagedResponse


async def fetch_boards(
    config: MapchConfig,
    executor: RequestExecutor,
    *,
    sort: BoardSort = BoardSort.LATEST,
    category_id: int | None = None,
    cursor: PageCursor | None = None,
    bearer_token: str | None = None,
) -> BoardPage:
    """Fetch one page of boards.

    Parameters
    ----------
    sort : BoardSort
        Listing order. ``FAVORITE`` requires *bearer_token*.
    category_id : int or None
        Restrict to one category.
    cursor : PageCursor or None
        Page to fetch; the first page when omitted.
    bearer_token : str or None
        ID token sent as ``Authorization: Bearer``.

    Returns
    -------
    BoardPage
        The page and the cursor for the following one (``None`` when done).
    """
    if sort.requires_auth and not bearer_token:
        raise MapchValidationError(f"Board sort {sort.value!r} requires a signed-in user")
    cursor = cursor or PageCursor.first(config.board_page_size)

    params = {"sort": sort.value, **cursor.to_query()}
    if category_id is not None:
        params["category_id"] = str(category_id)
    headers = {"Accept": "application/json"}
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"

    request = RequestDescriptor(
        method="GET",
        url=f"{config.boards_url}/boards",
        headers=headers,
        params=params,
        timeout=config.request_timeout,
    )
    response = await executor.execute(request)
    try:
        paged = PagedResponse[Board].model_validate(response.json())
    except ValidationError as exc:
        raise MapchPermanentError(
            f"Undecodable board page from {request.endpoint}: {exc}",
            status_code=response.status,
            body=response.text,
            endpoint=request.endpoint,
        ) from exc

    reached_total = paged.meta.total > 0 and cursor.page * cursor.per_page >= paged.meta.total
    exhausted = len(paged.data) < cursor.per_page or reached_total
    return BoardPage(
        items=paged.data,
        meta=paged.meta,
        cursor=cursor,
        next_cursor=None if exhausted else cursor.next(),
    )
