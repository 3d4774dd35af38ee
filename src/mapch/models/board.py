"""Bulletin-board feed models and the explicit page cursor."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mapch.models._base import MapchBaseModel, parse_timestamp

T = TypeVar("T")


class BoardSort(StrEnum):
    LATEST = "latest"
    TRENDING = "trending"
    FAVORITE = "favorite"

    @property
    def requires_auth(self) -> bool:
        return self is BoardSort.FAVORITE


class PageCursor(BaseModel):
    """Position in a paged listing.

    Passed into and returned from each fetch instead of living as mutable
    counters on a view model, so concurrent "load next page" triggers
    cannot race on shared state.
    """

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1)

    @classmethod
    def first(cls, per_page: int = 20) -> PageCursor:
        return cls(page=1, per_page=per_page)

    def next(self) -> PageCursor:
        return self.model_copy(update={"page": self.page + 1})

    def to_query(self) -> dict[str, str]:
        return {"page": str(self.page), "per_page": str(self.per_page)}


class BoardAuthor(MapchBaseModel):
    id: int | None = None
    uid: str | None = None
    name: str = ""

    @property
    def initial(self) -> str:
        return self.name[:1]


class BoardCategory(MapchBaseModel):
    id: int
    name: str = ""
    sort_order: int | None = None


class BoardLocation(MapchBaseModel):
    name: str | None = None
    lat: float | None = None
    lng: float | None = None


class Board(MapchBaseModel):
    """One bulletin-board entry."""

    id: int
    description: str = ""
    location: BoardLocation = Field(default_factory=BoardLocation)
    favorite_count: int = 0
    view_count: int = 0
    author: BoardAuthor = Field(default_factory=BoardAuthor)
    category: BoardCategory | None = None
    created_at: datetime | None = None
    is_favorited: bool = False
    photo_url: str | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)


class PageMeta(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    page: int = 1
    per_page: int = 20
    total: int = 0


class PagedResponse(BaseModel, Generic[T]):
    model_config = ConfigDict(frozen=True, extra="ignore")

    data: list[T] = Field(default_factory=list)
    meta: PageMeta = Field(default_factory=PageMeta)


class BoardPage(BaseModel):
    """A fetched page plus the cursor for the page after it.

    ``next_cursor`` is ``None`` once the listing is exhausted.
    """

    model_config = ConfigDict(frozen=True)

    items: list[Board]
    meta: PageMeta
    cursor: PageCursor
    next_cursor: PageCursor | None
