"""Spot (geospatial record), photo and post models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from mapch.models._base import MapchBaseModel, parse_timestamp, safe_float, safe_int, safe_str

ANONYMOUS_AUTHOR = "anonymous"

_PHOTO_PATH_KEYS: tuple[str, ...] = ("photo_path", "url", "path", "photoUrl", "photoURL", "src")


class Photo(MapchBaseModel):
    """A photo attached to a spot.

    ``photo_path`` is taken from the first non-empty of several keys and
    uses forward slashes; it may be absolute or relative to the image bucket.
    """

    id: int
    spot_id: int | None = None
    photo_path: str = ""

    @model_validator(mode="before")
    @classmethod
    def _resolve_path(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        resolved = dict(values)
        for key in _PHOTO_PATH_KEYS:
            value = resolved.get(key)
            if isinstance(value, str) and value.strip():
                resolved["photo_path"] = value.strip().replace("\\", "/")
                break
        return resolved

    @field_validator("id", "spot_id", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> int | None:
        return safe_int(value)


class PostAuthor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None
    username: str | None = None
    nickname: str | None = None


class Post(MapchBaseModel):
    """A comment/review on a spot.

    Body text, rating and timestamp each arrive under several key names
    depending on the backend revision.
    """

    id: int | None = None
    spot_id: int | None = None
    author: str | None = Field(default=None, validation_alias=AliasChoices("author", "user_name"))
    content: str | None = Field(
        default=None,
        validation_alias=AliasChoices("content", "comment", "text", "body", "message"),
    )
    rating: int | None = Field(default=None, validation_alias=AliasChoices("rating", "evaluation", "stars"))
    created_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("created_at", "createdAt", "updated_at", "date", "time"),
    )
    user: PostAuthor | None = None

    @field_validator("id", "spot_id", "rating", mode="before")
    @classmethod
    def _coerce_ints(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("author", "content", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("created_at", mode="before")
    @classmethod
    def _coerce_created_at(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("user", mode="before")
    @classmethod
    def _coerce_user(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @property
    def author_name(self) -> str:
        if self.author:
            return self.author
        if self.user is not None:
            for candidate in (self.user.name, self.user.username, self.user.nickname):
                if candidate and candidate.strip():
                    return candidate.strip()
        return ANONYMOUS_AUTHOR

    @property
    def text(self) -> str:
        return self.content or ""

    @property
    def display_rating(self) -> int:
        """Rating clamped to the 0..5 star range."""
        return max(0, min(5, self.rating or 0))


class Comment(MapchBaseModel):
    id: int | None = None
    spot_id: int | None = None
    comment: str | None = None


class Spot(MapchBaseModel):
    """A user-registered place on the map.

    Coordinates arrive as ``ido``/``keido`` (latitude/longitude) and may be
    numbers or numeric strings.
    """

    id: int
    spot_name: str = ""
    latitude: float = Field(validation_alias=AliasChoices("ido", "latitude", "lat"))
    longitude: float = Field(validation_alias=AliasChoices("keido", "longitude", "lng", "lon"))
    evaluation: str | None = None
    photos: list[Photo] = Field(default_factory=list)
    posts: list[Post] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _flexible_float(cls, value: Any) -> float:
        parsed = safe_float(value)
        if parsed is None:
            raise ValueError(f"expected a number or numeric string, got {value!r}")
        return parsed

    @field_validator("evaluation", mode="before")
    @classmethod
    def _evaluation_text(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("photos", "posts", "comments", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @property
    def photo_paths(self) -> list[str]:
        return [photo.photo_path for photo in self.photos if photo.photo_path]
