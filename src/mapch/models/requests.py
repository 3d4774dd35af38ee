"""Pydantic request models for client entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They are used internally by :class:`mapch.client.MapchClient`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mapch._transport import UploadFile
from mapch.models.spot import Photo


class SpotForm(BaseModel):
    """Fields for registering a new spot."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
        arbitrary_types_allowed=True,
    )

    spot_name: str
    evaluation: int = Field(ge=0, le=5)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    user_name: str | None = None
    comment: str | None = None
    images: tuple[UploadFile, ...] = ()

    @field_validator("spot_name")
    @classmethod
    def _name_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("spot_name must be non-empty")
        return value

    def text_fields(self) -> list[tuple[str, str]]:
        """Multipart text fields, duplicated under the alternative names."""
        fields: list[tuple[str, str]] = [
            ("spot_name", self.spot_name),
            ("evaluation", str(self.evaluation)),
            ("ido", str(self.latitude)),
            ("keido", str(self.longitude)),
        ]
        if self.user_name:
            fields += [("user_name", self.user_name), ("author", self.user_name)]
        if self.comment:
            fields += [("comment", self.comment), ("content", self.comment)]
        return fields


class SpotEdit(BaseModel):
    """Edits applied through the multipart update form."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
        arbitrary_types_allowed=True,
    )

    spot_id: int
    spot_name: str
    rating: int = Field(ge=0, le=5)
    new_images: tuple[UploadFile, ...] = ()
    delete_photo_ids: tuple[int, ...] = ()
    existing_photos: tuple[Photo, ...] = ()

    def fallback_paths(self) -> list[str]:
        """Paths to assume when the server does not echo the photo list."""
        deleted = set(self.delete_photo_ids)
        return [photo.photo_path for photo in self.existing_photos if photo.id not in deleted and photo.photo_path]


class PostForm(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    spot_id: int
    author: str | None = None
    content: str

    @field_validator("content")
    @classmethod
    def _content_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("content must be non-empty")
        return value
