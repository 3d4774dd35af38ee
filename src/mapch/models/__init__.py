"""Data models for Map-channel API payloads."""

from mapch.models._base import MapchBaseModel, parse_timestamp
from mapch.models.board import (
    Board,
    BoardAuthor,
    BoardCategory,
    BoardLocation,
    BoardPage,
    BoardSort,
    PageCursor,
    PagedResponse,
    PageMeta,
)
from mapch.models.geo import BoundingBox, ViewportSnapshot, clamp_latitude, normalize_longitude
from mapch.models.requests import PostForm, SpotEdit, SpotForm
from mapch.models.spot import Comment, Photo, Post, PostAuthor, Spot

__all__ = [
    "Board",
    "BoardAuthor",
    "BoardCategory",
    "BoardLocation",
    "BoardPage",
    "BoardSort",
    "BoundingBox",
    "Comment",
    "MapchBaseModel",
    "PageCursor",
    "PageMeta",
    "PagedResponse",
    "Photo",
    "Post",
    "PostAuthor",
    "PostForm",
    "Spot",
    "SpotEdit",
    "SpotForm",
    "ViewportSnapshot",
    "clamp_latitude",
    "normalize_longitude",
    "parse_timestamp",
]
