"""Geospatial value types: bounding boxes and viewport snapshots."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mapch._constants import VIEWPORT_EPSILON


def clamp_latitude(value: float) -> float:
    return max(-90.0, min(90.0, value))


def normalize_longitude(value: float) -> float:
    """Wrap a longitude into ``(-180, 180]``."""
    wrapped = math.fmod(value + 180.0, 360.0)
    if wrapped < 0:
        wrapped += 360.0
    result = wrapped - 180.0
    return 180.0 if result == -180.0 else result


class BoundingBox(BaseModel):
    """Rectangular lat/lon region, in degrees.

    Latitudes are clamped to ``[-90, 90]`` and longitudes normalized to
    ``(-180, 180]`` independently, so a box crossing the antimeridian has
    ``west > east``. ``south <= north`` always holds.
    """

    model_config = ConfigDict(frozen=True)

    south: float
    west: float
    north: float
    east: float

    @model_validator(mode="after")
    def _normalize(self) -> BoundingBox:
        south = clamp_latitude(self.south)
        north = clamp_latitude(self.north)
        if south > north:
            raise ValueError(f"south ({south}) must not exceed north ({north})")
        object.__setattr__(self, "south", south)
        object.__setattr__(self, "north", north)
        object.__setattr__(self, "west", normalize_longitude(self.west))
        object.__setattr__(self, "east", normalize_longitude(self.east))
        return self

    def is_near(self, other: BoundingBox, epsilon: float = VIEWPORT_EPSILON) -> bool:
        """True when every edge differs from *other*'s by less than *epsilon*."""
        return (
            abs(self.south - other.south) < epsilon
            and abs(self.west - other.west) < epsilon
            and abs(self.north - other.north) < epsilon
            and abs(self.east - other.east) < epsilon
        )

    def to_query(self) -> dict[str, str]:
        """Query parameters understood by the spots listing endpoint."""
        return {
            "swlat": str(self.south),
            "swlng": str(self.west),
            "nelat": str(self.north),
            "nelng": str(self.east),
        }


class ViewportSnapshot(BaseModel):
    """Visible map region as reported by the map widget."""

    model_config = ConfigDict(frozen=True)

    center_latitude: float
    center_longitude: float
    span_latitude: float = Field(ge=0)
    span_longitude: float = Field(ge=0)

    def bounding_box(self) -> BoundingBox:
        half_lat = self.span_latitude / 2
        half_lon = self.span_longitude / 2
        return BoundingBox(
            south=self.center_latitude - half_lat,
            west=self.center_longitude - half_lon,
            north=self.center_latitude + half_lat,
            east=self.center_longitude + half_lon,
        )

    def is_near(self, other: ViewportSnapshot, epsilon: float = VIEWPORT_EPSILON) -> bool:
        return self.bounding_box().is_near(other.bounding_box(), epsilon)
