from __future__ import annotations

import pytest
from pydantic import ValidationError

from mapch.models.geo import BoundingBox, ViewportSnapshot, clamp_latitude, normalize_longitude


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0.0, 0.0),
        (139.7, 139.7),
        (180.0, 180.0),
        (-180.0, 180.0),
        (190.0, -170.0),
        (-190.0, 170.0),
        (540.0, 180.0),
        (-359.0, 1.0),
    ],
)
def test_normalize_longitude_wraps_into_half_open_range(value: float, expected: float) -> None:
    assert normalize_longitude(value) == pytest.approx(expected)


def test_clamp_latitude() -> None:
    assert clamp_latitude(95.0) == 90.0
    assert clamp_latitude(-100.0) == -90.0
    assert clamp_latitude(35.6) == 35.6


def test_bounding_box_clamps_and_normalizes() -> None:
    box = BoundingBox(south=-95.0, west=-200.0, north=91.0, east=181.0)

    assert box.south == -90.0
    assert box.north == 90.0
    assert box.west == pytest.approx(160.0)
    assert box.east == pytest.approx(-179.0)


def test_bounding_box_rejects_inverted_latitudes() -> None:
    with pytest.raises(ValidationError):
        BoundingBox(south=36.0, west=139.0, north=35.0, east=140.0)


def test_bounding_box_is_near_uses_every_edge() -> None:
    box = BoundingBox(south=35.0, west=139.0, north=36.0, east=140.0)

    assert box.is_near(BoundingBox(south=35.0004, west=139.0004, north=36.0004, east=140.0004))
    assert not box.is_near(BoundingBox(south=35.0, west=139.0, north=36.0, east=140.001))


def test_bounding_box_query_parameters() -> None:
    box = BoundingBox(south=35.0, west=139.5, north=36.0, east=140.0)

    assert box.to_query() == {"swlat": "35.0", "swlng": "139.5", "nelat": "36.0", "nelng": "140.0"}


def test_viewport_snapshot_derives_bounding_box() -> None:
    snapshot = ViewportSnapshot(center_latitude=35.68, center_longitude=139.76, span_latitude=0.2, span_longitude=0.4)
    box = snapshot.bounding_box()

    assert box.south == pytest.approx(35.58)
    assert box.north == pytest.approx(35.78)
    assert box.west == pytest.approx(139.56)
    assert box.east == pytest.approx(139.96)


def test_viewport_snapshot_rejects_negative_span() -> None:
    with pytest.raises(ValidationError):
        ViewportSnapshot(center_latitude=0, center_longitude=0, span_latitude=-1, span_longitude=1)


def test_viewport_snapshots_near_identical_within_epsilon() -> None:
    a = ViewportSnapshot(center_latitude=35.0, center_longitude=139.0, span_latitude=0.1, span_longitude=0.1)
    b = ViewportSnapshot(center_latitude=35.0003, center_longitude=139.0002, span_latitude=0.1, span_longitude=0.1)
    c = ViewportSnapshot(center_latitude=35.001, center_longitude=139.0, span_latitude=0.1, span_longitude=0.1)

    assert a.is_near(b)
    assert not a.is_near(c)
