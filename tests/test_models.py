"""Tests for Pydantic model parsing with MapchBaseModel."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from mapch._transport import UploadFile
from mapch.models import (
    Board,
    BoardSort,
    PageCursor,
    PagedResponse,
    Photo,
    Post,
    PostForm,
    Spot,
    SpotEdit,
    SpotForm,
    parse_timestamp,
)
from mapch.models._base import safe_float, safe_int

# ------------------------------------------------------------------
# Coercion helpers
# ------------------------------------------------------------------


class TestCoercion:
    def test_safe_float_accepts_numeric_strings(self) -> None:
        assert safe_float(" 35.5 ") == 35.5
        assert safe_float("abc") is None
        assert safe_float(True) is None
        assert safe_float(float("nan")) is None

    def test_safe_int_accepts_full_width_digits(self) -> None:
        assert safe_int("４") == 4
        assert safe_int("3.9") == 3
        assert safe_int("") is None

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("2025-08-31T12:30:00Z", datetime(2025, 8, 31, 12, 30, tzinfo=UTC)),
            ("2025-08-31T12:30:00.000000Z", datetime(2025, 8, 31, 12, 30, tzinfo=UTC)),
            ("2025-08-31 12:30:00", datetime(2025, 8, 31, 12, 30, tzinfo=UTC)),
            ("2025/08/31 12:30", datetime(2025, 8, 31, 12, 30, tzinfo=UTC)),
            ("2025-08-31", datetime(2025, 8, 31, tzinfo=UTC)),
        ],
    )
    def test_parse_timestamp_formats(self, text: str, expected: datetime) -> None:
        assert parse_timestamp(text) == expected

    def test_parse_timestamp_rejects_garbage(self) -> None:
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("  ") is None


# ------------------------------------------------------------------
# Spots and photos
# ------------------------------------------------------------------


class TestSpot:
    def test_coordinates_from_string_ido_keido(self) -> None:
        spot = Spot.model_validate({"id": 1, "spot_name": "Cafe", "ido": "35.68", "keido": "139.76", "evaluation": 4})

        assert spot.latitude == pytest.approx(35.68)
        assert spot.longitude == pytest.approx(139.76)
        assert spot.evaluation == "4"
        assert spot.raw["ido"] == "35.68"

    def test_alternative_coordinate_keys(self) -> None:
        spot = Spot.model_validate({"id": 2, "lat": 1.5, "lng": 2.5})
        assert (spot.latitude, spot.longitude) == (1.5, 2.5)

    def test_missing_coordinates_fail(self) -> None:
        with pytest.raises(ValidationError):
            Spot.model_validate({"id": 3, "ido": "north"})

    def test_nested_lists_tolerate_junk(self) -> None:
        spot = Spot.model_validate(
            {
                "id": 4,
                "ido": 0,
                "keido": 0,
                "photos": [{"id": 1, "photo_path": "photo/a.jpg"}, "junk", {"id": 2, "photo_path": ""}],
                "posts": None,
            }
        )

        assert [p.id for p in spot.photos] == [1, 2]
        assert spot.photo_paths == ["photo/a.jpg"]
        assert spot.posts == []

    @pytest.mark.parametrize(
        "payload",
        [
            {"id": 1, "photo_path": "photo\\a.jpg"},
            {"id": 1, "photo_path": "", "url": " photo/a.jpg "},
            {"id": 1, "photoURL": "photo/a.jpg"},
            {"id": 1, "src": "photo/a.jpg"},
        ],
    )
    def test_photo_path_fallback_keys(self, payload: dict[str, object]) -> None:
        assert Photo.model_validate(payload).photo_path == "photo/a.jpg"


# ------------------------------------------------------------------
# Posts
# ------------------------------------------------------------------


class TestPost:
    def test_alternative_keys(self) -> None:
        post = Post.model_validate(
            {"id": "9", "user_name": "taro", "comment": "Great view", "stars": "５", "createdAt": "2025-01-02 03:04:05"}
        )

        assert post.id == 9
        assert post.author_name == "taro"
        assert post.text == "Great view"
        assert post.rating == 5
        assert post.created_at == datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_author_falls_back_to_nested_user_then_anonymous(self) -> None:
        assert Post.model_validate({"content": "x", "user": {"nickname": "hana"}}).author_name == "hana"
        assert Post.model_validate({"content": "x", "author": "  "}).author_name == "anonymous"

    def test_display_rating_is_clamped(self) -> None:
        assert Post.model_validate({"rating": 9}).display_rating == 5
        assert Post.model_validate({"rating": -2}).display_rating == 0
        assert Post.model_validate({}).display_rating == 0


# ------------------------------------------------------------------
# Boards
# ------------------------------------------------------------------


class TestBoards:
    def test_paged_board_response(self) -> None:
        page = PagedResponse[Board].model_validate(
            {
                "data": [
                    {
                        "id": 1,
                        "description": "Sunset spot",
                        "location": {"name": "Kamakura", "lat": 35.3, "lng": 139.5},
                        "author": {"id": 7, "name": "Ken"},
                        "category": {"id": 2, "name": "Scenery"},
                        "created_at": "2025-05-01T10:00:00+09:00",
                        "is_favorited": True,
                    }
                ],
                "meta": {"page": 1, "per_page": 20, "total": 1},
            }
        )

        board = page.data[0]
        assert board.author.initial == "K"
        assert board.location.name == "Kamakura"
        assert board.category is not None and board.category.name == "Scenery"
        assert board.created_at is not None and board.created_at.utcoffset() is not None
        assert page.meta.total == 1

    def test_page_cursor_is_an_explicit_value(self) -> None:
        first = PageCursor.first(per_page=10)
        second = first.next()

        assert first.page == 1
        assert second.page == 2
        assert second.per_page == 10
        assert second.to_query() == {"page": "2", "per_page": "10"}
        with pytest.raises(ValidationError):
            PageCursor(page=0)

    def test_only_favorites_require_auth(self) -> None:
        assert BoardSort.FAVORITE.requires_auth
        assert not BoardSort.LATEST.requires_auth


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------


class TestRequestModels:
    def test_spot_form_duplicates_author_and_comment_fields(self) -> None:
        form = SpotForm(
            spot_name=" Cafe ",
            evaluation=4,
            latitude=35.0,
            longitude=139.0,
            user_name="taro",
            comment="nice",
            images=(UploadFile(b"x", "a.jpg"),),
        )

        assert form.text_fields() == [
            ("spot_name", "Cafe"),
            ("evaluation", "4"),
            ("ido", "35.0"),
            ("keido", "139.0"),
            ("user_name", "taro"),
            ("author", "taro"),
            ("comment", "nice"),
            ("content", "nice"),
        ]

    @pytest.mark.parametrize("kwargs", [{"spot_name": ""}, {"evaluation": 6}, {"latitude": 91.0}])
    def test_spot_form_validation(self, kwargs: dict[str, object]) -> None:
        values: dict[str, object] = {"spot_name": "Cafe", "evaluation": 3, "latitude": 0.0, "longitude": 0.0}
        values.update(kwargs)
        with pytest.raises(ValidationError):
            SpotForm(**values)  # type: ignore[arg-type]

    def test_spot_edit_fallback_paths_skip_deleted_photos(self) -> None:
        edit = SpotEdit(
            spot_id=1,
            spot_name="Cafe",
            rating=3,
            delete_photo_ids=(2,),
            existing_photos=(
                Photo(id=1, photo_path="photo/a.jpg"),
                Photo(id=2, photo_path="photo/b.jpg"),
                Photo(id=3, photo_path="photo/c.jpg"),
            ),
        )

        assert edit.fallback_paths() == ["photo/a.jpg", "photo/c.jpg"]

    def test_post_form_requires_content(self) -> None:
        with pytest.raises(ValidationError):
            PostForm(spot_id=1, content="   ")
