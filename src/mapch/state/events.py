"""Events published on the :class:`~mapch.state.bus.EventBus`.

Each event kind is its own class; subscribers register per class.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MapchEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class SpotEvent(MapchEvent):
    spot_id: int | None = None


class SpotCreated(SpotEvent):
    pass


class SpotUpdated(SpotEvent):
    pass


class SpotDeleted(SpotEvent):
    pass


class SpotPhotosUpdated(SpotEvent):
    photo_paths: tuple[str, ...] = ()


class SpotsLoaded(MapchEvent):
    """A viewport fetch published a new result set."""

    generation: int
    count: int


class SessionChanged(MapchEvent):
    authenticated: bool
    principal_id: str | None = None
    reason: str = ""
