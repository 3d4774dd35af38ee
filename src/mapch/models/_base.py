"""Base model and coercion helpers for backend payloads.

Every response model inherits from :class:`MapchBaseModel` which provides:

* A ``model_validator(mode="before")`` that drops sentinel values
  (``None``, blank strings, NaN) so alias fallbacks and field defaults
  apply instead of an empty value winning.
* A ``raw`` dict that captures the original payload.

The backend has gone through several schema revisions, so most fields
accept a list of alternative keys via ``AliasChoices``; the first key
holding a meaningful value wins.
"""

from __future__ import annotations

import math
import unicodedata
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y-%m-%d",
)


def safe_float(value: Any) -> float | None:
    """Parse numbers and numeric strings; ``None`` for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    """Parse ints, including full-width digit strings (``"４"``)."""
    if isinstance(value, str):
        value = unicodedata.normalize("NFKC", value).strip()
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse the timestamp shapes the backend has been seen to send.

    ISO-8601 first, then a few fixed formats; naive results are treated as
    UTC. Unparseable input yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            else:
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _is_sentinel(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return isinstance(value, float) and math.isnan(value)


class MapchBaseModel(BaseModel):
    """Base for backend response models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _drop_sentinels(cls, values: Any) -> Any:
        """Strip sentinel values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if not _is_sentinel(value)}
        # Keep an explicitly passed raw= (kwargs construction).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
