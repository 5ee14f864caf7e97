"""
Request validation helpers shared by the route modules.
"""

from __future__ import annotations

import re
from typing import Iterable

from firesafe.errors import InvalidRequestError

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def is_valid_slug(slug: str) -> bool:
    return bool(SLUG_PATTERN.match(slug))


def parse_id(raw: str | int | None) -> int:
    """Parses a numeric path id, raising INVALID_ID on anything else."""
    if isinstance(raw, bool):
        raise InvalidRequestError("Valid ID is required", "INVALID_ID")
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidRequestError("Valid ID is required", "INVALID_ID")


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(limit, MAX_PAGE_SIZE))


def clamp_offset(offset: int | None) -> int:
    return max(0, offset or 0)


def require_text(value: str | None, field: str, code: str) -> str:
    if value is None or not str(value).strip():
        label = field.replace("_", " ").capitalize()
        raise InvalidRequestError(f"{label} is required", code)
    return str(value).strip()


def require_choice(value: str, choices: Iterable[str], code: str = "INVALID_STATUS") -> str:
    allowed = list(choices)
    if value not in allowed:
        raise InvalidRequestError(
            f"Invalid value '{value}'. Must be one of: {', '.join(allowed)}", code
        )
    return value


def require_non_negative(value: int | float | None, field: str) -> None:
    if value is not None and value < 0:
        raise InvalidRequestError(f"{field} must not be negative", "INVALID_FIELD")


def require_coordinates(lat: float | None, lng: float | None) -> tuple[float, float]:
    """Checks a WGS84 position; both parts are required."""
    if lat is None or lng is None:
        raise InvalidRequestError("lat and lng are required", "MISSING_REQUIRED_FIELD")
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise InvalidRequestError("Coordinates are out of range", "INVALID_FIELD")
    return lat, lng
