"""
Admin dashboard statistics and per-session notification counts.
"""

from __future__ import annotations

import time
from typing import Dict, Optional

from firesafe.db import DbClient
from firesafe.errors import InvalidRequestError
from shared.json_utils import parse_iso, to_iso
from shared.types import HouseStatus

GROWTH_WINDOW_SECONDS = 30 * 24 * 60 * 60
RECENT_HOUSES = 5


def growth_percent(current: int, previous: int) -> float:
    """Change from the previous window, in percent, rounded to one decimal."""
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    if current > 0:
        return 100.0
    return 0.0


def _window_counts(count_fn, now: float) -> tuple[int, int]:
    current_start = now - GROWTH_WINDOW_SECONDS
    previous_start = now - 2 * GROWTH_WINDOW_SECONDS
    current = count_fn(created_after=current_start)
    previous = count_fn(created_after=previous_start, created_before=current_start)
    return current, previous


def dashboard_stats(db: DbClient, now: Optional[float] = None) -> dict:
    now = now if now is not None else time.time()

    recent = db.list_recent_houses(RECENT_HOUSES)
    owners = db.get_users(h.user_id for h in recent)
    recent_houses = []
    for house in recent:
        owner = owners.get(house.user_id)
        recent_houses.append(
            {
                "id": house.id,
                "owner_name": house.owner_name,
                "street": house.street,
                "city": house.city,
                "status": house.status,
                "created_at": to_iso(house.created_at),
                "user": {
                    "name": owner.full_name if owner else None,
                    "email": owner.email if owner else None,
                },
            }
        )

    houses_current, houses_previous = _window_counts(db.count_houses, now)
    users_current, users_previous = _window_counts(db.count_users, now)

    return {
        "totalHouses": db.count_houses(),
        "totalUsers": db.count_users(),
        "pendingHouses": db.count_houses(status=HouseStatus.PENDING.value),
        "approvedHouses": db.count_houses(status=HouseStatus.APPROVED.value),
        "housesWithAnalysis": db.count_houses(with_analysis=True),
        "recentHouses": recent_houses,
        "growth": {
            "houses": growth_percent(houses_current, houses_previous),
            "users": growth_percent(users_current, users_previous),
        },
    }


def _parse_cursor(value: Optional[str], name: str, now: float) -> float:
    if not value:
        return now
    try:
        return parse_iso(value)
    except ValueError:
        raise InvalidRequestError(f"{name} must be an ISO-8601 datetime", "INVALID_FIELD")


def notification_counts(
    db: DbClient,
    *,
    users_since: Optional[str] = None,
    houses_since: Optional[str] = None,
    reports_since: Optional[str] = None,
    geo_requests_since: Optional[str] = None,
    now: Optional[float] = None,
) -> dict:
    """
    Counts what was created after each "last checked" cursor.

    Cursors belong to the caller; a missing cursor means "checked now".
    The response echoes them with a fresh `checked_at` the caller can
    store once the notifications are read.
    """
    now = now if now is not None else time.time()
    cursors: Dict[str, float] = {
        "users": _parse_cursor(users_since, "users_since", now),
        "houses": _parse_cursor(houses_since, "houses_since", now),
        "reports": _parse_cursor(reports_since, "reports_since", now),
        "geoRequests": _parse_cursor(geo_requests_since, "geo_requests_since", now),
    }
    counts = {
        "newUsers": db.count_users(created_after=cursors["users"]),
        "newHouses": db.count_houses(created_after=cursors["houses"]),
        "newReports": db.count_reports(created_after=cursors["reports"]),
        "newGeoRequests": db.count_geo_requests(created_after=cursors["geoRequests"]),
    }
    return {
        "counts": counts,
        "total": sum(counts.values()),
        "cursors": {name: to_iso(ts) for name, ts in cursors.items()},
        "checked_at": to_iso(now),
    }
