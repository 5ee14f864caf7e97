"""
Admin HTTP routes: house review, blog management, users, fire stations,
fire hydrants, geolocation requests, reports, dashboard statistics and
notification counts.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, Query

from firesafe.config import Settings, get_settings
from firesafe.db import BlogPostRecord, DbClient
from firesafe.dependencies import get_db_client, get_event_bus
from firesafe.errors import ConflictError, DuplicateKeyError, InvalidRequestError, NotFoundError
from firesafe.events import (
    BLOG_POSTS_CHANNEL,
    GEO_REQUESTS_CHANNEL,
    EventBus,
    publish_event,
)
from firesafe.schemas import (
    BlogPostCreateRequest,
    BlogPostUpdateRequest,
    DailyStaffUpdateRequest,
    FireStationCreateRequest,
    FireStationUpdateRequest,
    GeoRequestCreateRequest,
    HouseStatusUpdateRequest,
    HydrantCreateRequest,
    serialize_geo_request,
    serialize_house,
    serialize_hydrant,
    serialize_post,
    serialize_report,
    serialize_station,
    serialize_user,
)
from firesafe.stats import dashboard_stats, notification_counts
from firesafe.validation import (
    clamp_limit,
    clamp_offset,
    is_valid_slug,
    parse_id,
    require_choice,
    require_coordinates,
    require_non_negative,
    require_text,
)
from shared.types import HouseStatus, HydrantStatus, PostStatus, StationStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")

HOUSE_STATUSES = [s.value for s in HouseStatus]
POST_STATUSES = [s.value for s in PostStatus]
STATION_STATUSES = [s.value for s in StationStatus]
HYDRANT_STATUSES = [s.value for s in HydrantStatus]
GEO_REQUEST_PAGE_SIZE = 20
STATION_COUNT_FIELDS = ("personnel_count", "daily_staff_count", "vehicles_count")


def _duplicate_slug() -> ConflictError:
    return ConflictError("A blog post with this slug already exists", "DUPLICATE_SLUG")


def _post_not_found() -> NotFoundError:
    return NotFoundError("Blog post not found", "NOT_FOUND")


def _publish_post(bus: EventBus, post: BlogPostRecord) -> None:
    publish_event(
        bus,
        BLOG_POSTS_CHANNEL,
        "published",
        {
            "id": post.id,
            "status": post.status,
            "title": post.title,
            "excerpt": post.excerpt,
            "slug": post.slug,
        },
    )


# Houses


@router.get("/houses")
def list_houses(
    status: str | None = Query(None),
    search: str | None = Query(None),
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    houses, total = db.list_houses(
        status=status if status in HOUSE_STATUSES else None,
        search=search,
        limit=clamp_limit(limit),
        offset=clamp_offset(offset),
    )
    owners = db.get_users(h.user_id for h in houses)
    return {
        "houses": [serialize_house(h, owners.get(h.user_id)) for h in houses],
        "total": total,
    }


@router.get("/houses/{house_id}")
def get_house(house_id: str, db: DbClient = Depends(get_db_client)):
    house = db.get_house(parse_id(house_id))
    if not house:
        raise NotFoundError("House not found", "NOT_FOUND")
    return serialize_house(house, db.get_user(house.user_id))


@router.patch("/houses/{house_id}")
def update_house_status(
    house_id: str,
    payload: HouseStatusUpdateRequest,
    db: DbClient = Depends(get_db_client),
):
    """Approve or reject a registration. Status changes only happen here."""
    parsed_id = parse_id(house_id)
    if not payload.status:
        raise InvalidRequestError("Status is required", "MISSING_REQUIRED_FIELD")
    require_choice(payload.status, HOUSE_STATUSES, "INVALID_STATUS")
    house = db.update_house(parsed_id, {"status": payload.status})
    if not house:
        raise NotFoundError("House not found", "NOT_FOUND")
    logger.info("House %s marked %s", parsed_id, payload.status)
    return serialize_house(house, db.get_user(house.user_id))


@router.delete("/houses/{house_id}")
def delete_house(house_id: str, db: DbClient = Depends(get_db_client)):
    parsed_id = parse_id(house_id)
    house = db.delete_house(parsed_id)
    if not house:
        raise NotFoundError("House not found", "NOT_FOUND")
    return {
        "message": "House deleted successfully",
        "id": parsed_id,
        "house": serialize_house(house),
    }


# Blog posts


@router.get("/blog-posts")
def list_blog_posts(
    status: str | None = Query(None),
    category: str | None = Query(None),
    search: str | None = Query(None),
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    posts, total = db.list_blog_posts(
        status=status,
        category=category,
        search=search,
        limit=clamp_limit(limit),
        offset=clamp_offset(offset),
    )
    return {"posts": [serialize_post(p) for p in posts], "total": total}


@router.post("/blog-posts", status_code=201)
def create_blog_post(
    payload: BlogPostCreateRequest,
    db: DbClient = Depends(get_db_client),
    bus: EventBus = Depends(get_event_bus),
):
    title = require_text(payload.title, "title", "MISSING_TITLE")
    slug = require_text(payload.slug, "slug", "MISSING_SLUG").lower()
    author_name = require_text(payload.author_name, "author_name", "MISSING_AUTHOR_NAME")
    if not is_valid_slug(slug):
        raise InvalidRequestError(
            "Slug must contain only lowercase letters, numbers, and hyphens",
            "INVALID_SLUG_FORMAT",
        )
    status = payload.status or PostStatus.DRAFT.value
    require_choice(status, POST_STATUSES, "INVALID_STATUS")
    if db.get_blog_post_by_slug(slug):
        raise _duplicate_slug()

    now = time.time()
    fields = {
        "title": title,
        "slug": slug,
        "author_name": author_name,
        "author_id": payload.author_id,
        "status": status,
        "views": 0,
        "excerpt": payload.excerpt,
        "content": payload.content,
        "image_url": payload.image_url,
        "category": payload.category,
        "published_at": now if status == PostStatus.PUBLISHED.value else None,
        "created_at": now,
        "updated_at": now,
    }
    try:
        post = db.create_blog_post(fields)
    except DuplicateKeyError:
        raise _duplicate_slug()

    if post.status == PostStatus.PUBLISHED.value:
        _publish_post(bus, post)
    return serialize_post(post)


@router.patch("/blog-posts/{post_id}")
def update_blog_post(
    post_id: str,
    payload: BlogPostUpdateRequest,
    db: DbClient = Depends(get_db_client),
    bus: EventBus = Depends(get_event_bus),
):
    parsed_id = parse_id(post_id)
    provided = payload.model_dump(exclude_unset=True)
    if provided.get("status") is not None:
        require_choice(provided["status"], POST_STATUSES, "INVALID_STATUS")

    existing = db.get_blog_post(parsed_id)
    if not existing:
        raise _post_not_found()

    updates = {}
    for name, value in provided.items():
        if value is None:
            continue
        updates[name] = value if name == "content" else value.strip()
    if "title" in updates and not updates["title"]:
        raise InvalidRequestError("Title is required", "MISSING_TITLE")
    if "author_name" in updates and not updates["author_name"]:
        raise InvalidRequestError("Author name is required", "MISSING_AUTHOR_NAME")
    if "slug" in updates:
        updates["slug"] = updates["slug"].lower()
        if not is_valid_slug(updates["slug"]):
            raise InvalidRequestError(
                "Slug must contain only lowercase letters, numbers, and hyphens",
                "INVALID_SLUG_FORMAT",
            )
        other = db.get_blog_post_by_slug(updates["slug"])
        if other and other.id != parsed_id:
            raise _duplicate_slug()

    first_publish = (
        updates.get("status") == PostStatus.PUBLISHED.value and not existing.published_at
    )
    if first_publish:
        updates["published_at"] = time.time()

    try:
        post = db.update_blog_post(parsed_id, updates)
    except DuplicateKeyError:
        raise _duplicate_slug()
    if not post:
        raise _post_not_found()

    if first_publish:
        _publish_post(bus, post)
    return serialize_post(post)


@router.delete("/blog-posts/{post_id}")
def delete_blog_post(post_id: str, db: DbClient = Depends(get_db_client)):
    parsed_id = parse_id(post_id)
    post = db.delete_blog_post(parsed_id)
    if not post:
        raise _post_not_found()
    return {
        "message": "Blog post deleted successfully",
        "id": parsed_id,
        "post": serialize_post(post),
    }


# Users


@router.get("/users")
def list_users(
    search: str | None = Query(None),
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    users, total = db.list_users(
        search=search, limit=clamp_limit(limit), offset=clamp_offset(offset)
    )
    return {"users": [serialize_user(u) for u in users], "total": total}


# Fire stations


def _check_station_counts(fields: dict) -> None:
    for name in STATION_COUNT_FIELDS:
        require_non_negative(fields.get(name), name)
    if fields["daily_staff_count"] > fields["personnel_count"]:
        raise InvalidRequestError(
            "daily_staff_count cannot exceed personnel_count", "INVALID_STAFF_COUNT"
        )


@router.get("/fire-stations")
def list_fire_stations(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    stations = [
        serialize_station(s, settings.station_staff_stale_hours)
        for s in db.list_fire_stations()
    ]
    return {"stations": stations, "total": len(stations)}


@router.post("/fire-stations", status_code=201)
def create_fire_station(
    payload: FireStationCreateRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    fields = payload.model_dump()
    fields["name"] = require_text(payload.name, "name", "MISSING_REQUIRED_FIELD")
    fields["district"] = require_text(payload.district, "district", "MISSING_REQUIRED_FIELD")
    require_choice(fields["status"], STATION_STATUSES, "INVALID_STATUS")
    _check_station_counts(fields)
    station = db.create_fire_station(fields)
    logger.info("Fire station %s created", station.id)
    return serialize_station(station, settings.station_staff_stale_hours)


@router.patch("/fire-stations/{station_id}")
def update_fire_station(
    station_id: str,
    payload: FireStationUpdateRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    parsed_id = parse_id(station_id)
    updates = payload.model_dump(exclude_none=True)
    for name in ("name", "district"):
        if name in updates:
            updates[name] = require_text(updates[name], name, "MISSING_REQUIRED_FIELD")
    if "status" in updates:
        require_choice(updates["status"], STATION_STATUSES, "INVALID_STATUS")

    existing = db.get_fire_station(parsed_id)
    if not existing:
        raise NotFoundError("Fire station not found", "NOT_FOUND")
    _check_station_counts({**existing.as_dict(), **updates})

    station = db.update_fire_station(parsed_id, updates)
    if not station:
        raise NotFoundError("Fire station not found", "NOT_FOUND")
    return serialize_station(station, settings.station_staff_stale_hours)


@router.patch("/fire-stations/{station_id}/daily-staff")
def update_daily_staff(
    station_id: str,
    payload: DailyStaffUpdateRequest,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    """Ad hoc staffing report. Refreshes `updated_at`, which clears `is_stale`."""
    parsed_id = parse_id(station_id)
    if payload.daily_staff_count is None:
        raise InvalidRequestError(
            "daily_staff_count is required", "MISSING_REQUIRED_FIELD"
        )
    existing = db.get_fire_station(parsed_id)
    if not existing:
        raise NotFoundError("Fire station not found", "NOT_FOUND")
    _check_station_counts(
        {**existing.as_dict(), "daily_staff_count": payload.daily_staff_count}
    )
    station = db.update_fire_station(
        parsed_id, {"daily_staff_count": payload.daily_staff_count}
    )
    if not station:
        raise NotFoundError("Fire station not found", "NOT_FOUND")
    logger.info(
        "Fire station %s reports %d staff on duty", parsed_id, station.daily_staff_count
    )
    return serialize_station(station, settings.station_staff_stale_hours)


@router.delete("/fire-stations/{station_id}")
def delete_fire_station(station_id: str, db: DbClient = Depends(get_db_client)):
    parsed_id = parse_id(station_id)
    station = db.delete_fire_station(parsed_id)
    if not station:
        raise NotFoundError("Fire station not found", "NOT_FOUND")
    return {"message": "Fire station deleted successfully", "id": parsed_id}


# Fire hydrants


@router.get("/fire-hydrants")
def list_hydrants(db: DbClient = Depends(get_db_client)):
    hydrants = [serialize_hydrant(h) for h in db.list_hydrants()]
    return {"hydrants": hydrants, "total": len(hydrants)}


@router.post("/fire-hydrants", status_code=201)
def create_hydrant(payload: HydrantCreateRequest, db: DbClient = Depends(get_db_client)):
    lat, lng = require_coordinates(payload.lat, payload.lng)
    require_choice(payload.status, HYDRANT_STATUSES, "INVALID_STATUS")
    require_non_negative(payload.flow, "flow")
    fields = {
        "matricule": require_text(payload.matricule, "matricule", "MISSING_REQUIRED_FIELD"),
        "city": require_text(payload.city, "city", "MISSING_REQUIRED_FIELD"),
        "district": require_text(payload.district, "district", "MISSING_REQUIRED_FIELD"),
        "lat": lat,
        "lng": lng,
        "status": payload.status,
        "flow": payload.flow or 0.0,
        "avenue": (payload.avenue or "").strip() or None,
        "alley": (payload.alley or "").strip() or None,
        "details": (payload.details or "").strip() or None,
    }
    try:
        hydrant = db.create_hydrant(fields)
    except DuplicateKeyError:
        raise ConflictError(
            "A hydrant with this matricule already exists", "DUPLICATE_MATRICULE"
        )
    logger.info("Hydrant %s (%s) created", hydrant.id, hydrant.matricule)
    return serialize_hydrant(hydrant)


@router.delete("/fire-hydrants/{hydrant_id}")
def delete_hydrant(hydrant_id: str, db: DbClient = Depends(get_db_client)):
    parsed_id = parse_id(hydrant_id)
    if not db.delete_hydrant(parsed_id):
        raise NotFoundError("Hydrant not found", "NOT_FOUND")
    return {"message": "Hydrant deleted successfully", "id": parsed_id}


# Geolocation requests


@router.post("/geo-requests", status_code=201)
def create_geo_request(
    payload: GeoRequestCreateRequest,
    db: DbClient = Depends(get_db_client),
    bus: EventBus = Depends(get_event_bus),
):
    """
    Opens a pending request for a caller's position. The returned id goes
    into the link texted to the caller, who answers through
    `POST /geo-requests/{id}/location`.
    """
    phone_number = require_text(
        payload.phone_number, "phone_number", "MISSING_REQUIRED_FIELD"
    )
    geo_request = db.create_geo_request(phone_number)
    publish_event(
        bus,
        GEO_REQUESTS_CHANNEL,
        "created",
        {"id": geo_request.id, "phone_number": geo_request.phone_number},
    )
    return serialize_geo_request(geo_request)


@router.get("/geo-requests")
def list_geo_requests(
    limit: int | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    geo_requests = db.list_geo_requests(
        clamp_limit(limit if limit is not None else GEO_REQUEST_PAGE_SIZE)
    )
    return {"requests": [serialize_geo_request(g) for g in geo_requests]}


@router.get("/geo-requests/{request_id}")
def get_geo_request(request_id: str, db: DbClient = Depends(get_db_client)):
    geo_request = db.get_geo_request(request_id)
    if not geo_request:
        raise NotFoundError("Geo request not found", "NOT_FOUND")
    return serialize_geo_request(geo_request)


# Reports, dashboard and notifications


@router.get("/reports")
def list_reports(
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    reports, total = db.list_reports(
        limit=clamp_limit(limit), offset=clamp_offset(offset)
    )
    return {"reports": [serialize_report(r) for r in reports], "total": total}


@router.get("/dashboard/stats")
def get_dashboard_stats(db: DbClient = Depends(get_db_client)):
    return dashboard_stats(db)


@router.get("/notifications")
def get_notifications(
    users_since: str | None = Query(None),
    houses_since: str | None = Query(None),
    reports_since: str | None = Query(None),
    geo_requests_since: str | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    return notification_counts(
        db,
        users_since=users_since,
        houses_since=houses_since,
        reports_since=reports_since,
        geo_requests_since=geo_requests_since,
    )
