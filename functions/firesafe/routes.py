"""
Public HTTP routes: house registration, uploads, the blog, plan analysis,
reports, push subscriptions, the fire-hydrant map and caller geolocation.
"""

from __future__ import annotations

import logging
from uuid import NAMESPACE_URL, uuid4, uuid5

from fastapi import APIRouter, Depends, File, Query, UploadFile

from firesafe.config import Settings, get_settings
from firesafe.db import DbClient
from firesafe.dependencies import get_db_client, get_event_bus, get_storage_client
from firesafe.errors import (
    ConflictError,
    DuplicateKeyError,
    InvalidRequestError,
    NotFoundError,
    UpstreamError,
)
from firesafe.events import (
    GEO_REQUESTS_CHANNEL,
    HOUSES_CHANNEL,
    REPORTS_CHANNEL,
    USERS_CHANNEL,
    EventBus,
    publish_event,
)
from firesafe.plan_analysis import analyze_plan
from firesafe.push import fan_out_blog_post
from firesafe.reports import generate_report
from firesafe.schemas import (
    AnalyzePlanRequest,
    AnalyzePlanResponse,
    BlogPublishedWebhook,
    GenerateReportRequest,
    GeoLocationUpdateRequest,
    HouseCreateRequest,
    PushFanoutResponse,
    PushSubscriptionRequest,
    PushSubscriptionResponse,
    UploadResponse,
    UserCreateRequest,
    serialize_geo_request,
    serialize_house,
    serialize_hydrant,
    serialize_post,
    serialize_report,
    serialize_station,
    serialize_user,
)
from firesafe.storage import StorageClient, StorageError
from firesafe.validation import (
    clamp_limit,
    clamp_offset,
    parse_id,
    require_choice,
    require_coordinates,
    require_non_negative,
    require_text,
)
from shared.json_utils import dumps_field
from shared.types import AnalysisMode, PostStatus, PropertyType, UploadFolder

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
ALLOWED_UPLOAD_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}

HOUSE_REQUIRED_FIELDS = (
    "user_id",
    "owner_name",
    "property_type",
    "city",
    "district",
    "neighborhood",
    "street",
    "parcel_number",
    "phone",
)
HOUSE_JSON_FIELDS = ("photos_urls", "documents_urls", "sensitive_objects")
HOUSE_NUMERIC_FIELDS = (
    "floor_number",
    "total_floors",
    "number_of_rooms",
    "surface_area",
    "construction_year",
)


@router.post("/houses", status_code=201)
def create_house(
    payload: HouseCreateRequest,
    db: DbClient = Depends(get_db_client),
    bus: EventBus = Depends(get_event_bus),
):
    fields = payload.model_dump()
    for name in HOUSE_REQUIRED_FIELDS:
        fields[name] = require_text(fields[name], name, "MISSING_REQUIRED_FIELD")
    require_choice(
        fields["property_type"], [p.value for p in PropertyType], "INVALID_FIELD"
    )
    for name in HOUSE_NUMERIC_FIELDS:
        require_non_negative(fields[name], name)
    for name in HOUSE_JSON_FIELDS:
        fields[name] = dumps_field(fields[name])
    fields["status"] = "pending"

    house = db.create_house(fields)
    logger.info("House %s registered by %s", house.id, house.user_id)
    publish_event(
        bus,
        HOUSES_CHANNEL,
        "created",
        {
            "id": house.id,
            "owner_name": house.owner_name,
            "street": house.street,
            "city": house.city,
        },
    )
    return serialize_house(house, db.get_user(house.user_id))


@router.post("/uploads/{folder}", response_model=UploadResponse, status_code=201)
async def upload_file(
    folder: str,
    file: UploadFile = File(...),
    storage: StorageClient = Depends(get_storage_client),
):
    require_choice(folder, [f.value for f in UploadFolder], "INVALID_FIELD")
    content_type = (file.content_type or "").lower()
    extension = ALLOWED_UPLOAD_TYPES.get(content_type)
    if not extension:
        raise InvalidRequestError(
            f"Unsupported file type '{content_type}'", "INVALID_FILE"
        )
    data = await file.read()
    if not data:
        raise InvalidRequestError("Uploaded file is empty", "INVALID_FILE")
    if len(data) > MAX_UPLOAD_BYTES:
        raise InvalidRequestError("File exceeds the 10 MB limit", "INVALID_FILE")

    path = f"{folder}/{uuid4().hex}{extension}"
    try:
        storage.upload_bytes(path, data, content_type=content_type)
    except StorageError as e:
        raise UpstreamError(f"Upload failed: {e}") from e
    logger.info("Stored upload %s (%d bytes)", path, len(data))
    return UploadResponse(path=path, url=storage.public_url(path))


@router.get("/blog-posts")
def list_published_posts(
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    category: str | None = Query(None),
    search: str | None = Query(None),
    db: DbClient = Depends(get_db_client),
):
    posts, total = db.list_blog_posts(
        status=PostStatus.PUBLISHED.value,
        category=category,
        search=search,
        limit=clamp_limit(limit),
        offset=clamp_offset(offset),
        order_by="published_at",
    )
    return {"posts": [serialize_post(p, public=True) for p in posts], "total": total}


@router.get("/blog-posts/{slug}")
def get_published_post(slug: str, db: DbClient = Depends(get_db_client)):
    """Returns a published post and counts the view."""
    if not slug.strip():
        raise InvalidRequestError("Slug is required", "MISSING_SLUG")
    post = db.increment_blog_post_views(slug, status=PostStatus.PUBLISHED.value)
    if not post:
        raise NotFoundError("Post not found or not published", "POST_NOT_FOUND")
    return serialize_post(post, public=True)


@router.post("/analyze-plan", response_model=AnalyzePlanResponse)
def analyze_plan_endpoint(
    payload: AnalyzePlanRequest,
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
    settings: Settings = Depends(get_settings),
):
    if not payload.plan_url or payload.house_id in (None, ""):
        raise InvalidRequestError(
            "planUrl and houseId are required", "MISSING_REQUIRED_FIELD"
        )
    analysis = analyze_plan(
        plan_url=payload.plan_url,
        house_id=parse_id(payload.house_id),
        mode=AnalysisMode.parse(payload.mode),
        db=db,
        storage=storage,
        settings=settings,
        context_data=payload.context_data,
        prompt_instruction=payload.prompt_instruction,
    )
    return AnalyzePlanResponse(success=True, analysis=analysis)


@router.post("/reports/generate", status_code=201)
def generate_report_endpoint(
    payload: GenerateReportRequest,
    db: DbClient = Depends(get_db_client),
    bus: EventBus = Depends(get_event_bus),
):
    report = generate_report(
        db,
        payload.report_type,
        payload.period_start,
        payload.period_end,
        created_by=payload.created_by,
    )
    publish_event(
        bus,
        REPORTS_CHANNEL,
        "created",
        {"id": report.id, "report_type": report.report_type},
    )
    return {"success": True, "report": serialize_report(report)}


@router.post("/push/subscriptions", response_model=PushSubscriptionResponse)
def save_push_subscription(
    payload: PushSubscriptionRequest, db: DbClient = Depends(get_db_client)
):
    endpoint = payload.subscription.get("endpoint")
    if not endpoint:
        raise InvalidRequestError(
            "Subscription endpoint is required", "MISSING_REQUIRED_FIELD"
        )
    token_id = payload.id or uuid5(NAMESPACE_URL, endpoint).hex
    db.upsert_push_token(token_id, dumps_field(payload.subscription))
    return PushSubscriptionResponse(id=token_id, status="ok")


@router.post("/push/blog-published", response_model=PushFanoutResponse)
def blog_published_webhook(
    payload: BlogPublishedWebhook,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    return fan_out_blog_post(payload.record, db, settings)


@router.post("/users", status_code=201)
def create_user(
    payload: UserCreateRequest,
    db: DbClient = Depends(get_db_client),
    bus: EventBus = Depends(get_event_bus),
):
    email = require_text(payload.email, "email", "MISSING_REQUIRED_FIELD").lower()
    fields = payload.model_dump(exclude_none=True)
    fields["email"] = email
    try:
        user = db.create_user(fields)
    except DuplicateKeyError:
        raise ConflictError(
            "A user with this email already exists", "DUPLICATE_EMAIL"
        )
    publish_event(
        bus,
        USERS_CHANNEL,
        "created",
        {"id": user.id, "email": user.email, "full_name": user.full_name},
    )
    return serialize_user(user)


@router.get("/fire-stations")
def list_public_fire_stations(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    stations = [
        serialize_station(s, settings.station_staff_stale_hours)
        for s in db.list_fire_stations()
    ]
    return {"stations": stations, "total": len(stations)}


@router.get("/fire-hydrants")
def list_public_hydrants(db: DbClient = Depends(get_db_client)):
    hydrants = [serialize_hydrant(h) for h in db.list_hydrants()]
    return {"hydrants": hydrants, "total": len(hydrants)}


@router.post("/geo-requests/{request_id}/location")
def submit_victim_location(
    request_id: str,
    payload: GeoLocationUpdateRequest,
    db: DbClient = Depends(get_db_client),
    bus: EventBus = Depends(get_event_bus),
):
    """Called from the link sent by SMS with the caller's GPS position."""
    lat, lng = require_coordinates(payload.lat, payload.lng)
    require_non_negative(payload.accuracy, "accuracy")
    geo_request = db.locate_geo_request(request_id, lat, lng, payload.accuracy)
    if not geo_request:
        raise NotFoundError("Geo request not found", "NOT_FOUND")
    logger.info("Geo request %s located (accuracy %s m)", request_id, payload.accuracy)
    publish_event(
        bus,
        GEO_REQUESTS_CHANNEL,
        "located",
        {"id": geo_request.id, "phone_number": geo_request.phone_number},
    )
    return serialize_geo_request(geo_request)
