"""
Pydantic schemas and response serializers for the FastAPI service.

Request fields that carry a domain error code (MISSING_TITLE, INVALID_SLUG_FORMAT,
...) are declared optional here and checked in the route handlers so the
client gets the dedicated code instead of a generic validation error.
"""

from __future__ import annotations

import time
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from firesafe.db import (
    BlogPostRecord,
    FireStationRecord,
    GeoRequestRecord,
    HydrantRecord,
    HouseRecord,
    ReportRecord,
    UserRecord,
)
from shared.json_utils import parse_json_field, to_iso


class HouseCreateRequest(BaseModel):
    user_id: Optional[str] = None
    owner_name: Optional[str] = None
    property_type: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    neighborhood: Optional[str] = None
    street: Optional[str] = None
    parcel_number: Optional[str] = None
    phone: Optional[str] = None
    building_name: Optional[str] = None
    floor_number: Optional[int] = None
    apartment_number: Optional[str] = None
    total_floors: Optional[int] = None
    elevator_available: Optional[bool] = None
    description: Optional[str] = None
    photos_urls: list[str] = Field(default_factory=list)
    documents_urls: list[str] = Field(default_factory=list)
    plan_url: Optional[str] = None
    number_of_rooms: Optional[int] = None
    surface_area: Optional[float] = None
    construction_year: Optional[int] = None
    heating_type: Optional[str] = None
    sensitive_objects: list[str] = Field(default_factory=list)
    security_notes: Optional[str] = None


class HouseStatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class BlogPostCreateRequest(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    author_name: Optional[str] = None
    author_id: Optional[str] = None


class BlogPostUpdateRequest(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    author_name: Optional[str] = None


class AnalyzePlanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_url: Optional[str] = Field(default=None, alias="planUrl")
    house_id: Optional[Union[int, str]] = Field(default=None, alias="houseId")
    mode: Optional[str] = None
    context_data: Optional[Any] = Field(default=None, alias="contextData")
    prompt_instruction: Optional[str] = Field(default=None, alias="promptInstruction")


class AnalyzePlanResponse(BaseModel):
    success: bool
    analysis: dict


class GenerateReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    report_type: Optional[str] = Field(default=None, alias="reportType")
    period_start: Optional[str] = Field(default=None, alias="periodStart")
    period_end: Optional[str] = Field(default=None, alias="periodEnd")
    created_by: Optional[str] = Field(default=None, alias="createdBy")


class PushSubscriptionRequest(BaseModel):
    id: Optional[str] = None
    subscription: dict


class PushSubscriptionResponse(BaseModel):
    id: str
    status: Literal["ok"]


class BlogPublishedWebhook(BaseModel):
    type: Optional[str] = None
    table: Optional[str] = None
    record: Optional[dict] = None
    old_record: Optional[dict] = None


class PushFanoutResponse(BaseModel):
    success: bool
    sent: int
    skipped: bool = False
    message: Optional[str] = None


class UserCreateRequest(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: Literal["user", "admin"] = "user"


class FireStationCreateRequest(BaseModel):
    name: Optional[str] = None
    district: Optional[str] = None
    station_type: str = "CS"
    status: str = "active"
    street: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    chief_name: Optional[str] = None
    chief_email: Optional[str] = None
    chief_whatsapp: Optional[str] = None
    personnel_count: int = 0
    daily_staff_count: int = 0
    vehicles_count: int = 0
    ambulance_available: bool = False


class FireStationUpdateRequest(BaseModel):
    name: Optional[str] = None
    district: Optional[str] = None
    station_type: Optional[str] = None
    status: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    chief_name: Optional[str] = None
    chief_email: Optional[str] = None
    chief_whatsapp: Optional[str] = None
    personnel_count: Optional[int] = None
    daily_staff_count: Optional[int] = None
    vehicles_count: Optional[int] = None
    ambulance_available: Optional[bool] = None


class DailyStaffUpdateRequest(BaseModel):
    daily_staff_count: Optional[int] = None


class HydrantCreateRequest(BaseModel):
    matricule: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: str = "functional"
    flow: Optional[float] = None
    avenue: Optional[str] = None
    alley: Optional[str] = None
    details: Optional[str] = None


class GeoRequestCreateRequest(BaseModel):
    phone_number: Optional[str] = None


class GeoLocationUpdateRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None
    accuracy: Optional[float] = None


class UploadResponse(BaseModel):
    path: str
    url: str


def serialize_user(user: Optional[UserRecord]) -> Optional[dict]:
    if not user:
        return None
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "phone": user.phone,
        "role": user.role,
        "created_at": to_iso(user.created_at),
    }


def serialize_house(house: HouseRecord, owner: Optional[UserRecord] = None) -> dict:
    """
    Decodes the JSON text columns one by one; a malformed column falls back
    to an empty list (or null for the analysis) instead of failing.
    """
    data = house.as_dict()
    data["photos_urls"] = parse_json_field(
        house.photos_urls, [], "photos_urls", expected=list
    )
    data["documents_urls"] = parse_json_field(
        house.documents_urls, [], "documents_urls", expected=list
    )
    data["sensitive_objects"] = parse_json_field(
        house.sensitive_objects, [], "sensitive_objects", expected=list
    )
    data["plan_analysis"] = parse_json_field(
        house.plan_analysis, None, "plan_analysis", expected=dict
    )
    data["created_at"] = to_iso(house.created_at)
    data["updated_at"] = to_iso(house.updated_at)
    data["user"] = serialize_user(owner)
    return data


def serialize_post(post: BlogPostRecord, public: bool = False) -> dict:
    data = post.as_dict()
    data["published_at"] = to_iso(post.published_at)
    data["created_at"] = to_iso(post.created_at)
    data["updated_at"] = to_iso(post.updated_at)
    if public:
        data.pop("author_id", None)
        data.pop("updated_at", None)
        data.pop("status", None)
    return data


def serialize_report(report: ReportRecord) -> dict:
    data = report.as_dict()
    data["period_start"] = to_iso(report.period_start)
    data["period_end"] = to_iso(report.period_end)
    data["generated_at"] = to_iso(report.generated_at)
    return data


def serialize_station(
    station: FireStationRecord, stale_hours: float, now: Optional[float] = None
) -> dict:
    now = now if now is not None else time.time()
    data = station.as_dict()
    data["is_stale"] = now - station.updated_at > stale_hours * 3600
    data["created_at"] = to_iso(station.created_at)
    data["updated_at"] = to_iso(station.updated_at)
    return data


def serialize_hydrant(hydrant: HydrantRecord) -> dict:
    data = hydrant.as_dict()
    data["created_at"] = to_iso(hydrant.created_at)
    data["updated_at"] = to_iso(hydrant.updated_at)
    return data


def serialize_geo_request(geo_request: GeoRequestRecord) -> dict:
    data = geo_request.as_dict()
    data["located_at"] = to_iso(geo_request.located_at)
    data["created_at"] = to_iso(geo_request.created_at)
    data["updated_at"] = to_iso(geo_request.updated_at)
    return data
