"""
Database abstraction for Postgres and an in-memory test implementation.

Timestamps are epoch seconds. Columns holding JSON documents that clients
may have written by hand (URL lists, tags, plan analysis, push
subscriptions) are stored as serialized text and decoded by the caller.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Type, TypeVar

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from firesafe.errors import DuplicateKeyError

R = TypeVar("R")


@dataclass
class UserRecord:
    id: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "user"
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class HouseRecord:
    id: int
    user_id: str
    owner_name: str
    property_type: str
    city: str
    district: str
    neighborhood: str
    street: str
    parcel_number: str
    phone: str
    status: str = "pending"
    building_name: Optional[str] = None
    floor_number: Optional[int] = None
    apartment_number: Optional[str] = None
    total_floors: Optional[int] = None
    elevator_available: Optional[bool] = None
    description: Optional[str] = None
    photos_urls: Optional[str] = None
    documents_urls: Optional[str] = None
    plan_url: Optional[str] = None
    plan_analysis: Optional[str] = None
    number_of_rooms: Optional[int] = None
    surface_area: Optional[float] = None
    construction_year: Optional[int] = None
    heating_type: Optional[str] = None
    sensitive_objects: Optional[str] = None
    security_notes: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class BlogPostRecord:
    id: int
    title: str
    slug: str
    author_name: str
    status: str = "draft"
    excerpt: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    author_id: Optional[str] = None
    category: Optional[str] = None
    views: int = 0
    published_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class PushTokenRecord:
    id: str
    subscription: str
    created_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class ReportRecord:
    id: str
    report_type: str
    report_data: dict
    period_start: float
    period_end: float
    created_by: Optional[str] = None
    generated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class FireStationRecord:
    id: int
    name: str
    district: str
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
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class HydrantRecord:
    id: int
    matricule: str
    city: str
    district: str
    lat: float
    lng: float
    status: str = "functional"
    flow: float = 0.0
    avenue: Optional[str] = None
    alley: Optional[str] = None
    details: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class GeoRequestRecord:
    """A request for a caller's position; the id is embedded in the link sent by SMS."""

    id: str
    phone_number: str
    status: str = "pending"
    lat: Optional[float] = None
    lng: Optional[float] = None
    accuracy: Optional[float] = None
    located_at: Optional[float] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return dataclasses.asdict(self)


def _columns(record_cls: Type) -> set[str]:
    return {f.name for f in dataclasses.fields(record_cls)}


def _clean(record_cls: Type, fields: Dict[str, Any]) -> Dict[str, Any]:
    allowed = _columns(record_cls) - {"id"}
    return {k: v for k, v in fields.items() if k in allowed}


class DbClient(Protocol):
    """Interface for database access."""

    # Users
    def create_user(self, fields: Dict[str, Any]) -> UserRecord:
        ...

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        ...

    def list_users(
        self, *, search: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> Tuple[List[UserRecord], int]:
        ...

    def count_users(
        self,
        *,
        created_after: Optional[float] = None,
        created_before: Optional[float] = None,
    ) -> int:
        ...

    # Houses
    def create_house(self, fields: Dict[str, Any]) -> HouseRecord:
        ...

    def get_house(self, house_id: int) -> Optional[HouseRecord]:
        ...

    def list_houses(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[HouseRecord], int]:
        ...

    def list_recent_houses(self, limit: int = 5) -> List[HouseRecord]:
        ...

    def list_houses_created_between(
        self, start: float, end: float
    ) -> List[HouseRecord]:
        ...

    def count_houses(
        self,
        *,
        status: Optional[str] = None,
        with_analysis: bool = False,
        created_after: Optional[float] = None,
        created_before: Optional[float] = None,
    ) -> int:
        ...

    def update_house(
        self, house_id: int, fields: Dict[str, Any]
    ) -> Optional[HouseRecord]:
        ...

    def delete_house(self, house_id: int) -> Optional[HouseRecord]:
        ...

    # Blog posts
    def create_blog_post(self, fields: Dict[str, Any]) -> BlogPostRecord:
        ...

    def get_blog_post(self, post_id: int) -> Optional[BlogPostRecord]:
        ...

    def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPostRecord]:
        ...

    def list_blog_posts(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
        order_by: str = "created_at",
    ) -> Tuple[List[BlogPostRecord], int]:
        ...

    def update_blog_post(
        self, post_id: int, fields: Dict[str, Any]
    ) -> Optional[BlogPostRecord]:
        ...

    def delete_blog_post(self, post_id: int) -> Optional[BlogPostRecord]:
        ...

    def increment_blog_post_views(
        self, slug: str, *, status: str = "published"
    ) -> Optional[BlogPostRecord]:
        ...

    # Push tokens
    def upsert_push_token(self, token_id: str, subscription: str) -> PushTokenRecord:
        ...

    def list_push_tokens(self) -> List[PushTokenRecord]:
        ...

    def delete_push_token(self, token_id: str) -> bool:
        ...

    # Reports
    def create_report(
        self,
        report_type: str,
        report_data: dict,
        period_start: float,
        period_end: float,
        created_by: Optional[str] = None,
    ) -> ReportRecord:
        ...

    def list_reports(
        self, *, limit: int = 10, offset: int = 0
    ) -> Tuple[List[ReportRecord], int]:
        ...

    def count_reports(self, *, created_after: Optional[float] = None) -> int:
        ...

    # Fire stations
    def create_fire_station(self, fields: Dict[str, Any]) -> FireStationRecord:
        ...

    def get_fire_station(self, station_id: int) -> Optional[FireStationRecord]:
        ...

    def list_fire_stations(self) -> List[FireStationRecord]:
        ...

    def update_fire_station(
        self, station_id: int, fields: Dict[str, Any]
    ) -> Optional[FireStationRecord]:
        ...

    def delete_fire_station(self, station_id: int) -> Optional[FireStationRecord]:
        ...

    # Fire hydrants
    def create_hydrant(self, fields: Dict[str, Any]) -> HydrantRecord:
        ...

    def get_hydrant(self, hydrant_id: int) -> Optional[HydrantRecord]:
        ...

    def list_hydrants(self) -> List[HydrantRecord]:
        ...

    def delete_hydrant(self, hydrant_id: int) -> Optional[HydrantRecord]:
        ...

    # Geo-location requests
    def create_geo_request(self, phone_number: str) -> GeoRequestRecord:
        ...

    def get_geo_request(self, request_id: str) -> Optional[GeoRequestRecord]:
        ...

    def list_geo_requests(self, limit: int = 20) -> List[GeoRequestRecord]:
        ...

    def locate_geo_request(
        self,
        request_id: str,
        lat: float,
        lng: float,
        accuracy: Optional[float] = None,
    ) -> Optional[GeoRequestRecord]:
        ...

    def count_geo_requests(self, *, created_after: Optional[float] = None) -> int:
        ...


def _in_window(ts: float, after: Optional[float], before: Optional[float]) -> bool:
    if after is not None and ts < after:
        return False
    if before is not None and ts >= before:
        return False
    return True


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.houses: Dict[int, HouseRecord] = {}
        self.blog_posts: Dict[int, BlogPostRecord] = {}
        self.push_tokens: Dict[str, PushTokenRecord] = {}
        self.reports: Dict[str, ReportRecord] = {}
        self.fire_stations: Dict[int, FireStationRecord] = {}
        self.hydrants: Dict[int, HydrantRecord] = {}
        self.geo_requests: Dict[str, GeoRequestRecord] = {}
        self._next_ids: Dict[str, int] = {}

    def _next_id(self, table: str) -> int:
        value = self._next_ids.get(table, 0) + 1
        self._next_ids[table] = value
        return value

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.houses.clear()
        self.blog_posts.clear()
        self.push_tokens.clear()
        self.reports.clear()
        self.fire_stations.clear()
        self.hydrants.clear()
        self.geo_requests.clear()
        self._next_ids.clear()

    @staticmethod
    def _page(items: List[R], limit: int, offset: int) -> Tuple[List[R], int]:
        return items[offset : offset + limit], len(items)

    @staticmethod
    def _apply(record: R, fields: Dict[str, Any]) -> R:
        changes = _clean(type(record), fields)
        changes.setdefault("updated_at", time.time())
        return dataclasses.replace(record, **changes)

    # Users
    def create_user(self, fields: Dict[str, Any]) -> UserRecord:
        email = fields.get("email")
        if any(u.email == email for u in self.users.values()):
            raise DuplicateKeyError("email")
        user_id = fields.get("id") or uuid.uuid4().hex
        if user_id in self.users:
            raise DuplicateKeyError("id")
        record = UserRecord(id=user_id, **_clean(UserRecord, fields))
        self.users[user_id] = record
        return record

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        return {uid: self.users[uid] for uid in set(user_ids) if uid in self.users}

    def list_users(
        self, *, search: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> Tuple[List[UserRecord], int]:
        users = sorted(self.users.values(), key=lambda u: u.created_at, reverse=True)
        if search:
            users = [
                u for u in users if _contains(u.full_name, search) or _contains(u.email, search)
            ]
        return self._page(users, limit, offset)

    def count_users(
        self,
        *,
        created_after: Optional[float] = None,
        created_before: Optional[float] = None,
    ) -> int:
        return sum(
            1
            for u in self.users.values()
            if _in_window(u.created_at, created_after, created_before)
        )

    # Houses
    def create_house(self, fields: Dict[str, Any]) -> HouseRecord:
        house_id = self._next_id("houses")
        record = HouseRecord(id=house_id, **_clean(HouseRecord, fields))
        self.houses[house_id] = record
        return record

    def get_house(self, house_id: int) -> Optional[HouseRecord]:
        return self.houses.get(house_id)

    def _sorted_houses(self) -> List[HouseRecord]:
        return sorted(
            self.houses.values(), key=lambda h: (h.created_at, h.id), reverse=True
        )

    def list_houses(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[HouseRecord], int]:
        houses = self._sorted_houses()
        if status:
            houses = [h for h in houses if h.status == status]
        if search:
            matched = []
            for h in houses:
                owner = self.users.get(h.user_id)
                if (
                    _contains(owner.full_name if owner else None, search)
                    or _contains(h.owner_name, search)
                    or _contains(h.street, search)
                    or _contains(h.city, search)
                ):
                    matched.append(h)
            houses = matched
        return self._page(houses, limit, offset)

    def list_recent_houses(self, limit: int = 5) -> List[HouseRecord]:
        return self._sorted_houses()[:limit]

    def list_houses_created_between(
        self, start: float, end: float
    ) -> List[HouseRecord]:
        return [
            h for h in self._sorted_houses() if start <= h.created_at <= end
        ]

    def count_houses(
        self,
        *,
        status: Optional[str] = None,
        with_analysis: bool = False,
        created_after: Optional[float] = None,
        created_before: Optional[float] = None,
    ) -> int:
        count = 0
        for h in self.houses.values():
            if status and h.status != status:
                continue
            if with_analysis and not h.plan_analysis:
                continue
            if not _in_window(h.created_at, created_after, created_before):
                continue
            count += 1
        return count

    def update_house(
        self, house_id: int, fields: Dict[str, Any]
    ) -> Optional[HouseRecord]:
        house = self.houses.get(house_id)
        if not house:
            return None
        updated = self._apply(house, fields)
        self.houses[house_id] = updated
        return updated

    def delete_house(self, house_id: int) -> Optional[HouseRecord]:
        return self.houses.pop(house_id, None)

    # Blog posts
    def create_blog_post(self, fields: Dict[str, Any]) -> BlogPostRecord:
        if self.get_blog_post_by_slug(fields.get("slug")):
            raise DuplicateKeyError("slug")
        post_id = self._next_id("blog_posts")
        record = BlogPostRecord(id=post_id, **_clean(BlogPostRecord, fields))
        self.blog_posts[post_id] = record
        return record

    def get_blog_post(self, post_id: int) -> Optional[BlogPostRecord]:
        return self.blog_posts.get(post_id)

    def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPostRecord]:
        for post in self.blog_posts.values():
            if post.slug == slug:
                return post
        return None

    def list_blog_posts(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
        order_by: str = "created_at",
    ) -> Tuple[List[BlogPostRecord], int]:
        posts = sorted(
            self.blog_posts.values(),
            key=lambda p: (getattr(p, order_by) or 0, p.id),
            reverse=True,
        )
        if status:
            posts = [p for p in posts if p.status == status]
        if category:
            posts = [p for p in posts if p.category == category]
        if search:
            posts = [p for p in posts if _contains(p.title, search)]
        return self._page(posts, limit, offset)

    def update_blog_post(
        self, post_id: int, fields: Dict[str, Any]
    ) -> Optional[BlogPostRecord]:
        post = self.blog_posts.get(post_id)
        if not post:
            return None
        new_slug = fields.get("slug")
        if new_slug and new_slug != post.slug:
            other = self.get_blog_post_by_slug(new_slug)
            if other and other.id != post_id:
                raise DuplicateKeyError("slug")
        updated = self._apply(post, fields)
        self.blog_posts[post_id] = updated
        return updated

    def delete_blog_post(self, post_id: int) -> Optional[BlogPostRecord]:
        return self.blog_posts.pop(post_id, None)

    def increment_blog_post_views(
        self, slug: str, *, status: str = "published"
    ) -> Optional[BlogPostRecord]:
        post = self.get_blog_post_by_slug(slug)
        if not post or post.status != status:
            return None
        post.views += 1
        return post

    # Push tokens
    def upsert_push_token(self, token_id: str, subscription: str) -> PushTokenRecord:
        existing = self.push_tokens.get(token_id)
        if existing:
            existing.subscription = subscription
            return existing
        record = PushTokenRecord(id=token_id, subscription=subscription)
        self.push_tokens[token_id] = record
        return record

    def list_push_tokens(self) -> List[PushTokenRecord]:
        return list(self.push_tokens.values())

    def delete_push_token(self, token_id: str) -> bool:
        return self.push_tokens.pop(token_id, None) is not None

    # Reports
    def create_report(
        self,
        report_type: str,
        report_data: dict,
        period_start: float,
        period_end: float,
        created_by: Optional[str] = None,
    ) -> ReportRecord:
        record = ReportRecord(
            id=uuid.uuid4().hex,
            report_type=report_type,
            report_data=report_data,
            period_start=period_start,
            period_end=period_end,
            created_by=created_by,
        )
        self.reports[record.id] = record
        return record

    def list_reports(
        self, *, limit: int = 10, offset: int = 0
    ) -> Tuple[List[ReportRecord], int]:
        reports = sorted(
            self.reports.values(), key=lambda r: r.generated_at, reverse=True
        )
        return self._page(reports, limit, offset)

    def count_reports(self, *, created_after: Optional[float] = None) -> int:
        return sum(
            1
            for r in self.reports.values()
            if _in_window(r.generated_at, created_after, None)
        )

    # Fire stations
    def create_fire_station(self, fields: Dict[str, Any]) -> FireStationRecord:
        station_id = self._next_id("fire_stations")
        record = FireStationRecord(id=station_id, **_clean(FireStationRecord, fields))
        self.fire_stations[station_id] = record
        return record

    def get_fire_station(self, station_id: int) -> Optional[FireStationRecord]:
        return self.fire_stations.get(station_id)

    def list_fire_stations(self) -> List[FireStationRecord]:
        return sorted(
            self.fire_stations.values(), key=lambda s: (s.created_at, s.id), reverse=True
        )

    def update_fire_station(
        self, station_id: int, fields: Dict[str, Any]
    ) -> Optional[FireStationRecord]:
        station = self.fire_stations.get(station_id)
        if not station:
            return None
        updated = self._apply(station, fields)
        self.fire_stations[station_id] = updated
        return updated

    def delete_fire_station(self, station_id: int) -> Optional[FireStationRecord]:
        return self.fire_stations.pop(station_id, None)

    # Fire hydrants
    def create_hydrant(self, fields: Dict[str, Any]) -> HydrantRecord:
        matricule = fields.get("matricule")
        if any(h.matricule == matricule for h in self.hydrants.values()):
            raise DuplicateKeyError("matricule")
        hydrant_id = self._next_id("fire_hydrants")
        record = HydrantRecord(id=hydrant_id, **_clean(HydrantRecord, fields))
        self.hydrants[hydrant_id] = record
        return record

    def get_hydrant(self, hydrant_id: int) -> Optional[HydrantRecord]:
        return self.hydrants.get(hydrant_id)

    def list_hydrants(self) -> List[HydrantRecord]:
        return sorted(self.hydrants.values(), key=lambda h: (h.matricule, h.id))

    def delete_hydrant(self, hydrant_id: int) -> Optional[HydrantRecord]:
        return self.hydrants.pop(hydrant_id, None)

    # Geo-location requests
    def create_geo_request(self, phone_number: str) -> GeoRequestRecord:
        record = GeoRequestRecord(id=uuid.uuid4().hex, phone_number=phone_number)
        self.geo_requests[record.id] = record
        return record

    def get_geo_request(self, request_id: str) -> Optional[GeoRequestRecord]:
        return self.geo_requests.get(request_id)

    def list_geo_requests(self, limit: int = 20) -> List[GeoRequestRecord]:
        requests = sorted(
            self.geo_requests.values(), key=lambda g: g.created_at, reverse=True
        )
        return requests[:limit]

    def locate_geo_request(
        self,
        request_id: str,
        lat: float,
        lng: float,
        accuracy: Optional[float] = None,
    ) -> Optional[GeoRequestRecord]:
        geo_request = self.geo_requests.get(request_id)
        if not geo_request:
            return None
        now = time.time()
        updated = self._apply(
            geo_request,
            {
                "status": "located",
                "lat": lat,
                "lng": lng,
                "accuracy": accuracy,
                "located_at": now,
                "updated_at": now,
            },
        )
        self.geo_requests[request_id] = updated
        return updated

    def count_geo_requests(self, *, created_after: Optional[float] = None) -> int:
        return sum(
            1
            for g in self.geo_requests.values()
            if _in_window(g.created_at, created_after, None)
        )


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_record(record_cls: Type[R], row: Any) -> R:
        return record_cls(
            **{name: getattr(row, name) for name in _columns(record_cls)}
        )

    def _insert(self, row_cls: Type, record_cls: Type[R], values: Dict[str, Any], unique: str) -> R:
        with self.Session() as session:
            row = row_cls(**values)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateKeyError(unique) from e
            session.refresh(row)
            return self._to_record(record_cls, row)

    def _get(self, row_cls: Type, record_cls: Type[R], key: Any) -> Optional[R]:
        with self.Session() as session:
            row = session.get(row_cls, key)
            return self._to_record(record_cls, row) if row else None

    def _update(
        self,
        row_cls: Type,
        record_cls: Type[R],
        key: Any,
        fields: Dict[str, Any],
        unique: str = "id",
    ) -> Optional[R]:
        with self.Session() as session:
            row = session.get(row_cls, key)
            if not row:
                return None
            changes = _clean(record_cls, fields)
            changes.setdefault("updated_at", time.time())
            for name, value in changes.items():
                setattr(row, name, value)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateKeyError(unique) from e
            session.refresh(row)
            return self._to_record(record_cls, row)

    def _delete(self, row_cls: Type, record_cls: Type[R], key: Any) -> Optional[R]:
        with self.Session() as session:
            row = session.get(row_cls, key)
            if not row:
                return None
            record = self._to_record(record_cls, row)
            session.delete(row)
            session.commit()
            return record

    def _page(
        self, session: Session, stmt, count_stmt, limit: int, offset: int
    ) -> Tuple[List[Any], int]:
        total = session.execute(count_stmt).scalar_one()
        rows = session.execute(stmt.limit(limit).offset(offset)).scalars().all()
        return rows, total

    # Users
    def create_user(self, fields: Dict[str, Any]) -> UserRecord:
        now = time.time()
        values = {"created_at": now, "updated_at": now, "role": "user"}
        values.update(_clean(UserRecord, fields))
        values["id"] = fields.get("id") or uuid.uuid4().hex
        return self._insert(UserRow, UserRecord, values, unique="email")

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._get(UserRow, UserRecord, user_id)

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        with self.Session() as session:
            rows = session.execute(select(UserRow).where(UserRow.id.in_(ids))).scalars()
            return {row.id: self._to_record(UserRecord, row) for row in rows}

    def list_users(
        self, *, search: Optional[str] = None, limit: int = 10, offset: int = 0
    ) -> Tuple[List[UserRecord], int]:
        conditions = []
        if search:
            term = f"%{search}%"
            conditions.append(
                or_(UserRow.full_name.ilike(term), UserRow.email.ilike(term))
            )
        with self.Session() as session:
            stmt = (
                select(UserRow)
                .where(*conditions)
                .order_by(UserRow.created_at.desc())
            )
            count_stmt = select(func.count()).select_from(UserRow).where(*conditions)
            rows, total = self._page(session, stmt, count_stmt, limit, offset)
            return [self._to_record(UserRecord, r) for r in rows], total

    def count_users(
        self,
        *,
        created_after: Optional[float] = None,
        created_before: Optional[float] = None,
    ) -> int:
        conditions = []
        if created_after is not None:
            conditions.append(UserRow.created_at >= created_after)
        if created_before is not None:
            conditions.append(UserRow.created_at < created_before)
        with self.Session() as session:
            stmt = select(func.count()).select_from(UserRow).where(*conditions)
            return session.execute(stmt).scalar_one()

    # Houses
    def create_house(self, fields: Dict[str, Any]) -> HouseRecord:
        now = time.time()
        values = {"created_at": now, "updated_at": now, "status": "pending"}
        values.update(_clean(HouseRecord, fields))
        return self._insert(HouseRow, HouseRecord, values, unique="id")

    def get_house(self, house_id: int) -> Optional[HouseRecord]:
        return self._get(HouseRow, HouseRecord, house_id)

    def list_houses(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Tuple[List[HouseRecord], int]:
        conditions = []
        if status:
            conditions.append(HouseRow.status == status)
        if search:
            term = f"%{search}%"
            conditions.append(
                or_(
                    UserRow.full_name.ilike(term),
                    HouseRow.owner_name.ilike(term),
                    HouseRow.street.ilike(term),
                    HouseRow.city.ilike(term),
                )
            )
        with self.Session() as session:
            stmt = (
                select(HouseRow)
                .outerjoin(UserRow, HouseRow.user_id == UserRow.id)
                .where(*conditions)
                .order_by(HouseRow.created_at.desc(), HouseRow.id.desc())
            )
            count_stmt = (
                select(func.count())
                .select_from(HouseRow)
                .outerjoin(UserRow, HouseRow.user_id == UserRow.id)
                .where(*conditions)
            )
            rows, total = self._page(session, stmt, count_stmt, limit, offset)
            return [self._to_record(HouseRecord, r) for r in rows], total

    def list_recent_houses(self, limit: int = 5) -> List[HouseRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(HouseRow)
                .order_by(HouseRow.created_at.desc(), HouseRow.id.desc())
                .limit(limit)
            ).scalars()
            return [self._to_record(HouseRecord, r) for r in rows]

    def list_houses_created_between(
        self, start: float, end: float
    ) -> List[HouseRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(HouseRow)
                .where(HouseRow.created_at >= start, HouseRow.created_at <= end)
                .order_by(HouseRow.created_at.desc())
            ).scalars()
            return [self._to_record(HouseRecord, r) for r in rows]

    def count_houses(
        self,
        *,
        status: Optional[str] = None,
        with_analysis: bool = False,
        created_after: Optional[float] = None,
        created_before: Optional[float] = None,
    ) -> int:
        conditions = []
        if status:
            conditions.append(HouseRow.status == status)
        if with_analysis:
            conditions.append(HouseRow.plan_analysis.isnot(None))
            conditions.append(HouseRow.plan_analysis != "")
        if created_after is not None:
            conditions.append(HouseRow.created_at >= created_after)
        if created_before is not None:
            conditions.append(HouseRow.created_at < created_before)
        with self.Session() as session:
            stmt = select(func.count()).select_from(HouseRow).where(*conditions)
            return session.execute(stmt).scalar_one()

    def update_house(
        self, house_id: int, fields: Dict[str, Any]
    ) -> Optional[HouseRecord]:
        return self._update(HouseRow, HouseRecord, house_id, fields)

    def delete_house(self, house_id: int) -> Optional[HouseRecord]:
        return self._delete(HouseRow, HouseRecord, house_id)

    # Blog posts
    def create_blog_post(self, fields: Dict[str, Any]) -> BlogPostRecord:
        now = time.time()
        values = {"created_at": now, "updated_at": now, "views": 0, "status": "draft"}
        values.update(_clean(BlogPostRecord, fields))
        return self._insert(BlogPostRow, BlogPostRecord, values, unique="slug")

    def get_blog_post(self, post_id: int) -> Optional[BlogPostRecord]:
        return self._get(BlogPostRow, BlogPostRecord, post_id)

    def get_blog_post_by_slug(self, slug: str) -> Optional[BlogPostRecord]:
        with self.Session() as session:
            row = session.execute(
                select(BlogPostRow).where(BlogPostRow.slug == slug).limit(1)
            ).scalar_one_or_none()
            return self._to_record(BlogPostRecord, row) if row else None

    def list_blog_posts(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
        order_by: str = "created_at",
    ) -> Tuple[List[BlogPostRecord], int]:
        conditions = []
        if status:
            conditions.append(BlogPostRow.status == status)
        if category:
            conditions.append(BlogPostRow.category == category)
        if search:
            conditions.append(BlogPostRow.title.ilike(f"%{search}%"))
        order_column = getattr(BlogPostRow, order_by)
        with self.Session() as session:
            stmt = (
                select(BlogPostRow)
                .where(*conditions)
                .order_by(order_column.desc(), BlogPostRow.id.desc())
            )
            count_stmt = select(func.count()).select_from(BlogPostRow).where(*conditions)
            rows, total = self._page(session, stmt, count_stmt, limit, offset)
            return [self._to_record(BlogPostRecord, r) for r in rows], total

    def update_blog_post(
        self, post_id: int, fields: Dict[str, Any]
    ) -> Optional[BlogPostRecord]:
        return self._update(BlogPostRow, BlogPostRecord, post_id, fields, unique="slug")

    def delete_blog_post(self, post_id: int) -> Optional[BlogPostRecord]:
        return self._delete(BlogPostRow, BlogPostRecord, post_id)

    def increment_blog_post_views(
        self, slug: str, *, status: str = "published"
    ) -> Optional[BlogPostRecord]:
        with self.Session() as session:
            result = session.execute(
                update(BlogPostRow)
                .where(BlogPostRow.slug == slug, BlogPostRow.status == status)
                .values(views=BlogPostRow.views + 1)
            )
            session.commit()
            if not result.rowcount:
                return None
        return self.get_blog_post_by_slug(slug)

    # Push tokens
    def upsert_push_token(self, token_id: str, subscription: str) -> PushTokenRecord:
        with self.Session() as session:
            row = session.get(PushTokenRow, token_id)
            if row:
                row.subscription = subscription
            else:
                row = PushTokenRow(
                    id=token_id, subscription=subscription, created_at=time.time()
                )
                session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(PushTokenRecord, row)

    def list_push_tokens(self) -> List[PushTokenRecord]:
        with self.Session() as session:
            rows = session.execute(select(PushTokenRow)).scalars()
            return [self._to_record(PushTokenRecord, r) for r in rows]

    def delete_push_token(self, token_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(
                delete(PushTokenRow).where(PushTokenRow.id == token_id)
            )
            session.commit()
            return bool(result.rowcount)

    # Reports
    def create_report(
        self,
        report_type: str,
        report_data: dict,
        period_start: float,
        period_end: float,
        created_by: Optional[str] = None,
    ) -> ReportRecord:
        values = {
            "id": uuid.uuid4().hex,
            "report_type": report_type,
            "report_data": report_data,
            "period_start": period_start,
            "period_end": period_end,
            "created_by": created_by,
            "generated_at": time.time(),
        }
        return self._insert(ReportRow, ReportRecord, values, unique="id")

    def list_reports(
        self, *, limit: int = 10, offset: int = 0
    ) -> Tuple[List[ReportRecord], int]:
        with self.Session() as session:
            stmt = select(ReportRow).order_by(ReportRow.generated_at.desc())
            count_stmt = select(func.count()).select_from(ReportRow)
            rows, total = self._page(session, stmt, count_stmt, limit, offset)
            return [self._to_record(ReportRecord, r) for r in rows], total

    def count_reports(self, *, created_after: Optional[float] = None) -> int:
        conditions = []
        if created_after is not None:
            conditions.append(ReportRow.generated_at >= created_after)
        with self.Session() as session:
            stmt = select(func.count()).select_from(ReportRow).where(*conditions)
            return session.execute(stmt).scalar_one()

    # Fire stations
    def create_fire_station(self, fields: Dict[str, Any]) -> FireStationRecord:
        now = time.time()
        values = {"created_at": now, "updated_at": now}
        values.update(_clean(FireStationRecord, fields))
        return self._insert(FireStationRow, FireStationRecord, values, unique="id")

    def get_fire_station(self, station_id: int) -> Optional[FireStationRecord]:
        return self._get(FireStationRow, FireStationRecord, station_id)

    def list_fire_stations(self) -> List[FireStationRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(FireStationRow).order_by(
                    FireStationRow.created_at.desc(), FireStationRow.id.desc()
                )
            ).scalars()
            return [self._to_record(FireStationRecord, r) for r in rows]

    def update_fire_station(
        self, station_id: int, fields: Dict[str, Any]
    ) -> Optional[FireStationRecord]:
        return self._update(FireStationRow, FireStationRecord, station_id, fields)

    def delete_fire_station(self, station_id: int) -> Optional[FireStationRecord]:
        return self._delete(FireStationRow, FireStationRecord, station_id)

    # Fire hydrants
    def create_hydrant(self, fields: Dict[str, Any]) -> HydrantRecord:
        now = time.time()
        values = {"created_at": now, "updated_at": now}
        values.update(_clean(HydrantRecord, fields))
        return self._insert(HydrantRow, HydrantRecord, values, unique="matricule")

    def get_hydrant(self, hydrant_id: int) -> Optional[HydrantRecord]:
        return self._get(HydrantRow, HydrantRecord, hydrant_id)

    def list_hydrants(self) -> List[HydrantRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(HydrantRow).order_by(HydrantRow.matricule, HydrantRow.id)
            ).scalars()
            return [self._to_record(HydrantRecord, r) for r in rows]

    def delete_hydrant(self, hydrant_id: int) -> Optional[HydrantRecord]:
        return self._delete(HydrantRow, HydrantRecord, hydrant_id)

    # Geo-location requests
    def create_geo_request(self, phone_number: str) -> GeoRequestRecord:
        now = time.time()
        values = {
            "id": uuid.uuid4().hex,
            "phone_number": phone_number,
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        return self._insert(GeoRequestRow, GeoRequestRecord, values, unique="id")

    def get_geo_request(self, request_id: str) -> Optional[GeoRequestRecord]:
        return self._get(GeoRequestRow, GeoRequestRecord, request_id)

    def list_geo_requests(self, limit: int = 20) -> List[GeoRequestRecord]:
        with self.Session() as session:
            rows = session.execute(
                select(GeoRequestRow)
                .order_by(GeoRequestRow.created_at.desc())
                .limit(limit)
            ).scalars()
            return [self._to_record(GeoRequestRecord, r) for r in rows]

    def locate_geo_request(
        self,
        request_id: str,
        lat: float,
        lng: float,
        accuracy: Optional[float] = None,
    ) -> Optional[GeoRequestRecord]:
        now = time.time()
        return self._update(
            GeoRequestRow,
            GeoRequestRecord,
            request_id,
            {
                "status": "located",
                "lat": lat,
                "lng": lng,
                "accuracy": accuracy,
                "located_at": now,
                "updated_at": now,
            },
        )

    def count_geo_requests(self, *, created_after: Optional[float] = None) -> int:
        conditions = []
        if created_after is not None:
            conditions.append(GeoRequestRow.created_at >= created_after)
        with self.Session() as session:
            stmt = select(func.count()).select_from(GeoRequestRow).where(*conditions)
            return session.execute(stmt).scalar_one()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    role = Column(String, nullable=False, default="user")
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)


class HouseRow(Base):
    __tablename__ = "houses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    owner_name = Column(String, nullable=False)
    property_type = Column(String, nullable=False)
    city = Column(String, nullable=False)
    district = Column(String, nullable=False)
    neighborhood = Column(String, nullable=False)
    street = Column(String, nullable=False)
    parcel_number = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    building_name = Column(String, nullable=True)
    floor_number = Column(Integer, nullable=True)
    apartment_number = Column(String, nullable=True)
    total_floors = Column(Integer, nullable=True)
    elevator_available = Column(Boolean, nullable=True)
    description = Column(Text, nullable=True)
    photos_urls = Column(Text, nullable=True)
    documents_urls = Column(Text, nullable=True)
    plan_url = Column(String, nullable=True)
    plan_analysis = Column(Text, nullable=True)
    number_of_rooms = Column(Integer, nullable=True)
    surface_area = Column(Float, nullable=True)
    construction_year = Column(Integer, nullable=True)
    heating_type = Column(String, nullable=True)
    sensitive_objects = Column(Text, nullable=True)
    security_notes = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)


class BlogPostRow(Base):
    __tablename__ = "blog_posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    author_id = Column(String, nullable=True)
    author_name = Column(String, nullable=False)
    category = Column(String, nullable=True, index=True)
    status = Column(String, nullable=False, default="draft", index=True)
    views = Column(Integer, nullable=False, default=0)
    published_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class PushTokenRow(Base):
    __tablename__ = "web_push_tokens"

    id = Column(String, primary_key=True)
    subscription = Column(Text, nullable=False)
    created_at = Column(Float, nullable=False)


class ReportRow(Base):
    __tablename__ = "reports"

    id = Column(String, primary_key=True)
    report_type = Column(String, nullable=False)
    report_data = Column(JSON, nullable=False)
    period_start = Column(Float, nullable=False)
    period_end = Column(Float, nullable=False)
    created_by = Column(String, nullable=True)
    generated_at = Column(Float, nullable=False, index=True)


class FireStationRow(Base):
    __tablename__ = "fire_stations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    station_type = Column(String, nullable=False, default="CS")
    status = Column(String, nullable=False, default="active")
    district = Column(String, nullable=False)
    street = Column(String, nullable=True)
    city = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    chief_name = Column(String, nullable=True)
    chief_email = Column(String, nullable=True)
    chief_whatsapp = Column(String, nullable=True)
    personnel_count = Column(Integer, nullable=False, default=0)
    daily_staff_count = Column(Integer, nullable=False, default=0)
    vehicles_count = Column(Integer, nullable=False, default=0)
    ambulance_available = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class HydrantRow(Base):
    __tablename__ = "fire_hydrants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    matricule = Column(String, nullable=False, unique=True)
    city = Column(String, nullable=False)
    district = Column(String, nullable=False)
    avenue = Column(String, nullable=True)
    alley = Column(String, nullable=True)
    details = Column(Text, nullable=True)
    flow = Column(Float, nullable=False, default=0.0)
    status = Column(String, nullable=False, default="functional")
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class GeoRequestRow(Base):
    __tablename__ = "geo_requests"

    id = Column(String, primary_key=True)
    phone_number = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    accuracy = Column(Float, nullable=True)
    located_at = Column(Float, nullable=True)
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)
