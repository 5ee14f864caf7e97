"""
Event bus for realtime change notifications.

Each entity has a named channel. Publishers emit typed `Event`s; handlers
registered on a channel receive them. The in-memory bus dispatches
synchronously inside the publishing process, the Redis bus fans events
out over pub/sub to `listen()` loops in other processes.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

HOUSES_CHANNEL = "houses"
REPORTS_CHANNEL = "reports"
USERS_CHANNEL = "users"
BLOG_POSTS_CHANNEL = "blog_posts"
GEO_REQUESTS_CHANNEL = "geo_requests"

CHANNELS = (
    HOUSES_CHANNEL,
    REPORTS_CHANNEL,
    USERS_CHANNEL,
    BLOG_POSTS_CHANNEL,
    GEO_REQUESTS_CHANNEL,
)


@dataclass(frozen=True)
class Event:
    channel: str
    type: str
    payload: dict
    created_at: float = field(default_factory=lambda: time.time())

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Event":
        data = json.loads(raw)
        return cls(
            channel=data["channel"],
            type=data["type"],
            payload=data.get("payload") or {},
            created_at=data.get("created_at") or time.time(),
        )


EventHandler = Callable[[Event], None]


class EventBus(Protocol):
    """Minimal publish/subscribe interface."""

    def publish(self, event: Event) -> None:
        ...

    def subscribe(self, channel: str, handler: EventHandler) -> None:
        ...


def publish_event(bus: EventBus, channel: str, event_type: str, payload: dict) -> bool:
    """
    Publishes after a write has been committed. A bus outage is logged and
    reported as False; it never fails the request that made the write.
    """
    try:
        bus.publish(Event(channel=channel, type=event_type, payload=payload))
    except redis_exceptions.RedisError:
        logger.exception("Could not publish %s/%s event", channel, event_type)
        return False
    return True


def _check_channel(channel: str) -> None:
    if channel not in CHANNELS:
        raise ValueError(f"Unknown event channel: {channel}")


def _dispatch(handlers: List[EventHandler], event: Event) -> None:
    for handler in handlers:
        try:
            handler(event)
        except Exception:
            logger.exception(
                "Event handler %s failed for %s/%s",
                getattr(handler, "__name__", handler),
                event.channel,
                event.type,
            )


@dataclass
class InMemoryEventBus:
    """Dispatches events synchronously to handlers in this process."""

    handlers: Dict[str, List[EventHandler]] = field(default_factory=dict)
    published: List[Event] = field(default_factory=list)

    def subscribe(self, channel: str, handler: EventHandler) -> None:
        _check_channel(channel)
        registered = self.handlers.setdefault(channel, [])
        if handler not in registered:
            registered.append(handler)

    def publish(self, event: Event) -> None:
        _check_channel(event.channel)
        self.published.append(event)
        _dispatch(list(self.handlers.get(event.channel, [])), event)

    def reset(self) -> None:
        self.published.clear()


@dataclass
class RedisEventBus:
    """Redis pub/sub bus. Handlers run in whichever process calls listen()."""

    url: str
    channel_prefix: str = "firesafe:events"
    handlers: Dict[str, List[EventHandler]] = field(default_factory=dict)

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _key(self, channel: str) -> str:
        return f"{self.channel_prefix}:{channel}"

    def subscribe(self, channel: str, handler: EventHandler) -> None:
        _check_channel(channel)
        registered = self.handlers.setdefault(channel, [])
        if handler not in registered:
            registered.append(handler)

    def publish(self, event: Event) -> None:
        _check_channel(event.channel)
        self.client.publish(self._key(event.channel), event.to_json())

    def listen(self, *, max_events: Optional[int] = None) -> int:
        """
        Blocks and dispatches incoming events to local handlers.

        Returns the number of events dispatched once `max_events` is reached.
        """
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(*[self._key(channel) for channel in self.handlers])
        dispatched = 0
        try:
            for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = Event.from_json(message["data"])
                except (KeyError, ValueError) as e:
                    logger.warning("Dropping malformed event: %s", e)
                    continue
                _dispatch(list(self.handlers.get(event.channel, [])), event)
                dispatched += 1
                if max_events is not None and dispatched >= max_events:
                    break
        except redis_exceptions.ConnectionError:
            logger.exception("Lost connection to Redis while listening")
            raise
        finally:
            pubsub.close()
        return dispatched
