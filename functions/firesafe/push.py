"""
Web push fan-out for newly published blog posts.

Every stored subscription gets one delivery attempt. Deliveries run in a
thread pool and are all awaited; a failing subscriber never aborts the
batch. Subscriptions the push service reports as gone (404/410) are
deleted, other failures are logged and the subscription is kept.
"""

from __future__ import annotations

import concurrent.futures
import json
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from py_vapid import Vapid
from pywebpush import WebPushException, webpush

from firesafe.config import Settings
from firesafe.db import DbClient, PushTokenRecord
from firesafe.errors import ConfigurationError
from shared.json_utils import parse_json_field
from shared.types import PostStatus

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
NOTIFICATION_TTL = 4 * 7 * 24 * 60 * 60
GONE_STATUS_CODES = (404, 410)

DEFAULT_BODY = "Venez lire la suite sur l'application !"
ICON_PATH = "/icon-192x192.png"
BADGE_PATH = "/badge-72x72.png"


@dataclass(frozen=True)
class VapidCredentials:
    key: Vapid
    subject: str

    def claims(self) -> dict:
        # webpush() fills in aud/exp on the dict it is given.
        return {"sub": self.subject}


@dataclass(frozen=True)
class DeliveryResult:
    token_id: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def gone(self) -> bool:
        return self.status_code in GONE_STATUS_CODES


def load_vapid_credentials(settings: Settings) -> VapidCredentials:
    if not settings.vapid_public_key or not settings.vapid_private_key:
        raise ConfigurationError("VAPID keys are not configured")
    try:
        key = Vapid.from_string(private_key=settings.vapid_private_key)
    except (ValueError, TypeError) as e:
        logger.error("VAPID configuration error: %s", e)
        raise ConfigurationError(
            "Invalid VAPID configuration. Check the key secrets."
        ) from e
    return VapidCredentials(key=key, subject=settings.vapid_subject)


def build_notification(record: dict) -> dict:
    return {
        "title": f"🔥 Nouvel article : {record.get('title') or ''}",
        "body": record.get("excerpt") or DEFAULT_BODY,
        "url": f"/blog/{record.get('slug') or ''}",
        "icon": ICON_PATH,
        "badge": BADGE_PATH,
    }


def send_to_subscription(
    token: PushTokenRecord, payload: str, credentials: VapidCredentials
) -> DeliveryResult:
    subscription = parse_json_field(token.subscription, None, "subscription")
    if not isinstance(subscription, dict) or not subscription.get("endpoint"):
        return DeliveryResult(token.id, False, error="Malformed subscription")
    try:
        webpush(
            subscription_info=subscription,
            data=payload,
            vapid_private_key=credentials.key,
            vapid_claims=credentials.claims(),
            ttl=NOTIFICATION_TTL,
            timeout=REQUEST_TIMEOUT,
        )
    except WebPushException as e:
        status_code = e.response.status_code if e.response is not None else None
        return DeliveryResult(token.id, False, status_code, str(e))
    except (requests.RequestException, ValueError, TypeError) as e:
        return DeliveryResult(token.id, False, error=str(e))
    return DeliveryResult(token.id, True)


def fan_out_blog_post(record: Optional[dict], db: DbClient, settings: Settings) -> dict:
    """
    Sends the "new article" notification for a blog post record.

    Returns:
        dict: `{"success", "sent"}` plus `skipped`/`message` when nothing was sent.

    Raises:
        ConfigurationError: if the VAPID keys are missing or unusable.
    """
    logger.info(
        "Push webhook received. Title: %r, status: %r",
        (record or {}).get("title"),
        (record or {}).get("status"),
    )
    if not record or record.get("status") != PostStatus.PUBLISHED.value:
        logger.info("Post not published, skipping push")
        return {
            "success": True,
            "sent": 0,
            "skipped": True,
            "message": "Skipped: Not published",
        }

    credentials = load_vapid_credentials(settings)

    tokens = db.list_push_tokens()
    if not tokens:
        return {"success": True, "sent": 0, "message": "No subscribers."}

    payload = json.dumps(build_notification(record), ensure_ascii=False)
    logger.info("Sending push to %d subscribers", len(tokens))

    results: list[DeliveryResult] = []
    max_workers = min(len(tokens), settings.push_max_workers)
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(send_to_subscription, token, payload, credentials): token
            for token in tokens
        }
        for future in concurrent.futures.as_completed(futures):
            token = futures[future]
            try:
                results.append(future.result())
            except Exception as e:
                logger.exception("Unexpected push failure for token %s", token.id)
                results.append(DeliveryResult(token.id, False, error=str(e)))

    sent = 0
    for result in results:
        if result.ok:
            sent += 1
        elif result.gone:
            logger.info("Token %s is gone (%s), deleting", result.token_id, result.status_code)
            db.delete_push_token(result.token_id)
        else:
            logger.error("Push delivery to %s failed: %s", result.token_id, result.error)

    logger.info("Push fan-out done: %d/%d delivered", sent, len(tokens))
    return {"success": True, "sent": sent}
