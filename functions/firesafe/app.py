"""
FastAPI application entry point for the fire-safety service.

With the default in-memory event bus, handlers run synchronously inside the
publishing request: publishing a blog post from an admin route waits until
the push fan-out has tried every subscriber (each delivery has its own
timeout). Set REDIS_URL and run `scripts/event_listener.py` to move the
fan-out out of the request.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from firesafe import push
from firesafe.admin_routes import router as admin_router
from firesafe.config import get_settings
from firesafe.dependencies import get_db_client, get_event_bus
from firesafe.errors import FiresafeError
from firesafe.events import (
    BLOG_POSTS_CHANNEL,
    GEO_REQUESTS_CHANNEL,
    HOUSES_CHANNEL,
    REPORTS_CHANNEL,
    USERS_CHANNEL,
    Event,
    EventBus,
)
from firesafe.routes import router

logger = logging.getLogger(__name__)


def handle_blog_post_event(event: Event) -> None:
    if event.type != "published":
        return
    push.fan_out_blog_post(event.payload, get_db_client(), get_settings())


def log_event(event: Event) -> None:
    logger.info("Event %s/%s: %s", event.channel, event.type, event.payload)


def register_event_handlers(bus: EventBus) -> None:
    bus.subscribe(BLOG_POSTS_CHANNEL, handle_blog_post_event)
    for channel in (HOUSES_CHANNEL, REPORTS_CHANNEL, USERS_CHANNEL, GEO_REQUESTS_CHANNEL):
        bus.subscribe(channel, log_event)


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FiresafeError)
    async def firesafe_error_handler(request: Request, exc: FiresafeError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.as_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _format_validation_error(exc), "code": "INVALID_REQUEST"},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("%s %s error", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": f"Internal server error: {exc}",
                "code": "INTERNAL_SERVER_ERROR",
            },
        )


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Firesafe Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)
    register_event_handlers(get_event_bus())
    return app


app = create_app()
