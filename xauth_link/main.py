"""FastAPI application entry-point for the XAuth Discord link service.

Serves the browser link flow, the Discord interactions webhook and a
health check.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from xauth_link import __version__
from xauth_link.config import Settings, get_settings, is_production
from xauth_link.database import create_schema, init_engine, shutdown_engine
from xauth_link.logging_config import configure_logging
from xauth_link.middleware.rate_limit import RateLimitMiddleware
from xauth_link.middleware.security import SecurityHeadersMiddleware
from xauth_link.routers import health, interactions, oauth, pages
from xauth_link.services.pending_links import LinkFlowState
from xauth_link.services.presence import PresenceBot, PresenceError
from xauth_link.services.rate_limiter import InMemoryRateLimiter

_logger = logging.getLogger(__name__)


async def _start_presence_bots(settings: Settings) -> dict[str, PresenceBot]:
    bots: dict[str, PresenceBot] = {}
    for key, community in settings.communities.items():
        if not community.discord.bot_token:
            continue
        bot = PresenceBot(community.discord.bot_token)
        try:
            await bot.start(activity=settings.presence_activity)
        except PresenceError:
            _logger.exception("Failed to initialize Discord client", extra={"community": key})
            continue
        bots[key] = bot
    return bots


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise the database and presence clients on startup, tear down on shutdown."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    _logger.info("Starting XAuth link service")

    init_engine(settings)
    if settings.auto_create_schema:
        await create_schema()

    if settings.presence_enabled:
        app.state.presence_bots.update(await _start_presence_bots(settings))

    yield

    _logger.info("Shutting down XAuth link service")
    for bot in app.state.presence_bots.values():
        await bot.close()
    app.state.presence_bots.clear()
    await shutdown_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    if settings is None:
        settings = get_settings()

    application = FastAPI(
        title="XAuth Link",
        description="Links Discord accounts to XAuth accounts and keeps linked roles in sync.",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.settings = settings
    application.state.link_flow = LinkFlowState(settings.link_state_ttl_seconds)
    application.state.presence_bots = {}
    application.state.rate_limiter = InMemoryRateLimiter(
        max_requests=settings.rate_limit_link_per_minute,
        window_seconds=60,
    )

    # -- Middleware ------------------------------------------------------------
    application.add_middleware(SecurityHeadersMiddleware)
    application.add_middleware(RateLimitMiddleware, limiter=application.state.rate_limiter)

    # -- Routers ---------------------------------------------------------------
    application.include_router(health.router)
    application.include_router(pages.router)
    application.include_router(oauth.router)
    application.include_router(interactions.router)

    # -- Exception handlers ----------------------------------------------------
    @application.exception_handler(Exception)
    async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        _logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"path": request.url.path},
        )

        content: dict[str, str] = {"detail": "Internal server error"}
        if not is_production():
            content.update(error=str(exc), type=type(exc).__name__)
        return JSONResponse(status_code=500, content=content)

    return application


app = create_app()
