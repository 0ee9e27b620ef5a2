"""Dispatch of verified Discord interactions.

The handler returns the synchronous interaction response plus, for commands
that must answer within Discord's three-second window, a follow-up coroutine
the caller schedules after the response has been sent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Awaitable, Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.config import CommunityConfig
from xauth_link.database import session_scope
from xauth_link.i18n import language_from_locale, t
from xauth_link.services import discord_api, link_store, metadata_sync
from xauth_link.services.discord_api import EPHEMERAL, DiscordAPIError
from xauth_link.services.link_store import LinkNotFoundError
from xauth_link.services.presence import PresenceBot, PresenceError

logger = logging.getLogger(__name__)


class InteractionType(IntEnum):
    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    APPLICATION_COMMAND_AUTOCOMPLETE = 4
    MODAL_SUBMIT = 5


class ResponseType(IntEnum):
    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE = 5


FollowUp = Callable[[], Awaitable[None]]


@dataclass
class InteractionResult:
    response: dict[str, Any]
    follow_up: FollowUp | None = None


@dataclass
class InteractionContext:
    interaction: dict[str, Any]
    site: str
    community: CommunityConfig
    lang: str
    session: AsyncSession
    presence: PresenceBot | None = None

    @property
    def application_id(self) -> str:
        return str(self.interaction.get("application_id", ""))

    @property
    def token(self) -> str:
        return str(self.interaction.get("token", ""))

    @property
    def command_name(self) -> str:
        return str((self.interaction.get("data") or {}).get("name", ""))

    @property
    def user_id(self) -> str | None:
        member_user = (self.interaction.get("member") or {}).get("user") or {}
        user = member_user or self.interaction.get("user") or {}
        return user.get("id")

    def option(self, name: str) -> Any:
        for opt in (self.interaction.get("data") or {}).get("options") or []:
            if opt.get("name") == name:
                return opt.get("value")
        return None


def message(content: str, *, ephemeral: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {"content": content}
    if ephemeral:
        data["flags"] = EPHEMERAL
    return {"type": ResponseType.CHANNEL_MESSAGE_WITH_SOURCE, "data": data}


def deferred() -> dict[str, Any]:
    return {
        "type": ResponseType.DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE,
        "data": {"flags": EPHEMERAL},
    }


# ---------------------------------------------------------------------------
# Deferred work
# ---------------------------------------------------------------------------


def _sync_follow_up(
    ctx: InteractionContext,
    target_id: str,
    *,
    success_key: str,
    failure_key: str,
    missing_key: str,
) -> FollowUp:
    """Build the background job for ``/update`` and ``/refresh``.

    Only plain values are captured; the job opens its own database session
    because the request session is closed by the time it runs.
    """
    application_id = ctx.application_id
    token = ctx.token
    site = ctx.site
    community = ctx.community
    lang = ctx.lang

    async def run() -> None:
        try:
            async with session_scope() as session:
                result = await metadata_sync.sync_link(session, target_id, site, community)
            key = success_key if result.ok else failure_key
        except LinkNotFoundError:
            key = missing_key
        except Exception:
            logger.exception(
                "Metadata sync failed",
                extra={"community": site, "discord_id": target_id},
            )
            key = failure_key

        try:
            await discord_api.send_followup(
                application_id=application_id,
                interaction_token=token,
                content=t(key, lang, userId=target_id),
            )
        except (DiscordAPIError, httpx.HTTPError):
            logger.exception("Could not send interaction follow-up", extra={"community": site})

    return run


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _cmd_update(ctx: InteractionContext) -> InteractionResult:
    if ctx.user_id is None:
        return InteractionResult(message(t("UNKNOWN_INTERACTION_TYPE", ctx.lang)))
    follow_up = _sync_follow_up(
        ctx,
        ctx.user_id,
        success_key="UPDATE_SUCCESS",
        failure_key="UPDATE_FAILURE",
        missing_key="NO_LINKED_ACCOUNT",
    )
    return InteractionResult(deferred(), follow_up)


async def _cmd_refresh(ctx: InteractionContext) -> InteractionResult:
    target_id = ctx.option("user")
    if not target_id:
        return InteractionResult(message(t("PLEASE_SPECIFY_USER_TO_REFRESH", ctx.lang)))
    follow_up = _sync_follow_up(
        ctx,
        str(target_id),
        success_key="REFRESH_SUCCESS",
        failure_key="REFRESH_FAILURE",
        missing_key="NO_LINKED_ACCOUNT_FOR_USER",
    )
    return InteractionResult(deferred(), follow_up)


async def _cmd_ping(ctx: InteractionContext) -> InteractionResult:
    return InteractionResult(message(t("PONG", ctx.lang), ephemeral=False))


async def _cmd_whois(ctx: InteractionContext) -> InteractionResult:
    target_id = ctx.option("user") if ctx.command_name == "whois" else None
    target_id = str(target_id or ctx.user_id)

    link = await link_store.get_link(ctx.session, target_id, ctx.site)
    if link is not None:
        content = t(
            "USER_LINKED_TO_XAUTH",
            ctx.lang,
            userId=target_id,
            xauthUsername=link.xauth_username,
        )
    else:
        content = t("USER_NOT_LINKED_FOR_COMMUNITY", ctx.lang, userId=target_id)
    return InteractionResult(message(content))


async def _cmd_setpresence(ctx: InteractionContext) -> InteractionResult:
    if ctx.presence is None:
        return InteractionResult(message(t("PRESENCE_UNAVAILABLE", ctx.lang)))

    name = str(ctx.option("name") or "")
    try:
        activity_type = int(ctx.option("type"))
        status = str(ctx.option("status"))
        await ctx.presence.set_presence(name, activity_type, status)
    except (PresenceError, TypeError, ValueError) as exc:
        return InteractionResult(message(t("PRESENCE_INVALID", ctx.lang, reason=exc)))
    return InteractionResult(message(t("PRESENCE_UPDATED", ctx.lang, name=name)))


CommandHandler = Callable[[InteractionContext], Awaitable[InteractionResult]]

COMMANDS: dict[str, CommandHandler] = {
    "update": _cmd_update,
    "refresh": _cmd_refresh,
    "ping": _cmd_ping,
    "whois": _cmd_whois,
    "myinfo": _cmd_whois,
    "setpresence": _cmd_setpresence,
}


async def handle_interaction(
    interaction: dict[str, Any],
    *,
    site: str,
    community: CommunityConfig,
    session: AsyncSession,
    presence: PresenceBot | None = None,
) -> InteractionResult:
    """Build the response for one verified interaction."""
    ctx = InteractionContext(
        interaction=interaction,
        site=site,
        community=community,
        lang=language_from_locale(interaction.get("locale")),
        session=session,
        presence=presence,
    )

    interaction_type = interaction.get("type")
    if interaction_type == InteractionType.PING:
        return InteractionResult({"type": ResponseType.PONG})

    if interaction_type != InteractionType.APPLICATION_COMMAND:
        return InteractionResult(message(t("UNKNOWN_INTERACTION_TYPE", ctx.lang)))

    handler = COMMANDS.get(ctx.command_name)
    if handler is None:
        return InteractionResult(message(t("UNKNOWN_COMMAND", ctx.lang)))

    logger.info(
        "Handling /%s",
        ctx.command_name,
        extra={"community": site, "command": ctx.command_name, "discord_id": ctx.user_id},
    )
    return await handler(ctx)
