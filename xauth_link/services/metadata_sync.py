"""Discord token refresh and role-connection metadata updates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.config import CommunityConfig
from xauth_link.services import discord_api, link_store
from xauth_link.services.discord_api import DiscordAPIError
from xauth_link.services.link_store import LinkNotFoundError

logger = logging.getLogger(__name__)

LINKED_METADATA = {"linked": 1}


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of :func:`refresh_token`.

    ``access_token`` is ``None`` when the refresh failed; ``revoked`` is set
    when the provider rejected the grant and the link was deleted.
    ``metadata_pushed`` is only filled in by :func:`sync_link`.
    """

    access_token: str | None
    revoked: bool = False
    metadata_pushed: bool = False

    @property
    def ok(self) -> bool:
        return self.access_token is not None


async def refresh_token(
    session: AsyncSession,
    discord_id: str,
    site: str,
    community: CommunityConfig,
) -> RefreshResult:
    """Exchange the stored refresh token for a new pair and persist it.

    Commits the session. Raises :class:`LinkNotFoundError` when the user has
    no link on *site*.
    """
    link = await link_store.get_link(session, discord_id, site)
    if link is None:
        raise LinkNotFoundError(discord_id, site)

    try:
        tokens = await discord_api.refresh_access_token(
            refresh_token=link.discord_refresh_token,
            client_id=community.discord.client_id,
            client_secret=community.discord.client_secret,
        )
    except DiscordAPIError as exc:
        logger.error("Error refreshing token for %s on site %s: %s", discord_id, site, exc)
        if exc.is_invalid_grant:
            logger.info("Removing invalid link for %s on site %s.", discord_id, site)
            await link_store.delete_link(session, discord_id, site)
            await session.commit()
            return RefreshResult(access_token=None, revoked=True)
        return RefreshResult(access_token=None)
    except httpx.HTTPError as exc:
        logger.error("Error refreshing token for %s on site %s: %s", discord_id, site, exc)
        return RefreshResult(access_token=None)

    await link_store.update_tokens(
        session,
        discord_id,
        site,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )
    await session.commit()
    logger.info("Refreshed token for %s on site %s.", discord_id, site)
    return RefreshResult(access_token=tokens.access_token)


async def update_discord_metadata(
    *,
    client_id: str,
    access_token: str,
    xauth_username: str,
    platform_name: str = "XAuthConnect",
) -> bool:
    """Publish the ``linked`` attribute for the token's owner. Never raises."""
    try:
        await discord_api.put_role_connection(
            client_id=client_id,
            access_token=access_token,
            platform_name=platform_name,
            platform_username=xauth_username,
            metadata=LINKED_METADATA,
        )
    except (DiscordAPIError, httpx.HTTPError) as exc:
        logger.error("Error updating Discord metadata for %s: %s", xauth_username, exc)
        return False

    logger.info("Updated Discord linked role metadata for %s.", xauth_username)
    return True


async def sync_link(
    session: AsyncSession,
    discord_id: str,
    site: str,
    community: CommunityConfig,
) -> RefreshResult:
    """Refresh the user's token and, if that worked, push fresh metadata."""
    link = await link_store.get_link(session, discord_id, site)
    if link is None:
        raise LinkNotFoundError(discord_id, site)
    xauth_username = link.xauth_username

    result = await refresh_token(session, discord_id, site, community)
    if result.access_token is None:
        return result

    pushed = await update_discord_metadata(
        client_id=community.discord.client_id,
        access_token=result.access_token,
        xauth_username=xauth_username,
        platform_name=community.discord.platform_name,
    )
    return replace(result, metadata_pushed=pushed)
