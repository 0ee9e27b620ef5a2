"""Administrative loops over the link store: list, prune, refresh-all, register.

Records are processed strictly one after another; a failure on one record is
logged and the loop moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.config import CommunityConfig
from xauth_link.models.db import LinkedRole
from xauth_link.services import command_schemas, discord_api, link_store, metadata_sync
from xauth_link.services.discord_api import DiscordAPIError

logger = logging.getLogger(__name__)


@dataclass
class PruneReport:
    checked: int = 0
    removed: list[tuple[str, str]] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class RefreshReport:
    refreshed: list[tuple[str, str]] = field(default_factory=list)
    removed: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


async def list_links(session: AsyncSession, site: str | None = None) -> list[LinkedRole]:
    links = await link_store.list_links(session, site)
    if not links:
        logger.info("No linked users found.")
    return links


async def prune(
    session: AsyncSession,
    communities: dict[str, CommunityConfig],
    site: str | None = None,
) -> PruneReport:
    """Delete links whose Discord user has left the community's guild.

    Only a 404 from the member lookup removes a record; any other failure
    (missing bot credentials included) keeps it.
    """
    report = PruneReport()
    links = await link_store.list_links(session, site)
    if not links:
        logger.info("No linked users found to prune.")
        return report

    logger.info("Starting prune of %d link(s)...", len(links))
    for link in links:
        key = (link.site, link.discord_id)
        report.checked += 1
        community = communities.get(link.site)
        if community is None or not community.discord.guild_id or not community.discord.bot_token:
            logger.error(
                "Cannot check %s: missing guild_id or bot_token for site %s",
                link.discord_id,
                link.site,
            )
            report.errors.append(key)
            continue

        try:
            await discord_api.get_guild_member(
                guild_id=community.discord.guild_id,
                user_id=link.discord_id,
                bot_token=community.discord.bot_token,
            )
        except DiscordAPIError as exc:
            if exc.status_code == 404:
                logger.info(
                    "User %s not found in guild of site %s. Removing from database.",
                    link.discord_id,
                    link.site,
                )
                await link_store.delete_link(session, link.discord_id, link.site)
                await session.commit()
                report.removed.append(key)
            else:
                logger.error("Error checking user %s: %s", link.discord_id, exc)
                report.errors.append(key)
        except httpx.HTTPError as exc:
            logger.error("Error checking user %s: %s", link.discord_id, exc)
            report.errors.append(key)

    logger.info(
        "Prune finished: %d checked, %d removed, %d errors.",
        report.checked,
        len(report.removed),
        len(report.errors),
    )
    return report


async def refresh_all(
    session: AsyncSession,
    communities: dict[str, CommunityConfig],
    site: str | None = None,
) -> RefreshReport:
    """Refresh tokens and push metadata for every link."""
    report = RefreshReport()
    links = await link_store.list_links(session, site)
    if not links:
        logger.info("No linked users found to refresh.")
        return report

    # sync_link commits and may delete rows, so iterate over plain keys
    keys = [(link.site, link.discord_id) for link in links]
    logger.info("Starting refresh-all of %d link(s)...", len(keys))
    for link_site, discord_id in keys:
        key = (link_site, discord_id)
        community = communities.get(link_site)
        if community is None:
            logger.error("Skipping %s: site %s is not configured", discord_id, link_site)
            report.failed.append(key)
            continue

        try:
            result = await metadata_sync.sync_link(session, discord_id, link_site, community)
        except Exception:
            logger.exception(
                "Unexpected error refreshing %s",
                discord_id,
                extra={"community": link_site, "discord_id": discord_id},
            )
            await session.rollback()
            report.failed.append(key)
            continue

        if result.revoked:
            report.removed.append(key)
        elif result.ok:
            report.refreshed.append(key)
        else:
            logger.error("Skipping metadata update for %s due to token refresh failure.", discord_id)
            report.failed.append(key)

    logger.info(
        "Refresh-all finished: %d refreshed, %d removed, %d failed.",
        len(report.refreshed),
        len(report.removed),
        len(report.failed),
    )
    return report


def _require_bot(site: str, community: CommunityConfig) -> tuple[str, str]:
    client_id = community.discord.client_id
    bot_token = community.discord.bot_token
    if not client_id or not bot_token:
        raise ValueError(f"Missing client_id or bot_token for site '{site}'")
    return client_id, bot_token


async def register_commands(site: str, community: CommunityConfig) -> list[dict[str, Any]]:
    """Overwrite the application's global slash commands."""
    client_id, bot_token = _require_bot(site, community)
    logger.info("Registering Discord global slash commands for %s...", site)
    registered = await discord_api.put_global_commands(
        client_id=client_id,
        bot_token=bot_token,
        commands=command_schemas.slash_commands(),
    )
    logger.info("Registered %d command(s) for %s.", len(registered), site)
    return registered


async def register_metadata(site: str, community: CommunityConfig) -> list[dict[str, Any]]:
    """Overwrite the application's role-connection metadata schema."""
    client_id, bot_token = _require_bot(site, community)
    logger.info("Registering metadata schema for %s...", site)
    registered = await discord_api.put_role_connection_metadata(
        client_id=client_id,
        bot_token=bot_token,
        schema=command_schemas.role_connection_metadata(),
    )
    logger.info("Registered metadata schema for %s.", site)
    return registered
