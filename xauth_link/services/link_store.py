"""Persistence helpers for ``linked_roles`` rows.

Callers own the transaction: every helper flushes, none of them commits.
"""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.models.db import LinkedRole


class LinkNotFoundError(LookupError):
    """Raised when a (discord_id, site) pair has no linked account."""

    def __init__(self, discord_id: str, site: str) -> None:
        self.discord_id = discord_id
        self.site = site
        super().__init__(f"No linked account for {discord_id} on site {site}")


async def get_link(session: AsyncSession, discord_id: str, site: str) -> LinkedRole | None:
    return await session.get(LinkedRole, (discord_id, site))


async def list_links(session: AsyncSession, site: str | None = None) -> list[LinkedRole]:
    """Return every link, ordered by site then Discord id."""
    stmt = select(LinkedRole).order_by(LinkedRole.site, LinkedRole.discord_id)
    if site is not None:
        stmt = stmt.where(LinkedRole.site == site)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_links(session: AsyncSession) -> int:
    stmt = select(func.count()).select_from(LinkedRole)
    return (await session.execute(stmt)).scalar_one()


async def upsert_link(
    session: AsyncSession,
    *,
    discord_id: str,
    site: str,
    xauth_id: str,
    xauth_username: str,
    discord_access_token: str,
    discord_refresh_token: str,
) -> LinkedRole:
    """Insert the link or overwrite the existing row for ``(discord_id, site)``."""
    link = await get_link(session, discord_id, site)
    if link is None:
        link = LinkedRole(discord_id=discord_id, site=site)
        session.add(link)

    link.xauth_id = xauth_id
    link.xauth_username = xauth_username
    link.discord_access_token = discord_access_token
    link.discord_refresh_token = discord_refresh_token
    await session.flush()
    return link


async def update_tokens(
    session: AsyncSession,
    discord_id: str,
    site: str,
    *,
    access_token: str,
    refresh_token: str,
) -> None:
    link = await get_link(session, discord_id, site)
    if link is None:
        raise LinkNotFoundError(discord_id, site)
    link.discord_access_token = access_token
    link.discord_refresh_token = refresh_token
    await session.flush()


async def delete_link(session: AsyncSession, discord_id: str, site: str) -> bool:
    """Delete the link; returns ``True`` if a row was removed."""
    stmt = delete(LinkedRole).where(
        LinkedRole.discord_id == discord_id,
        LinkedRole.site == site,
    )
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount > 0
