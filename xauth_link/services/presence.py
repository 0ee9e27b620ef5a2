"""Optional discord.py gateway connection that only manages the bot's presence."""

from __future__ import annotations

import asyncio
import logging

import discord

logger = logging.getLogger(__name__)

ACTIVITY_TYPES = {0, 1, 2, 3, 5}
STATUSES = {"online", "idle", "dnd", "offline"}

READY_TIMEOUT_SECONDS = 10.0


class PresenceError(ValueError):
    """Invalid presence arguments or a client that is not connected."""


def validate_presence(activity_type: int, status: str) -> None:
    if activity_type not in ACTIVITY_TYPES:
        raise PresenceError("Invalid activity type. Must be 0, 1, 2, 3, or 5.")
    if status not in STATUSES:
        raise PresenceError('Invalid status. Must be "online", "idle", "dnd", or "offline".')


class PresenceBot:
    """Wraps a ``discord.Client`` logged in with one community's bot token."""

    def __init__(self, bot_token: str, *, client: discord.Client | None = None) -> None:
        self._token = bot_token
        self.client = client or discord.Client(intents=discord.Intents.default())
        self._task: asyncio.Task[None] | None = None

    @property
    def is_ready(self) -> bool:
        return self.client.is_ready()

    async def start(self, *, activity: str = "XAuthConnect") -> None:
        """Log in, wait until the gateway is ready, then show *activity*."""
        login = asyncio.create_task(self.client.start(self._token))
        self._task = login
        ready = asyncio.create_task(self.client.wait_until_ready())
        done, _ = await asyncio.wait(
            {login, ready},
            timeout=READY_TIMEOUT_SECONDS,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if ready not in done:
            ready.cancel()
            await self.close()
            if login in done and not login.cancelled() and login.exception() is not None:
                raise PresenceError(f"Discord client connection error: {login.exception()}")
            raise PresenceError("Discord client connection timed out.")

        logger.info("Discord client connected and ready.")
        await self.set_presence(activity, 0, "online")

    async def set_presence(self, name: str, activity_type: int, status: str) -> None:
        validate_presence(activity_type, status)
        if not self.is_ready:
            raise PresenceError("Discord client is not connected.")

        await self.client.change_presence(
            activity=discord.Activity(type=discord.ActivityType(activity_type), name=name),
            status=discord.Status(status),
        )
        logger.info("Bot presence set to: %s (Type: %s, Status: %s)", name, activity_type, status)

    async def close(self) -> None:
        """Clear the presence (if connected) and disconnect."""
        if self.is_ready:
            try:
                await self.client.change_presence(activity=None, status=discord.Status.offline)
            except discord.DiscordException:
                logger.warning("Could not clear bot presence before disconnecting", exc_info=True)
        await self.client.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        logger.info("Discord client disconnected.")
