"""Discord REST and OAuth2 calls.

Each call opens a short-lived ``httpx.AsyncClient``; nothing is retried.
Non-2xx responses raise :class:`DiscordAPIError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

DISCORD_API = "https://discord.com/api/v10"
DISCORD_AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
DISCORD_TOKEN_URL = f"{DISCORD_API}/oauth2/token"
DISCORD_USER_URL = f"{DISCORD_API}/users/@me"

SCOPES = "identify role_connections.write"

EPHEMERAL = 1 << 6


class DiscordAPIError(Exception):
    """A Discord endpoint answered with a non-success status."""

    def __init__(self, status_code: int, error: str | None = None, message: str = "") -> None:
        self.status_code = status_code
        self.error = error
        self.message = message
        detail = error or message or "request failed"
        super().__init__(f"Discord API error {status_code}: {detail}")

    @property
    def is_invalid_grant(self) -> bool:
        return self.error == "invalid_grant"


@dataclass(frozen=True)
class DiscordTokens:
    access_token: str
    refresh_token: str
    expires_in: int | None = None
    scope: str | None = None


@dataclass(frozen=True)
class DiscordUser:
    """Relevant fields from Discord's ``/users/@me`` response."""

    id: str
    username: str
    global_name: str | None = None
    avatar: str | None = None


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    error: str | None = None
    message = resp.text
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        message = body.get("error_description") or body.get("message") or message
    raise DiscordAPIError(resp.status_code, error, message)


def _bot_headers(bot_token: str) -> dict[str, str]:
    return {"Authorization": f"Bot {bot_token}"}


# ---------------------------------------------------------------------------
# OAuth2
# ---------------------------------------------------------------------------


def get_authorize_url(*, client_id: str, redirect_uri: str, state: str) -> str:
    """Build the Discord OAuth2 authorization URL."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": SCOPES,
        "state": state,
    }
    return f"{DISCORD_AUTHORIZE_URL}?{urlencode(params)}"


def _parse_tokens(data: dict[str, Any]) -> DiscordTokens:
    return DiscordTokens(
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
        expires_in=data.get("expires_in"),
        scope=data.get("scope"),
    )


async def _token_request(form: dict[str, str]) -> DiscordTokens:
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            DISCORD_TOKEN_URL,
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    _raise_for_status(resp)
    return _parse_tokens(resp.json())


async def exchange_code(
    *,
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
) -> DiscordTokens:
    """Exchange an authorization code for an access/refresh token pair."""
    return await _token_request(
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": client_id,
            "client_secret": client_secret,
        }
    )


async def refresh_access_token(
    *, refresh_token: str, client_id: str, client_secret: str
) -> DiscordTokens:
    """Trade a refresh token for a new token pair."""
    return await _token_request(
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }
    )


async def get_current_user(access_token: str) -> DiscordUser:
    """Fetch the authenticated user's Discord profile."""
    async with httpx.AsyncClient() as client:
        resp = await client.get(
            DISCORD_USER_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
    _raise_for_status(resp)
    data = resp.json()

    return DiscordUser(
        id=data["id"],
        username=data["username"],
        global_name=data.get("global_name"),
        avatar=data.get("avatar"),
    )


# ---------------------------------------------------------------------------
# Role connections
# ---------------------------------------------------------------------------


async def put_role_connection(
    *,
    client_id: str,
    access_token: str,
    platform_name: str,
    platform_username: str,
    metadata: dict[str, Any],
) -> dict[str, Any]:
    url = f"{DISCORD_API}/users/@me/applications/{client_id}/role-connection"
    body = {
        "platform_name": platform_name,
        "platform_username": platform_username,
        "metadata": metadata,
    }
    async with httpx.AsyncClient() as client:
        resp = await client.put(
            url,
            json=body,
            headers={"Authorization": f"Bearer {access_token}"},
        )
    _raise_for_status(resp)
    return resp.json()


async def put_role_connection_metadata(
    *, client_id: str, bot_token: str, schema: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    url = f"{DISCORD_API}/applications/{client_id}/role-connections/metadata"
    async with httpx.AsyncClient() as client:
        resp = await client.put(url, json=schema, headers=_bot_headers(bot_token))
    _raise_for_status(resp)
    return resp.json()


# ---------------------------------------------------------------------------
# Bot endpoints
# ---------------------------------------------------------------------------


async def get_guild_member(*, guild_id: str, user_id: str, bot_token: str) -> dict[str, Any]:
    url = f"{DISCORD_API}/guilds/{guild_id}/members/{user_id}"
    async with httpx.AsyncClient() as client:
        resp = await client.get(url, headers=_bot_headers(bot_token))
    _raise_for_status(resp)
    return resp.json()


async def put_global_commands(
    *, client_id: str, bot_token: str, commands: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    url = f"{DISCORD_API}/applications/{client_id}/commands"
    async with httpx.AsyncClient() as client:
        resp = await client.put(url, json=commands, headers=_bot_headers(bot_token))
    _raise_for_status(resp)
    return resp.json()


async def send_followup(
    *, application_id: str, interaction_token: str, content: str, ephemeral: bool = True
) -> None:
    """Post a follow-up message for a deferred interaction."""
    url = f"{DISCORD_API}/webhooks/{application_id}/{interaction_token}"
    body: dict[str, Any] = {"content": content}
    if ephemeral:
        body["flags"] = EPHEMERAL
    async with httpx.AsyncClient() as client:
        resp = await client.post(url, json=body)
    _raise_for_status(resp)
