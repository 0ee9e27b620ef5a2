"""Browser side of the two-legged link flow: Discord first, then XAuth."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.config import CommunityNotFoundError, Settings
from xauth_link.database import get_session
from xauth_link.dependencies.context import get_app_settings, get_link_flow
from xauth_link.services import discord_api, link_store, metadata_sync
from xauth_link.services.discord_api import DiscordAPIError
from xauth_link.services.pending_links import LinkFlowState, PendingLink
from xauth_link.services.xauth_oauth import XAuthProvider, generate_code_verifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["link"])


def _status_redirect(status: str) -> RedirectResponse:
    return RedirectResponse(url=f"/?status={status}", status_code=302)


def _start_link(settings: Settings, flow: LinkFlowState, community_key: str) -> RedirectResponse:
    try:
        community = settings.get_community(community_key)
    except CommunityNotFoundError:
        raise HTTPException(status_code=404, detail="Configuration not found.")

    state = flow.discord_states.issue(community_key)
    url = discord_api.get_authorize_url(
        client_id=community.discord.client_id,
        redirect_uri=settings.discord_redirect_uri,
        state=state,
    )
    return RedirectResponse(url=url, status_code=302)


# ---------------------------------------------------------------------------
# GET /start, /start/{community}
# ---------------------------------------------------------------------------


@router.get("/start", summary="Begin linking with the default community")
async def start_default(
    settings: Settings = Depends(get_app_settings),
    flow: LinkFlowState = Depends(get_link_flow),
) -> RedirectResponse:
    try:
        community_key = settings.resolve_default_community()
    except CommunityNotFoundError:
        raise HTTPException(status_code=404, detail="Configuration not found.")
    return _start_link(settings, flow, community_key)


@router.get("/start/{community}", summary="Begin linking with a community")
async def start_community(
    community: str,
    settings: Settings = Depends(get_app_settings),
    flow: LinkFlowState = Depends(get_link_flow),
) -> RedirectResponse:
    return _start_link(settings, flow, community)


# ---------------------------------------------------------------------------
# GET /discord/callback
# ---------------------------------------------------------------------------


@router.get("/discord/callback", summary="Discord OAuth callback")
async def discord_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    settings: Settings = Depends(get_app_settings),
    flow: LinkFlowState = Depends(get_link_flow),
) -> RedirectResponse:
    if error == "access_denied":
        return _status_redirect("access_denied")

    community_key = flow.discord_states.pop(state)
    if not code or community_key is None:
        return _status_redirect("error")

    try:
        community = settings.get_community(community_key)
        tokens = await discord_api.exchange_code(
            code=code,
            client_id=community.discord.client_id,
            client_secret=community.discord.client_secret,
            redirect_uri=settings.discord_redirect_uri,
        )
        discord_user = await discord_api.get_current_user(tokens.access_token)
    except (CommunityNotFoundError, DiscordAPIError, httpx.HTTPError, KeyError, ValueError):
        logger.exception("Discord OAuth exchange failed", extra={"community": community_key})
        return _status_redirect("error")

    code_verifier = generate_code_verifier()
    xauth_state = flow.pending_links.issue(
        PendingLink(
            community=community_key,
            discord_access_token=tokens.access_token,
            discord_refresh_token=tokens.refresh_token,
            discord_user=discord_user,
            code_verifier=code_verifier,
        )
    )
    provider = XAuthProvider(community.xauth, redirect_uri=settings.xauth_redirect_uri)
    return RedirectResponse(
        url=provider.authorization_url(state=xauth_state, code_verifier=code_verifier),
        status_code=302,
    )


# ---------------------------------------------------------------------------
# GET /xauth/callback
# ---------------------------------------------------------------------------


@router.get("/xauth/callback", summary="XAuth OAuth callback")
async def xauth_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    flow: LinkFlowState = Depends(get_link_flow),
) -> RedirectResponse:
    if error == "access_denied":
        flow.pending_links.pop(state)
        return _status_redirect("access_denied")

    pending = flow.pending_links.pop(state)
    if not code or pending is None:
        return _status_redirect("error")

    try:
        community = settings.get_community(pending.community)
        provider = XAuthProvider(community.xauth, redirect_uri=settings.xauth_redirect_uri)
        token = await provider.exchange_code(code=code, code_verifier=pending.code_verifier)
        xauth_user = await provider.get_resource_owner(token)
    except (CommunityNotFoundError, httpx.HTTPError, KeyError, ValueError):
        logger.exception("XAuth OAuth exchange failed", extra={"community": pending.community})
        return _status_redirect("error")

    discord_user = pending.discord_user
    logger.info(
        "Linked Discord user %s (%s) to XAuth user %s (%s)",
        discord_user.username,
        discord_user.id,
        xauth_user.nickname,
        xauth_user.id,
        extra={"community": pending.community, "discord_id": discord_user.id},
    )

    await metadata_sync.update_discord_metadata(
        client_id=community.discord.client_id,
        access_token=pending.discord_access_token,
        xauth_username=xauth_user.nickname,
        platform_name=community.discord.platform_name,
    )

    await link_store.upsert_link(
        session,
        discord_id=discord_user.id,
        site=pending.community,
        xauth_id=xauth_user.id,
        xauth_username=xauth_user.nickname,
        discord_access_token=pending.discord_access_token,
        discord_refresh_token=pending.discord_refresh_token,
    )
    await session.commit()

    return _status_redirect("success")
