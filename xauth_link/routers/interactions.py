"""Discord interactions webhook."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.database import get_session
from xauth_link.dependencies.context import get_presence_bots
from xauth_link.dependencies.interactions import VerifiedInteraction, verified_interaction
from xauth_link.services.interaction_handler import handle_interaction
from xauth_link.services.presence import PresenceBot

router = APIRouter(prefix="/discord", tags=["discord"])


@router.post("/interactions", summary="Discord interactions endpoint")
async def discord_interactions(
    background_tasks: BackgroundTasks,
    verified: VerifiedInteraction = Depends(verified_interaction),
    session: AsyncSession = Depends(get_session),
    presence_bots: dict[str, PresenceBot] = Depends(get_presence_bots),
) -> JSONResponse:
    result = await handle_interaction(
        verified.payload,
        site=verified.site,
        community=verified.community,
        session=session,
        presence=presence_bots.get(verified.site),
    )
    if result.follow_up is not None:
        background_tasks.add_task(result.follow_up)
    return JSONResponse(content=result.response)
