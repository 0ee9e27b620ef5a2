"""Health-check endpoint for load balancers and monitoring."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.database import get_session
from xauth_link.services import link_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    linked_users: int


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(
    session: AsyncSession = Depends(get_session),
) -> HealthResponse | JSONResponse:
    """Return service health status along with the number of stored links."""
    try:
        linked_users = await link_store.count_links(session)
    except Exception:
        logger.exception("Health check: database query failed")
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "error": "database_unavailable"},
        )

    return HealthResponse(status="ok", linked_users=linked_users)
