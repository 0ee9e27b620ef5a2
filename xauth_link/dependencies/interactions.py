"""FastAPI dependency that authenticates Discord interaction webhooks."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Header, HTTPException, Request

from xauth_link.config import CommunityConfig, CommunityNotFoundError, Settings
from xauth_link.dependencies.context import get_app_settings
from xauth_link.services.signature import verify_interaction_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedInteraction:
    payload: dict[str, Any]
    site: str
    community: CommunityConfig


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail="Unauthorized")


async def verified_interaction(
    request: Request,
    x_signature_ed25519: str | None = Header(None),
    x_signature_timestamp: str | None = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> VerifiedInteraction:
    """Resolve the community by ``application_id`` and check the Ed25519 signature.

    Every failure is a 401 so callers learn nothing about which check failed.
    """
    if not x_signature_ed25519 or not x_signature_timestamp:
        raise _unauthorized()

    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError:
        raise _unauthorized()
    if not isinstance(payload, dict):
        raise _unauthorized()

    try:
        site, community = settings.community_for_application(payload.get("application_id"))
    except CommunityNotFoundError:
        logger.error(
            "Interaction received for unknown application_id: %s",
            payload.get("application_id"),
        )
        raise _unauthorized()

    if not community.discord.public_key:
        logger.error("Public key not configured", extra={"community": site})
        raise _unauthorized()

    if not verify_interaction_signature(
        public_key_hex=community.discord.public_key,
        signature_hex=x_signature_ed25519,
        timestamp=x_signature_timestamp,
        body=body,
    ):
        raise _unauthorized()

    return VerifiedInteraction(payload=payload, site=site, community=community)
