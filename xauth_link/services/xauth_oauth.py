"""XAuthConnect OAuth2 authorization-code flow with PKCE (S256)."""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx

from xauth_link.config import XAuthProviderConfig

CODE_CHALLENGE_METHOD = "S256"


def generate_code_verifier() -> str:
    """Return a fresh PKCE verifier (64 hex characters, within RFC 7636 limits)."""
    return secrets.token_hex(32)


def code_challenge(code_verifier: str) -> str:
    """Derive the S256 challenge: unpadded base64url of SHA-256(verifier)."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class XAuthUser:
    """Resource owner returned by the provider's userinfo endpoint."""

    id: str
    nickname: str
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_userinfo(cls, data: dict[str, Any]) -> XAuthUser:
        user_id = data.get("profile:uuid") or data.get("sub") or data.get("id")
        if not user_id:
            raise ValueError("XAuth userinfo response carries no user id")
        nickname = data.get("profile:nickname") or data.get("username") or str(user_id)
        return cls(id=str(user_id), nickname=str(nickname), raw=data)


class XAuthProvider:
    """Generic PKCE authorization-code client for one provider configuration."""

    def __init__(self, config: XAuthProviderConfig, *, redirect_uri: str) -> None:
        self.config = config
        self.redirect_uri = config.redirect_uri or redirect_uri

    def authorization_url(self, *, state: str, code_verifier: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.config.scopes),
            "state": state,
            "code_challenge": code_challenge(code_verifier),
            "code_challenge_method": CODE_CHALLENGE_METHOD,
        }
        return f"{self.config.authorization_url}?{urlencode(params)}"

    async def exchange_code(self, *, code: str, code_verifier: str) -> dict[str, Any]:
        """Exchange an authorization code + verifier for the provider's token payload."""
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                self.config.token_url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "code_verifier": code_verifier,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            resp.raise_for_status()
            return resp.json()

    async def get_resource_owner(self, token: dict[str, Any]) -> XAuthUser:
        # Some XAuthConnect hosts (PocketMine) break on keep-alive connections.
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                self.config.userinfo_url,
                headers={
                    "Authorization": f"Bearer {token['access_token']}",
                    "Connection": "close",
                },
            )
            resp.raise_for_status()
            return XAuthUser.from_userinfo(resp.json())
