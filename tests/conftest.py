"""Shared pytest fixtures for the xauth-link test suite.

Uses a throwaway SQLite file (via aiosqlite) so request handlers and
background follow-ups can open their own sessions against the same data.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.config import CommunityConfig, DiscordAppConfig, Settings, XAuthProviderConfig
from xauth_link.database import create_schema, init_engine, session_scope, shutdown_engine
from xauth_link.main import create_app
from xauth_link.services import link_store

APPLICATION_ID = "123"
OTHER_APPLICATION_ID = "456"
XAUTH_AUTHORIZE_URL = "https://xauth.example.com/oauth/authorize"
XAUTH_TOKEN_URL = "https://xauth.example.com/oauth/token"
XAUTH_USERINFO_URL = "https://xauth.example.com/api/user"
SIGNATURE_TIMESTAMP = "1700000000"


def make_community(client_id: str, public_key: str = "", **discord: str) -> CommunityConfig:
    return CommunityConfig(
        discord=DiscordAppConfig(
            client_id=client_id,
            client_secret=f"secret-{client_id}",
            public_key=public_key,
            bot_token=discord.get("bot_token", f"bot-{client_id}"),
            guild_id=discord.get("guild_id", f"guild-{client_id}"),
        ),
        xauth=XAuthProviderConfig(
            client_id=f"xauth-{client_id}",
            client_secret="xauth-secret",
            authorization_url=XAUTH_AUTHORIZE_URL,
            token_url=XAUTH_TOKEN_URL,
            userinfo_url=XAUTH_USERINFO_URL,
        ),
    )


# ---------------------------------------------------------------------------
# Keys and settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def signing_key() -> Ed25519PrivateKey:
    return Ed25519PrivateKey.generate()


@pytest.fixture()
def public_key_hex(signing_key: Ed25519PrivateKey) -> str:
    return signing_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


@pytest.fixture()
def settings(tmp_path: Path, public_key_hex: str) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'links.db'}",
        base_url="https://link.example.com",
        communities={
            "alpha": make_community(APPLICATION_ID, public_key_hex),
            "beta": make_community(OTHER_APPLICATION_ID, public_key_hex),
        },
        default_community="alpha",
        communities_file=tmp_path / "missing.json",
        rate_limit_link_per_minute=1000,  # relaxed for tests
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def database(settings: Settings) -> AsyncIterator[None]:
    init_engine(settings)
    await create_schema()
    yield
    await shutdown_engine()


@pytest_asyncio.fixture()
async def db_session(database: None) -> AsyncIterator[AsyncSession]:
    async with session_scope() as session:
        yield session


async def add_link(
    session: AsyncSession,
    discord_id: str = "1001",
    site: str = "alpha",
    *,
    xauth_username: str = "Steve",
    refresh_token: str = "old-refresh",
) -> None:
    await link_store.upsert_link(
        session,
        discord_id=discord_id,
        site=site,
        xauth_id=f"uuid-{discord_id}",
        xauth_username=xauth_username,
        discord_access_token="old-access",
        discord_refresh_token=refresh_token,
    )
    await session.commit()


# ---------------------------------------------------------------------------
# httpx AsyncClient wired to the FastAPI app
# ---------------------------------------------------------------------------


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings=settings)


@pytest_asyncio.fixture()
async def client(app: FastAPI, database: None) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Signed interactions
# ---------------------------------------------------------------------------


def signed_request(
    signing_key: Ed25519PrivateKey,
    payload: dict[str, Any],
    *,
    timestamp: str = SIGNATURE_TIMESTAMP,
) -> tuple[bytes, dict[str, str]]:
    body = json.dumps(payload).encode("utf-8")
    signature = signing_key.sign(timestamp.encode("utf-8") + body).hex()
    headers = {
        "Content-Type": "application/json",
        "X-Signature-Ed25519": signature,
        "X-Signature-Timestamp": timestamp,
    }
    return body, headers


@pytest.fixture()
def post_interaction(client: AsyncClient, signing_key: Ed25519PrivateKey):
    async def _post(payload: dict[str, Any]):
        body, headers = signed_request(signing_key, payload)
        return await client.post("/discord/interactions", content=body, headers=headers)

    return _post
