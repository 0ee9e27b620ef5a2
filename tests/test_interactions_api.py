"""Integration tests for POST /discord/interactions."""

from __future__ import annotations

import json
from typing import Any

import httpx
import respx
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import APPLICATION_ID, OTHER_APPLICATION_ID, add_link, signed_request
from xauth_link.database import session_scope
from xauth_link.services import link_store
from xauth_link.services.discord_api import DISCORD_API, DISCORD_TOKEN_URL
from xauth_link.services.presence import PresenceBot

EPHEMERAL = 64
INTERACTION_TOKEN = "interaction-token"
FOLLOWUP_URL = f"{DISCORD_API}/webhooks/{APPLICATION_ID}/{INTERACTION_TOKEN}"
ROLE_CONNECTION_URL = f"{DISCORD_API}/users/@me/applications/{APPLICATION_ID}/role-connection"


def command(
    name: str,
    *,
    user_id: str = "1001",
    options: list[dict[str, Any]] | None = None,
    application_id: str = APPLICATION_ID,
    locale: str = "en-US",
) -> dict[str, Any]:
    data: dict[str, Any] = {"name": name}
    if options is not None:
        data["options"] = options
    return {
        "type": 2,
        "application_id": application_id,
        "token": INTERACTION_TOKEN,
        "locale": locale,
        "member": {"user": {"id": user_id, "username": "steve"}},
        "data": data,
    }


def user_option(user_id: str) -> list[dict[str, Any]]:
    return [{"name": "user", "type": 6, "value": user_id}]


def followup_content(route: respx.Route) -> str:
    return json.loads(route.calls.last.request.content)["content"]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestVerification:
    async def test_ping_returns_pong(self, post_interaction) -> None:
        resp = await post_interaction({"type": 1, "application_id": APPLICATION_ID})
        assert resp.status_code == 200
        assert resp.json() == {"type": 1}

    async def test_missing_signature_headers(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/discord/interactions",
            json={"type": 1, "application_id": APPLICATION_ID},
        )
        assert resp.status_code == 401

    async def test_invalid_signature(
        self, client: AsyncClient, signing_key: Ed25519PrivateKey
    ) -> None:
        body, headers = signed_request(signing_key, {"type": 1, "application_id": APPLICATION_ID})
        tampered = body.replace(b'"type": 1', b'"type": 2')
        resp = await client.post("/discord/interactions", content=tampered, headers=headers)
        assert resp.status_code == 401

    async def test_signature_from_wrong_key(self, client: AsyncClient) -> None:
        body, headers = signed_request(
            Ed25519PrivateKey.generate(), {"type": 1, "application_id": APPLICATION_ID}
        )
        resp = await client.post("/discord/interactions", content=body, headers=headers)
        assert resp.status_code == 401

    async def test_unknown_application_id(self, post_interaction) -> None:
        resp = await post_interaction({"type": 1, "application_id": "999"})
        assert resp.status_code == 401

    async def test_unparsable_body(
        self, client: AsyncClient, signing_key: Ed25519PrivateKey
    ) -> None:
        body = b"not json"
        headers = {
            "X-Signature-Ed25519": signing_key.sign(b"1700000000" + body).hex(),
            "X-Signature-Timestamp": "1700000000",
        }
        resp = await client.post("/discord/interactions", content=body, headers=headers)
        assert resp.status_code == 401

    async def test_no_link_is_written_for_rejected_requests(
        self, client: AsyncClient, db_session: AsyncSession
    ) -> None:
        await client.post("/discord/interactions", json=command("update"))
        assert await link_store.count_links(db_session) == 0


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    async def test_ping_command(self, post_interaction) -> None:
        resp = await post_interaction(command("ping"))
        data = resp.json()
        assert data["type"] == 4
        assert data["data"]["content"] == "Pong!"
        assert "flags" not in data["data"]

    async def test_unknown_command(self, post_interaction) -> None:
        resp = await post_interaction(command("dance"))
        data = resp.json()
        assert data["type"] == 4
        assert data["data"] == {"content": "Unknown command.", "flags": EPHEMERAL}

    async def test_unknown_interaction_type(self, post_interaction) -> None:
        payload = command("ping")
        payload["type"] = 3
        resp = await post_interaction(payload)
        assert resp.json()["data"]["content"] == "Unknown interaction type."

    async def test_locale_selects_language(self, post_interaction) -> None:
        resp = await post_interaction(command("dance", locale="uk"))
        assert resp.json()["data"]["content"] == "Невідома команда."

    async def test_unsupported_locale_falls_back_to_english(self, post_interaction) -> None:
        resp = await post_interaction(command("dance", locale="pt-BR"))
        assert resp.json()["data"]["content"] == "Unknown command."


class TestWhois:
    async def test_whois_linked_user(self, post_interaction, db_session: AsyncSession) -> None:
        await add_link(db_session, "2002", xauth_username="Alex")
        resp = await post_interaction(command("whois", options=user_option("2002")))
        data = resp.json()["data"]
        assert data["content"] == "<@2002> is linked to the XAuth account **Alex**."
        assert data["flags"] == EPHEMERAL

    async def test_whois_defaults_to_caller(
        self, post_interaction, db_session: AsyncSession
    ) -> None:
        await add_link(db_session, "1001", xauth_username="Steve")
        resp = await post_interaction(command("whois"))
        assert "**Steve**" in resp.json()["data"]["content"]

    async def test_myinfo_not_linked(self, post_interaction, database: None) -> None:
        resp = await post_interaction(command("myinfo"))
        assert resp.json()["data"]["content"] == (
            "<@1001> has not linked an XAuth account in this community."
        )

    async def test_community_resolved_by_application_id(
        self, post_interaction, db_session: AsyncSession
    ) -> None:
        await add_link(db_session, "1001", site="beta", xauth_username="BetaSteve")

        alpha = await post_interaction(command("myinfo"))
        beta = await post_interaction(command("myinfo", application_id=OTHER_APPLICATION_ID))

        assert "has not linked" in alpha.json()["data"]["content"]
        assert "**BetaSteve**" in beta.json()["data"]["content"]


class TestUpdate:
    async def test_update_defers_and_posts_success(
        self, post_interaction, db_session: AsyncSession
    ) -> None:
        await add_link(db_session, "1001")
        with respx.mock:
            respx.post(DISCORD_TOKEN_URL).mock(
                return_value=httpx.Response(
                    200, json={"access_token": "new-access", "refresh_token": "new-refresh"}
                )
            )
            metadata = respx.put(ROLE_CONNECTION_URL).mock(
                return_value=httpx.Response(200, json={})
            )
            followup = respx.post(FOLLOWUP_URL).mock(return_value=httpx.Response(200, json={}))

            resp = await post_interaction(command("update"))

        assert resp.json() == {"type": 5, "data": {"flags": EPHEMERAL}}
        assert followup_content(followup) == "Your linked role connection has been updated."
        pushed = json.loads(metadata.calls.last.request.content)
        assert pushed == {
            "platform_name": "XAuthConnect",
            "platform_username": "Steve",
            "metadata": {"linked": 1},
        }
        assert metadata.calls.last.request.headers["Authorization"] == "Bearer new-access"

        async with session_scope() as session:
            link = await link_store.get_link(session, "1001", "alpha")
        assert link is not None
        assert link.discord_refresh_token == "new-refresh"

    async def test_update_without_link(self, post_interaction, database: None) -> None:
        with respx.mock:
            followup = respx.post(FOLLOWUP_URL).mock(return_value=httpx.Response(200, json={}))
            resp = await post_interaction(command("update"))

        assert resp.json()["type"] == 5
        assert followup_content(followup) == "You have not linked an XAuth account yet."

    async def test_update_with_revoked_grant_removes_link(
        self, post_interaction, db_session: AsyncSession
    ) -> None:
        await add_link(db_session, "1001")
        with respx.mock:
            respx.post(DISCORD_TOKEN_URL).mock(
                return_value=httpx.Response(400, json={"error": "invalid_grant"})
            )
            followup = respx.post(FOLLOWUP_URL).mock(return_value=httpx.Response(200, json={}))
            await post_interaction(command("update"))

        assert followup_content(followup).startswith("Your linked role connection could not")
        async with session_scope() as session:
            assert await link_store.get_link(session, "1001", "alpha") is None


class TestRefresh:
    async def test_refresh_requires_user(self, post_interaction) -> None:
        resp = await post_interaction(command("refresh"))
        assert resp.json()["data"]["content"] == "Please specify the user to refresh."

    async def test_refresh_target_user(self, post_interaction, db_session: AsyncSession) -> None:
        await add_link(db_session, "2002")
        with respx.mock:
            respx.post(DISCORD_TOKEN_URL).mock(
                return_value=httpx.Response(
                    200, json={"access_token": "new-access", "refresh_token": "new-refresh"}
                )
            )
            respx.put(ROLE_CONNECTION_URL).mock(return_value=httpx.Response(200, json={}))
            followup = respx.post(FOLLOWUP_URL).mock(return_value=httpx.Response(200, json={}))

            resp = await post_interaction(command("refresh", options=user_option("2002")))

        assert resp.json()["type"] == 5
        assert followup_content(followup) == (
            "The linked role connection of <@2002> has been refreshed."
        )

    async def test_refresh_unlinked_user(self, post_interaction, database: None) -> None:
        with respx.mock:
            followup = respx.post(FOLLOWUP_URL).mock(return_value=httpx.Response(200, json={}))
            await post_interaction(command("refresh", options=user_option("3003")))

        assert followup_content(followup) == "<@3003> has not linked an XAuth account."


class _FakeDiscordClient:
    def __init__(self) -> None:
        self.presences: list[dict[str, Any]] = []

    def is_ready(self) -> bool:
        return True

    async def change_presence(self, **kwargs: Any) -> None:
        self.presences.append(kwargs)


class TestSetPresence:
    def _options(self, name: str, activity_type: int, status: str) -> list[dict[str, Any]]:
        return [
            {"name": "name", "type": 3, "value": name},
            {"name": "type", "type": 4, "value": activity_type},
            {"name": "status", "type": 3, "value": status},
        ]

    async def test_without_presence_client(self, post_interaction) -> None:
        resp = await post_interaction(command("setpresence", options=self._options("X", 0, "idle")))
        assert resp.json()["data"]["content"] == "The bot presence client is not running."

    async def test_sets_presence(self, app: FastAPI, post_interaction) -> None:
        fake = _FakeDiscordClient()
        bot = PresenceBot("bot-token", client=fake)  # type: ignore[arg-type]
        app.state.presence_bots["alpha"] = bot

        resp = await post_interaction(
            command("setpresence", options=self._options("Minecraft", 2, "dnd"))
        )

        assert resp.json()["data"]["content"] == "Bot presence set to Minecraft."
        assert fake.presences[-1]["activity"].name == "Minecraft"
        assert str(fake.presences[-1]["status"]) == "dnd"

    async def test_rejects_invalid_activity_type(self, app: FastAPI, post_interaction) -> None:
        fake = _FakeDiscordClient()
        bot = PresenceBot("bot-token", client=fake)  # type: ignore[arg-type]
        app.state.presence_bots["alpha"] = bot

        resp = await post_interaction(
            command("setpresence", options=self._options("Minecraft", 4, "online"))
        )

        assert resp.json()["data"]["content"].startswith("Invalid presence:")
        assert fake.presences == []
