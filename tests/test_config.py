"""Tests for settings loading and community resolution."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import make_community
from xauth_link.config import CommunityNotFoundError, Settings, is_production


def _community_json(client_id: str) -> dict:
    return make_community(client_id).model_dump()


class TestSettings:
    def test_plain_postgres_url_is_made_async(self, tmp_path: Path) -> None:
        settings = Settings(
            database_url="postgresql://u:p@db:5432/links",
            communities_file=tmp_path / "none.json",
        )
        assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/links"

    def test_communities_loaded_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"main": _community_json("777")}), encoding="utf-8")

        settings = Settings(communities_file=path)

        assert list(settings.communities) == ["main"]
        assert settings.communities["main"].discord.client_id == "777"
        assert settings.communities["main"].xauth.scopes == ["profile"]

    def test_communities_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("XAUTH_LINK_COMMUNITIES", json.dumps({"env": _community_json("888")}))
        settings = Settings(communities_file=tmp_path / "none.json")
        assert settings.communities["env"].discord.client_id == "888"

    def test_redirect_uris(self, tmp_path: Path) -> None:
        settings = Settings(base_url="https://link.example.com/", communities_file=tmp_path / "x")
        assert settings.discord_redirect_uri == "https://link.example.com/discord/callback"
        assert settings.xauth_redirect_uri == "https://link.example.com/xauth/callback"


class TestCommunityResolution:
    def test_get_community(self, settings: Settings) -> None:
        assert settings.get_community("alpha").discord.client_id == "123"
        with pytest.raises(CommunityNotFoundError):
            settings.get_community("gamma")

    def test_by_application_id(self, settings: Settings) -> None:
        key, community = settings.community_for_application("456")
        assert key == "beta"
        assert community.discord.client_id == "456"

    @pytest.mark.parametrize("application_id", ["999", "", None])
    def test_unknown_application_id(self, settings: Settings, application_id) -> None:
        with pytest.raises(CommunityNotFoundError):
            settings.community_for_application(application_id)

    def test_default_community(self, settings: Settings) -> None:
        assert settings.resolve_default_community() == "alpha"

    def test_single_community_is_default(self, tmp_path: Path) -> None:
        settings = Settings(
            communities={"only": make_community("1")}, communities_file=tmp_path / "x"
        )
        assert settings.resolve_default_community() == "only"

    def test_ambiguous_default(self, settings: Settings) -> None:
        settings = settings.model_copy(update={"default_community": None})
        with pytest.raises(CommunityNotFoundError):
            settings.resolve_default_community()


class TestEnvironment:
    @pytest.mark.parametrize(
        ("env", "expected"),
        [("production", True), ("staging", True), ("development", False), ("test", False)],
    )
    def test_is_production(self, monkeypatch: pytest.MonkeyPatch, env: str, expected: bool) -> None:
        monkeypatch.setenv("XAUTH_LINK_ENV", env)
        assert is_production() is expected
