"""FastAPI dependencies exposing the per-application state built in ``create_app``."""

from __future__ import annotations

from fastapi import Request

from xauth_link.config import Settings
from xauth_link.services.pending_links import LinkFlowState
from xauth_link.services.presence import PresenceBot


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_link_flow(request: Request) -> LinkFlowState:
    return request.app.state.link_flow


def get_presence_bots(request: Request) -> dict[str, PresenceBot]:
    return request.app.state.presence_bots
