"""Static slash-command and role-connection metadata schemas registered with Discord."""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from xauth_link.i18n import DEFAULT_LANG, localizations, t


class CommandType(IntEnum):
    CHAT_INPUT = 1


class OptionType(IntEnum):
    STRING = 3
    INTEGER = 4
    USER = 6


class MetadataType(IntEnum):
    BOOLEAN_EQUAL = 7


def _described(key: str) -> dict[str, Any]:
    return {
        "description": t(key, DEFAULT_LANG),
        "description_localizations": localizations(key),
    }


def _user_option(key: str, *, required: bool) -> dict[str, Any]:
    return {"name": "user", "type": OptionType.USER, "required": required, **_described(key)}


def slash_commands() -> list[dict[str, Any]]:
    """Global command list; PUTting it replaces whatever was registered before."""
    return [
        {
            "name": "update",
            "type": CommandType.CHAT_INPUT,
            **_described("COMMAND_UPDATE_DESCRIPTION"),
        },
        {
            "name": "ping",
            "type": CommandType.CHAT_INPUT,
            **_described("COMMAND_PING_DESCRIPTION"),
        },
        {
            "name": "whois",
            "type": CommandType.CHAT_INPUT,
            **_described("COMMAND_WHOIS_DESCRIPTION"),
            "options": [_user_option("COMMAND_WHOIS_OPTION_USER_DESCRIPTION", required=False)],
        },
        {
            "name": "myinfo",
            "type": CommandType.CHAT_INPUT,
            **_described("COMMAND_MYINFO_DESCRIPTION"),
        },
        {
            "name": "refresh",
            "type": CommandType.CHAT_INPUT,
            **_described("COMMAND_REFRESH_DESCRIPTION"),
            "options": [_user_option("COMMAND_REFRESH_OPTION_USER_DESCRIPTION", required=True)],
        },
        {
            "name": "setpresence",
            "type": CommandType.CHAT_INPUT,
            **_described("COMMAND_SETPRESENCE_DESCRIPTION"),
            "options": [
                {
                    "name": "name",
                    "type": OptionType.STRING,
                    "required": True,
                    **_described("COMMAND_SETPRESENCE_OPTION_NAME_DESCRIPTION"),
                },
                {
                    "name": "type",
                    "type": OptionType.INTEGER,
                    "required": True,
                    **_described("COMMAND_SETPRESENCE_OPTION_TYPE_DESCRIPTION"),
                    "choices": [
                        {"name": "Playing", "value": 0},
                        {"name": "Streaming", "value": 1},
                        {"name": "Listening", "value": 2},
                        {"name": "Watching", "value": 3},
                        {"name": "Competing", "value": 5},
                    ],
                },
                {
                    "name": "status",
                    "type": OptionType.STRING,
                    "required": True,
                    **_described("COMMAND_SETPRESENCE_OPTION_STATUS_DESCRIPTION"),
                    "choices": [
                        {"name": "Online", "value": "online"},
                        {"name": "Idle", "value": "idle"},
                        {"name": "Do Not Disturb", "value": "dnd"},
                        {"name": "Offline", "value": "offline"},
                    ],
                },
            ],
            # Administrators only until a server grants it to other roles
            "default_member_permissions": "0",
        },
    ]


def role_connection_metadata() -> list[dict[str, Any]]:
    return [
        {
            "key": "linked",
            "name": t("METADATA_LINKED_NAME", DEFAULT_LANG),
            "name_localizations": localizations("METADATA_LINKED_NAME"),
            "description": t("METADATA_LINKED_DESCRIPTION", DEFAULT_LANG),
            "description_localizations": localizations("METADATA_LINKED_DESCRIPTION"),
            "type": MetadataType.BOOLEAN_EQUAL,
        }
    ]
