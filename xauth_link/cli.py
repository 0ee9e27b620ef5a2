"""
XAuth Link CLI - administer linked accounts and run the web service.

Entry point:
    xauth-link serve                       - run the HTTP service
    xauth-link list|prune|refresh-all      - maintain the link store
    xauth-link register-discord-commands   - publish slash commands
    xauth-link register-metadata           - publish the linked-role schema
    xauth-link shell                       - interactive prompt for the above
"""

from __future__ import annotations

import argparse
import asyncio
import shlex
import sys
from typing import Any, Awaitable, Callable

import httpx
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession

from xauth_link.config import CommunityConfig, Settings, get_settings
from xauth_link.database import init_engine, session_scope, shutdown_engine
from xauth_link.logging_config import configure_logging
from xauth_link.services import admin
from xauth_link.services.discord_api import DiscordAPIError

SHELL_PROMPT = "xauth-link> "
SHELL_EXIT_WORDS = {"quit", "exit"}


def validate_port(value: str) -> int:
    """Validate port number is in valid range."""
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid port number: {value}")

    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"Port must be between 1 and 65535, got: {port}")
    return port


def build_parser(prog: str = "xauth-link") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="XAuth Link - Discord linked roles for XAuthConnect accounts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  xauth-link serve --port 3000           # Run the web service
  xauth-link list --community main       # Show links for one community
  xauth-link prune                       # Drop users who left their guild
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument(
        "--host", default=None, help="Bind address (default: $XAUTH_LINK_HOST)"
    )
    serve_parser.add_argument(
        "--port",
        "-p",
        type=validate_port,
        default=None,
        help="Listen port (default: $XAUTH_LINK_PORT or 3000)",
    )

    for name, help_text in (
        ("list", "Lists all linked users from the database."),
        ("prune", "Removes users who are no longer in the community's Discord guild."),
        ("refresh-all", "Refreshes tokens and metadata for all linked users."),
        ("register-discord-commands", "Registers the slash commands with Discord."),
        ("register-metadata", "Registers the linked-role metadata schema with Discord."),
    ):
        sub = subparsers.add_parser(name, help=help_text, description=help_text)
        sub.add_argument(
            "--community",
            "-c",
            default=None,
            help="Only act on this community (default: all configured communities)",
        )

    subparsers.add_parser("shell", help="Start an interactive command prompt")
    return parser


# ---------------------------------------------------------------------------
# Database-backed commands
# ---------------------------------------------------------------------------


async def _with_session(settings: Settings, work: Callable[[AsyncSession], Awaitable[int]]) -> int:
    init_engine(settings)
    try:
        async with session_scope() as session:
            return await work(session)
    finally:
        await shutdown_engine()


def _print_keys(label: str, keys: list[tuple[str, str]]) -> None:
    for site, discord_id in keys:
        print(f"  {label}: {discord_id} ({site})")


async def _cmd_list(settings: Settings, community: str | None) -> int:
    async def work(session: AsyncSession) -> int:
        links = await admin.list_links(session, community)
        if not links:
            print("No linked users found.")
            return 0
        print(f"{'SITE':<16} {'DISCORD ID':<20} {'XAUTH USERNAME':<24} XAUTH ID")
        for link in links:
            print(f"{link.site:<16} {link.discord_id:<20} {link.xauth_username:<24} {link.xauth_id}")
        print(f"\n{len(links)} linked user(s).")
        return 0

    return await _with_session(settings, work)


async def _cmd_prune(settings: Settings, community: str | None) -> int:
    async def work(session: AsyncSession) -> int:
        report = await admin.prune(session, settings.communities, community)
        print(
            f"Checked {report.checked}, removed {len(report.removed)}, "
            f"errors {len(report.errors)}."
        )
        _print_keys("removed", report.removed)
        _print_keys("error", report.errors)
        return 1 if report.errors else 0

    return await _with_session(settings, work)


async def _cmd_refresh_all(settings: Settings, community: str | None) -> int:
    async def work(session: AsyncSession) -> int:
        report = await admin.refresh_all(session, settings.communities, community)
        print(
            f"Refreshed {len(report.refreshed)}, removed {len(report.removed)}, "
            f"failed {len(report.failed)}."
        )
        _print_keys("removed", report.removed)
        _print_keys("failed", report.failed)
        return 1 if report.failed else 0

    return await _with_session(settings, work)


# ---------------------------------------------------------------------------
# Discord registration commands
# ---------------------------------------------------------------------------


Registrar = Callable[[str, CommunityConfig], Awaitable[list[dict[str, Any]]]]


async def _register_each(settings: Settings, community: str | None, register: Registrar) -> int:
    keys = [community] if community else list(settings.communities)
    if not keys:
        print("Error: no communities configured")
        return 1
    failures = 0
    for key in keys:
        try:
            registered = await register(key, settings.communities[key])
        except (ValueError, DiscordAPIError, httpx.HTTPError) as exc:
            print(f"Error registering for {key}: {exc}")
            failures += 1
            continue
        print(f"{key}: registered {len(registered)} item(s).")
    return 1 if failures else 0


async def _cmd_register_commands(settings: Settings, community: str | None) -> int:
    return await _register_each(settings, community, admin.register_commands)


async def _cmd_register_metadata(settings: Settings, community: str | None) -> int:
    return await _register_each(settings, community, admin.register_metadata)


AdminCommand = Callable[[Settings, str | None], Awaitable[int]]

ADMIN_COMMANDS: dict[str, AdminCommand] = {
    "list": _cmd_list,
    "prune": _cmd_prune,
    "refresh-all": _cmd_refresh_all,
    "register-discord-commands": _cmd_register_commands,
    "register-metadata": _cmd_register_metadata,
}


def run_admin_command(args: argparse.Namespace, settings: Settings) -> int:
    community = getattr(args, "community", None)
    if community and community not in settings.communities:
        print(f"Error: community '{community}' is not configured")
        return 1
    return asyncio.run(ADMIN_COMMANDS[args.command](settings, community))


# ---------------------------------------------------------------------------
# serve / shell
# ---------------------------------------------------------------------------


def serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from xauth_link.main import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return 0


def shell(settings: Settings, parser: argparse.ArgumentParser | None = None) -> int:
    """Read commands from stdin until ``quit``/``exit`` or end of input."""
    parser = parser or build_parser()
    print("Type 'help' for a list of commands, 'quit' to leave.")
    while True:
        try:
            line = input(SHELL_PROMPT)
        except EOFError:
            print()
            return 0
        except KeyboardInterrupt:
            print()
            continue

        try:
            words = shlex.split(line)
        except ValueError as exc:
            print(f"Error: {exc}")
            continue
        if not words:
            continue
        if words[0] in SHELL_EXIT_WORDS:
            return 0
        if words[0] == "help":
            parser.print_help()
            continue
        if words[0] not in ADMIN_COMMANDS:
            print(f"Unknown command: {words[0]}. Type 'help' for a list of commands.")
            continue

        # argparse reports bad arguments by raising SystemExit
        try:
            args = parser.parse_args(words)
        except SystemExit:
            continue
        run_admin_command(args, settings)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "serve":
        return serve(args, settings)
    if args.command == "shell":
        return shell(settings)
    return run_admin_command(args, settings)


if __name__ == "__main__":
    sys.exit(main())
