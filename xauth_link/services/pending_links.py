"""Short-lived correlation state for the two-legged link flow.

``/start`` issues a Discord-leg state bound to a community; the Discord
callback consumes it and parks a :class:`PendingLink` under a fresh XAuth-leg
state. Both stores hand out each token once and forget entries after a TTL.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from xauth_link.services.discord_api import DiscordUser

T = TypeVar("T")


@dataclass(frozen=True)
class PendingLink:
    """A user who finished the Discord leg and is on their way through XAuth."""

    community: str
    discord_access_token: str
    discord_refresh_token: str
    discord_user: DiscordUser
    code_verifier: str


class ExpiringStore(Generic[T]):
    """Map of random tokens to values, each consumable once within *ttl_seconds*.

    Expired entries are dropped lazily whenever a token is issued or popped.
    """

    def __init__(
        self,
        ttl_seconds: float = 600,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[T, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, token: object) -> bool:
        if not isinstance(token, str):
            return False
        entry = self._entries.get(token)
        return entry is not None and not self._expired(entry[1])

    def _expired(self, created_at: float) -> bool:
        return self._clock() - created_at > self.ttl_seconds

    def issue(self, value: T) -> str:
        """Store *value* under a new random token and return the token."""
        self.purge_expired()
        token = secrets.token_hex(16)
        self._entries[token] = (value, self._clock())
        return token

    def pop(self, token: str | None) -> T | None:
        """Consume *token*. Returns ``None`` if unknown, already used, or expired."""
        self.purge_expired()
        if not token:
            return None
        entry = self._entries.pop(token, None)
        if entry is None:
            return None
        return entry[0]

    def purge_expired(self) -> int:
        stale = [key for key, (_, created) in self._entries.items() if self._expired(created)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()


class LinkFlowState:
    """Per-application container for both legs' correlation stores."""

    def __init__(self, ttl_seconds: float = 600, *, clock: Callable[[], float] = time.monotonic):
        self.discord_states: ExpiringStore[str] = ExpiringStore(ttl_seconds, clock=clock)
        self.pending_links: ExpiringStore[PendingLink] = ExpiringStore(ttl_seconds, clock=clock)
