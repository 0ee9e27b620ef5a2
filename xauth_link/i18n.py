"""Locale tables shipped in ``xauth_link/locales`` and lookup helpers."""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
DEFAULT_LANG = "en"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@lru_cache(maxsize=1)
def load_locales() -> dict[str, dict[str, str]]:
    """Load every ``<lang>.json`` table; a broken file yields an empty table."""
    locales: dict[str, dict[str, str]] = {}
    for path in sorted(LOCALES_DIR.glob("*.json")):
        try:
            locales[path.stem] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Error loading locale file %s", path.name)
            locales[path.stem] = {}
    return locales


def language_from_locale(locale: str | None) -> str:
    """Reduce a Discord locale such as ``en-US`` to its language (``en``)."""
    if not locale:
        return DEFAULT_LANG
    return locale.split("-")[0] or DEFAULT_LANG


def t(key: str, lang: str = DEFAULT_LANG, **replacements: object) -> str:
    """Translate *key*, falling back to English and then to the key itself.

    ``{name}`` placeholders are filled from *replacements*; unknown ones are
    left untouched.
    """
    locales = load_locales()
    text = locales.get(lang, {}).get(key) or locales.get(DEFAULT_LANG, {}).get(key) or key

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in replacements:
            return str(replacements[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, text)


def localizations(key: str, default_lang: str = DEFAULT_LANG) -> dict[str, str]:
    """Build a Discord ``*_localizations`` map from every non-default locale."""
    return {
        lang: table[key]
        for lang, table in load_locales().items()
        if lang != default_lang and table.get(key)
    }
