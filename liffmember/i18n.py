"""Thai/English strings for messages the API shows to LIFF users.

Strings live in ``locales/<lang>.json``. Thai is the storefront language, so
every lookup falls back to it before falling back to the key itself.
"""

import json
from pathlib import Path

DEFAULT_LANG = "th"

_locales_dir = Path(__file__).parent / "locales"
_catalogs: dict[str, dict[str, str]] = {}

# Language names as the model should read them in the system prompt
LANG_NAMES: dict[str, str] = {
    "th": "Thai",
    "en": "English",
}


def resolve_lang(lang: str) -> str:
    """Reduce a LIFF/browser locale such as ``en-US`` or ``th_TH`` to its language."""
    base = (lang or DEFAULT_LANG).replace("_", "-").split("-", 1)[0].lower()
    return base or DEFAULT_LANG


def _catalog(lang: str) -> dict[str, str]:
    if lang not in _catalogs:
        path = _locales_dir / f"{lang}.json"
        _catalogs[lang] = json.loads(path.read_text(encoding="utf-8")) if path.exists() else {}
    return _catalogs[lang]


def lang_instruction(lang: str) -> str:
    lang = resolve_lang(lang)
    return f" Always respond in {LANG_NAMES.get(lang, lang)}."


def t(key: str, lang: str = DEFAULT_LANG, **kwargs) -> str:
    lang = resolve_lang(lang)
    text = _catalog(lang).get(key)
    if text is None:
        text = _catalog(DEFAULT_LANG).get(key, key)
    return text.format(**kwargs) if kwargs else text
