from __future__ import annotations

import re
import unicodedata

from client_match.errors import InvalidInputError

# Anything that is not a word character, whitespace or a hyphen.
_PUNCTUATION = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str | None) -> str:
    """Canonical comparison form of a name, nickname, client id or search term.

    "  O'Brien,  Jr. " -> "obrien jr". Hyphens survive ("garcia-lopez").
    Raises InvalidInputError when nothing comparable is left.
    """
    normalized = normalize_or_empty(text)
    if not normalized:
        raise InvalidInputError("text is empty after normalization", details={"text": text})
    return normalized


def normalize_or_empty(text: str | None) -> str:
    """Like normalize(), but blank input yields "" instead of an error."""
    if text is None:
        return ""
    value = unicodedata.normalize("NFKC", str(text)).lower()
    value = _PUNCTUATION.sub("", value)
    return _WHITESPACE.sub(" ", value).strip()


def join_name(*parts: str | None) -> str:
    return " ".join(part.strip() for part in parts if part and part.strip())
