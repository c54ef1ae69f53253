"""URL-safe encoding of filter tokens and token lists.

Tokens are percent-encoded with the same unreserved set a browser's
``encodeURIComponent`` leaves alone, except that ``~`` is escaped too so it
can serve as the list separator.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from urllib.parse import quote, unquote

LIST_SEPARATOR = "~"

_SAFE = "-_.!*'()"


def normalize_filter_token(value: str) -> str:
    """Free-text include/exclude tokens match case-insensitively."""
    if not value:
        return ""
    return value.strip().lower()


def normalize_service_token(value: str) -> str:
    """Service names are case-sensitive; only surrounding blanks go."""
    if not value:
        return ""
    return value.strip()


def encode_token(value: str) -> str:
    return quote(value, safe=_SAFE).replace("~", "%7E")


def decode_token(value: str) -> str:
    """Best-effort decode. Never raises; a bad escape yields the raw text."""
    if not value:
        return ""
    sanitized = value.replace("+", " ")
    try:
        return unquote(sanitized, errors="strict")
    except UnicodeDecodeError:
        return sanitized


def encode_token_list(tokens: Iterable[str]) -> str:
    return LIST_SEPARATOR.join(encode_token(token) for token in tokens)


def decode_token_list(
    value: str,
    normalizer: Callable[[str], str] = normalize_service_token,
) -> list[str]:
    if not value:
        return []
    decoded = (normalizer(decode_token(token)) for token in value.split(LIST_SEPARATOR))
    return [token for token in decoded if token]


def normalize_tokens(tokens: Iterable[str]) -> list[str]:
    """Normalize editor input into filter tokens, dropping blanks and repeats."""
    result: list[str] = []
    for token in tokens:
        normalized = normalize_filter_token(token)
        if normalized and normalized not in result:
            result.append(normalized)
    return result
