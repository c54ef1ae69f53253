"""Panel configuration <-> query string.

One panel serializes to ``key=value`` groups joined by ``,``; panels are
joined by ``;``. Neither character survives token encoding, so the nesting
stays unambiguous. Defaulted fields are omitted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from streamlens.core.tokens import (
    decode_token,
    decode_token_list,
    encode_token_list,
    normalize_filter_token,
    normalize_service_token,
)
from streamlens.models.logs import Panel, PanelConfig

logger = logging.getLogger("streamlens.url_state")

GROUP_SEPARATOR = ","
PANEL_SEPARATOR = ";"
URL_STATE_KEY = "panels"
URL_ACTIVE_KEY = "active"

# Leading integer, as a browser's parseInt reads it: "2abc" is 2, "1_0" is 1.
_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def serialize_panel_config(panel: Panel | PanelConfig) -> str:
    config = panel.to_config() if isinstance(panel, Panel) else panel
    parts: list[str] = []
    if not config.services:
        parts.append("svc=all")
    else:
        parts.append(f"svc={encode_token_list(config.services)}")

    include = [token for token in config.include if token]
    if include:
        parts.append(f"inc={encode_token_list(include)}")
    exclude = [token for token in config.exclude if token]
    if exclude:
        parts.append(f"exc={encode_token_list(exclude)}")
    if not config.follow:
        parts.append("follow=0")
    return GROUP_SEPARATOR.join(parts)


def serialize_panels_config(panels: Iterable[Panel | PanelConfig]) -> str:
    return PANEL_SEPARATOR.join(serialize_panel_config(panel) for panel in panels)


def parse_panel_config(raw: str) -> PanelConfig:
    """Parse one panel. Unknown keys are ignored; a bad ``svc`` means all."""
    services: tuple[str, ...] | None = None
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    follow = True

    for part in (raw or "").split(GROUP_SEPARATOR):
        if not part:
            continue
        key, _, value = part.partition("=")
        if key == "svc":
            if not value or value == "all":
                services = None
            else:
                services = tuple(decode_token_list(value, normalize_service_token)) or None
        elif key == "inc":
            include = tuple(decode_token_list(value, normalize_filter_token))
        elif key == "exc":
            exclude = tuple(decode_token_list(value, normalize_filter_token))
        elif key == "follow":
            follow = value != "0"
        else:
            logger.debug("Ignoring unknown panel key %r", key)

    return PanelConfig(services=services, include=include, exclude=exclude, follow=follow)


def parse_panels_config(raw: str | None) -> list[PanelConfig] | None:
    if not raw:
        return None
    entries = [entry.strip() for entry in raw.split(PANEL_SEPARATOR)]
    return [parse_panel_config(entry) for entry in entries if entry]


def parse_active_index(raw: str | None, panel_count: int | None = None) -> int | None:
    """Parse the 1-based active parameter into a 0-based index, or None."""
    if not raw:
        return None
    match = _LEADING_INT.match(decode_token(raw))
    if match is None:
        return None
    index = int(match.group()) - 1
    if index < 0:
        return None
    if panel_count is not None and index >= panel_count:
        return None
    return index


def _split_query(query: str) -> list[tuple[str, str]]:
    pairs = []
    for pair in query.lstrip("?").split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        pairs.append((key, value))
    return pairs


def get_raw_query_param(query: str, name: str) -> str | None:
    """First raw (still encoded) value of ``name`` in ``query``."""
    for key, value in _split_query(query):
        if key == name:
            return value
    return None


def read_state_from_query(query: str) -> tuple[list[PanelConfig] | None, int | None]:
    panels = parse_panels_config(get_raw_query_param(query, URL_STATE_KEY))
    active = parse_active_index(
        get_raw_query_param(query, URL_ACTIVE_KEY),
        len(panels) if panels is not None else None,
    )
    return panels, active


def build_query_string(query: str, panels_value: str, active_index: int | None) -> str:
    """Rewrite the panel parameters of ``query``, keeping every other pair verbatim."""
    parts = [
        pair
        for pair in query.lstrip("?").split("&")
        if pair and pair.partition("=")[0] not in (URL_STATE_KEY, URL_ACTIVE_KEY)
    ]
    if panels_value:
        parts.append(f"{URL_STATE_KEY}={panels_value}")
    if active_index is not None:
        parts.append(f"{URL_ACTIVE_KEY}={active_index + 1}")
    if not parts:
        return ""
    return "?" + "&".join(parts)


def state_signature(panels: Sequence[Panel | PanelConfig], active_index: int | None) -> str:
    """Identity of what would be written; equal signatures mean no write."""
    active = "" if active_index is None else str(active_index + 1)
    return f"{serialize_panels_config(panels)}#{active}"
