"""Panel filter predicate and panel labels."""

from __future__ import annotations

from streamlens.models.logs import LogEvent, Panel


def matches(panel: Panel, event: LogEvent) -> bool:
    """Does ``event`` belong in ``panel``?

    The service allow-list gates first. Include and exclude are independent:
    with both set, a line needs at least one include token and no exclude
    token.
    """
    if panel.filter is not None and event.service not in panel.filter:
        return False
    if not panel.include and not panel.exclude:
        return True

    line = str(event.line).lower()
    if panel.include and not any(token in line for token in panel.include):
        return False
    if panel.exclude and any(token in line for token in panel.exclude):
        return False
    return True


def panel_meta(panel: Panel) -> str:
    """Short header label, e.g. ``AUTH | +1 include``."""
    label = "ALL SERVICES"
    if panel.filter and len(panel.filter) == 1:
        label = next(iter(panel.filter)).upper()
    elif panel.filter:
        label = f"{len(panel.filter)} SERVICES"

    parts = [label]
    if panel.include:
        parts.append(f"+{len(panel.include)} include")
    if panel.exclude:
        parts.append(f"-{len(panel.exclude)} exclude")
    return " | ".join(parts)
