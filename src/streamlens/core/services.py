"""Services directory: fetch, endpoint labels, per-service colors."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import httpx

from streamlens.core.parser import PayloadError, load_json, parse_services
from streamlens.models.logs import ServiceInfo

logger = logging.getLogger("streamlens.services")

SERVICES_PATH = "/api/services"

PALETTE = (
    "#e07a5f",
    "#3d405b",
    "#81b29a",
    "#f2cc8f",
    "#f4a261",
    "#2a9d8f",
    "#6d597a",
    "#f94144",
    "#8ecae6",
)


class DirectoryError(Exception):
    """The services directory could not be loaded."""


async def fetch_services(client: httpx.AsyncClient, base_url: str) -> list[ServiceInfo]:
    url = base_url.rstrip("/") + SERVICES_PATH
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise DirectoryError(f"GET {url} failed: {exc}") from exc

    try:
        return parse_services(load_json(response.text))
    except PayloadError as exc:
        raise DirectoryError(f"Malformed services response: {exc}") from exc


def endpoints_of(service: ServiceInfo) -> list[str]:
    if service.endpoints:
        return list(service.endpoints)
    if service.endpoint:
        return [service.endpoint]
    return []


def endpoint_label(endpoint: str) -> str:
    """``host:port`` of an endpoint URL, or the raw string when it is not one."""
    try:
        parts = urlsplit(endpoint)
        host = parts.netloc if parts.scheme else ""
    except ValueError:
        host = ""
    if host:
        return host
    return endpoint.replace("http://", "")


class ServicePalette:
    """Hands out palette colors in first-seen order, stable per name."""

    def __init__(self, palette: tuple[str, ...] = PALETTE) -> None:
        self._palette = palette
        self._assigned: dict[str, str] = {}

    def color_for(self, service: str) -> str:
        if service not in self._assigned:
            self._assigned[service] = self._palette[len(self._assigned) % len(self._palette)]
        return self._assigned[service]
