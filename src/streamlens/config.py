"""Layered configuration: .streamlens/config.toml -> STREAMLENS_* env vars -> defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

try:
    import tomllib  # 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Where the event streams and services directory live."""

    url: str = "http://127.0.0.1:8080"
    timeout: float = 10.0


@dataclass(frozen=True, slots=True)
class BufferConfig:
    """Caps for the bounded in-memory windows."""

    history_limit: int = 2000
    panel_limit: int = 800
    call_limit: int = 500


@dataclass(frozen=True, slots=True)
class TrafficConfig:
    """Traffic explorer settings."""

    ranked_limit: int = 200


@dataclass(frozen=True, slots=True)
class StreamConfig:
    """Reconnect and persistence timing."""

    reconnect_delay: float = 3.0
    debounce_seconds: float = 0.25


@dataclass(frozen=True, slots=True)
class StreamlensConfig:
    """Top-level configuration container."""

    project_path: Path = field(default_factory=Path.cwd)
    server: ServerConfig = field(default_factory=ServerConfig)
    buffers: BufferConfig = field(default_factory=BufferConfig)
    traffic: TrafficConfig = field(default_factory=TrafficConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)

    @property
    def streamlens_dir(self) -> Path:
        return self.project_path / ".streamlens"

    @property
    def config_path(self) -> Path:
        return self.streamlens_dir / "config.toml"

    @classmethod
    def load(
        cls,
        project_path: Path | None = None,
        url: str | None = None,
    ) -> StreamlensConfig:
        """Load config with layering: TOML file -> env vars -> defaults.

        An explicit ``url`` (from the command line) wins over every layer.
        """
        project = Path(project_path) if project_path else Path.cwd()
        toml_path = project / ".streamlens" / "config.toml"

        toml_data: dict = {}
        if toml_path.is_file():
            with open(toml_path, "rb") as f:
                toml_data = tomllib.load(f)

        server_data = toml_data.get("server", {})
        buffer_data = toml_data.get("buffers", {})
        traffic_data = toml_data.get("traffic", {})
        stream_data = toml_data.get("stream", {})

        # Use literal defaults (slots=True prevents class-level attribute access)
        _server = ServerConfig()
        _buffers = BufferConfig()
        _traffic = TrafficConfig()
        _stream = StreamConfig()

        server = ServerConfig(
            url=url or _layer("STREAMLENS_URL", server_data, "url", _server.url, str),
            timeout=_layer("STREAMLENS_TIMEOUT", server_data, "timeout", _server.timeout, float),
        )

        buffers = BufferConfig(
            history_limit=_layer(
                "STREAMLENS_HISTORY_LIMIT", buffer_data, "history_limit", _buffers.history_limit, int
            ),
            panel_limit=_layer(
                "STREAMLENS_PANEL_LIMIT", buffer_data, "panel_limit", _buffers.panel_limit, int
            ),
            call_limit=_layer(
                "STREAMLENS_CALL_LIMIT", buffer_data, "call_limit", _buffers.call_limit, int
            ),
        )

        traffic = TrafficConfig(
            ranked_limit=_layer(
                "STREAMLENS_RANKED_LIMIT", traffic_data, "ranked_limit", _traffic.ranked_limit, int
            ),
        )

        stream = StreamConfig(
            reconnect_delay=_layer(
                "STREAMLENS_RECONNECT_DELAY",
                stream_data,
                "reconnect_delay",
                _stream.reconnect_delay,
                float,
            ),
            debounce_seconds=_layer(
                "STREAMLENS_DEBOUNCE_SECONDS",
                stream_data,
                "debounce_seconds",
                _stream.debounce_seconds,
                float,
            ),
        )

        return cls(
            project_path=project,
            server=server,
            buffers=buffers,
            traffic=traffic,
            stream=stream,
        )


def _layer(env_name: str, section: dict, key: str, default: Any, cast: Callable[[Any], Any]) -> Any:
    return cast(os.environ.get(env_name, section.get(key, default)))
