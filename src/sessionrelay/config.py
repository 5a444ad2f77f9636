"""Global configuration — XDG paths, env vars, defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

_ENV_PREFIX = "SESSIONRELAY_"


def _default_data_dir() -> Path:
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "sessionrelay"
    return Path.home() / ".local" / "share" / "sessionrelay"


def _env(name: str) -> str | None:
    return os.environ.get(_ENV_PREFIX + name) or None


@dataclass
class RelayConfig:
    """Application-wide configuration."""

    data_dir: Path = field(default_factory=_default_data_dir)

    # Control surface
    api_token: str = ""
    web_host: str = "127.0.0.1"
    web_port: int = 3001

    # Backend notifications
    backend_url: str = ""
    backend_token: str = ""
    notify_prefix: str = "whatsapp"
    notify_timeout: float = 5.0

    # Session client
    client_factory: str = "sessionrelay.session.loopback:LoopbackClient"
    recipient_suffix: str = "@c.us"
    connect_timeout: float = 120.0
    send_timeout: float = 30.0

    # Reconnect backoff (seconds)
    reconnect_base_delay: float = 5.0
    reconnect_max_delay: float = 60.0
    reconnect_max_attempts: int = 10

    keepalive_interval: float = 60.0

    # Memory guard
    memory_limit_mb: float = 450.0
    memory_check_interval: float = 60.0

    # Inbound queue
    queue_capacity: int = 100
    queue_pacing_delay: float = 0.1

    autoreply_path: Path | None = None
    verbose: bool = False

    @property
    def auth_dir(self) -> Path:
        """Where the session client keeps its re-authentication artifacts."""
        return self.data_dir / "auth"

    @property
    def public_dir(self) -> Path:
        return self.data_dir / "public"

    @property
    def qr_path(self) -> Path:
        return self.public_dir / "qr.png"

    @property
    def effective_backend_token(self) -> str:
        """Backend token, falling back to the control-surface token."""
        return self.backend_token or self.api_token

    @classmethod
    def load(cls) -> RelayConfig:
        """Load config from environment variables with XDG defaults."""
        config = cls()

        env_data_dir = _env("DATA_DIR")
        if env_data_dir:
            config.data_dir = Path(env_data_dir)

        config.api_token = _env("API_TOKEN") or config.api_token
        config.backend_url = _env("BACKEND_URL") or config.backend_url
        config.backend_token = _env("BACKEND_TOKEN") or config.backend_token
        config.client_factory = _env("CLIENT") or config.client_factory

        env_port = _env("WEB_PORT") or os.environ.get("PORT")
        if env_port:
            config.web_port = int(env_port)

        env_host = _env("WEB_HOST")
        if env_host:
            config.web_host = env_host

        for attr, name, cast in (
            ("notify_timeout", "NOTIFY_TIMEOUT", float),
            ("connect_timeout", "CONNECT_TIMEOUT", float),
            ("send_timeout", "SEND_TIMEOUT", float),
            ("reconnect_base_delay", "RECONNECT_BASE_DELAY", float),
            ("reconnect_max_delay", "RECONNECT_MAX_DELAY", float),
            ("reconnect_max_attempts", "RECONNECT_MAX_ATTEMPTS", int),
            ("keepalive_interval", "KEEPALIVE_INTERVAL", float),
            ("memory_limit_mb", "MEMORY_LIMIT_MB", float),
            ("memory_check_interval", "MEMORY_CHECK_INTERVAL", float),
            ("queue_capacity", "QUEUE_CAPACITY", int),
            ("queue_pacing_delay", "QUEUE_PACING_DELAY", float),
        ):
            raw = _env(name)
            if raw:
                setattr(config, attr, cast(raw))

        env_replies = _env("AUTOREPLY_PATH")
        if env_replies:
            config.autoreply_path = Path(env_replies)

        return config
