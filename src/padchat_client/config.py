"""Client configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace

DEFAULT_URL = "ws://127.0.0.1:7777"

_TRUTHY = ("1", "true", "yes")


@dataclass
class ClientConfig:
    """Configuration for a PadchatClient.

    All values are supplied at construction; defaults match the gateway's
    out-of-the-box setup.
    """

    # Gateway address (scheme + host + port)
    url: str = DEFAULT_URL

    # Default per-request timeout, in seconds
    timeout: float = 30.0

    # Minimum seconds between two connect() attempts
    min_connect_interval: float = 0.2

    # Reject outstanding requests immediately when the socket closes
    fail_pending_on_close: bool = True

    # Keep-alive, passed through to websockets
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0

    # Largest inbound frame accepted, in bytes (None disables the limit)
    max_frame_size: int | None = 16 * 1024 * 1024

    # Reconnection (used by Reconnector only; the transport never reconnects)
    auto_reconnect: bool = False
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    reconnect_backoff: float = 2.0

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.min_connect_interval < 0:
            raise ValueError(
                f"min_connect_interval must not be negative, got {self.min_connect_interval}"
            )
        if not self.url.startswith(("ws://", "wss://")):
            raise ValueError(f"url must use ws:// or wss://, got {self.url!r}")

    def with_overrides(self, **overrides: object) -> ClientConfig:
        """Return a copy with the non-None overrides applied."""
        known = {f.name for f in fields(self)}
        changes = {k: v for k, v in overrides.items() if v is not None and k in known}
        return replace(self, **changes)

    @classmethod
    def from_env(
        cls,
        prefix: str = "PADCHAT_",
        environ: Mapping[str, str] | None = None,
    ) -> ClientConfig:
        """Build a config from environment variables.

        Recognised: ``{prefix}URL``, ``{prefix}TIMEOUT``,
        ``{prefix}MIN_CONNECT_INTERVAL``, ``{prefix}AUTO_RECONNECT``.
        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        if url := env.get(f"{prefix}URL"):
            kwargs["url"] = url
        numeric = (("TIMEOUT", "timeout"), ("MIN_CONNECT_INTERVAL", "min_connect_interval"))
        for name, attr in numeric:
            raw = env.get(f"{prefix}{name}")
            if raw is None or raw == "":
                continue
            try:
                kwargs[attr] = float(raw)
            except ValueError as e:
                raise ValueError(f"{prefix}{name} must be a number, got {raw!r}") from e
        if (raw := env.get(f"{prefix}AUTO_RECONNECT")) is not None:
            kwargs["auto_reconnect"] = raw.strip().lower() in _TRUTHY

        return cls(**kwargs)  # type: ignore[arg-type]
