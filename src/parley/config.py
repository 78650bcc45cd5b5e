"""Client configuration.

Uses pydantic-settings ``BaseSettings`` sub-configs grouped under a top-level
``ClientConfig``.  Every value can be overridden via env vars using the
per-section prefix, e.g. ``PARLEY_GATEWAY_MAX_ATTEMPTS=3``.

Components take their section explicitly and fall back to the module-level
``config`` singleton.  Call ``reload_config()`` after changing the
environment to rebuild the singleton.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class ServerSettings(BaseSettings):
    model_config = {"env_prefix": "PARLEY_SERVER_"}

    api_url: str = "http://localhost:3000"
    gateway_path: str = "/api/socketio"
    request_timeout: float = 10.0

    @property
    def gateway_url(self) -> str:
        ws_url = self.api_url.replace("https://", "wss://").replace("http://", "ws://")
        return ws_url.rstrip("/") + self.gateway_path


class GatewaySettings(BaseSettings):
    model_config = {"env_prefix": "PARLEY_GATEWAY_"}

    max_attempts: int = 5
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    probe_interval: float = 5.0
    open_timeout: float = 10.0


class MessagesSettings(BaseSettings):
    model_config = {"env_prefix": "PARLEY_MESSAGES_"}

    page_limit: int = 20
    ack_timeout: float = 10.0
    # Max distance between an optimistic message and its live copy.
    reconcile_window: float = 5.0


class TypingSettings(BaseSettings):
    model_config = {"env_prefix": "PARLEY_TYPING_"}

    debounce: float = 1.0
    ttl: float = 5.0


_SECTIONS: dict[str, type[BaseSettings]] = {
    "server": ServerSettings,
    "gateway": GatewaySettings,
    "messages": MessagesSettings,
    "typing": TypingSettings,
}


class ClientConfig(BaseModel):
    server: ServerSettings = ServerSettings()
    gateway: GatewaySettings = GatewaySettings()
    messages: MessagesSettings = MessagesSettings()
    typing: TypingSettings = TypingSettings()


config = ClientConfig()


def reload_config() -> ClientConfig:
    """Rebuild every section from env + defaults."""
    for section_name, cls in _SECTIONS.items():
        setattr(config, section_name, cls())
    return config
