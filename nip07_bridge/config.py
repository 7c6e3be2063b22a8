"""Configuration for the NIP-07 bridge."""

from __future__ import annotations

import ipaddress

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORT = 17007


class BridgeSettings(BaseSettings):
    """Runtime settings for a bridge session."""

    model_config = SettingsConfigDict(env_prefix="NIP07_BRIDGE_")

    host: str = Field(
        default="127.0.0.1",
        description="Loopback address the HTTP listener binds to",
    )
    port: int = Field(
        default=DEFAULT_PORT,
        ge=0,
        le=65535,
        description="Listener port; 0 picks a free port",
    )
    open_browser: bool = Field(
        default=True,
        description="Open the default browser on the session URL",
    )
    browser_open_delay: float = Field(
        default=0.5,
        ge=0,
        description="Seconds to wait after opening the browser before continuing",
    )
    shutdown_grace: float = Field(
        default=1.0,
        ge=0,
        description="Seconds the shutdown flag is visible before the listener closes",
    )
    state_poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Seconds between /api/state polls from the page",
    )
    shutdown_poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between /api/shutdown polls from the page",
    )

    @field_validator("host")
    @classmethod
    def ensure_loopback(cls, value: str) -> str:
        if value == "localhost":
            return value
        try:
            address = ipaddress.ip_address(value)
        except ValueError as exc:
            raise ValueError(f"host must be a loopback address, got {value!r}") from exc
        if not address.is_loopback:
            raise ValueError(f"host must be a loopback address, got {value!r}")
        return value
