"""
Application settings for homelab-setup.

Uses Pydantic BaseSettings for environment variable integration and
validation. Settings are read once by the CLI and handed to the core
explicitly; nothing below the CLI reads the environment.

Configuration sources (in order of precedence):
1. Explicit constructor arguments (CLI options)
2. Environment variables (HOMELAB_*)
3. .env file
4. Default values

Example:
    from homelab_setup.settings import load_settings

    settings = load_settings(config_path="/tmp/homelab.conf")
    store = ConfigStore(settings.config_path)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from homelab_setup import timeouts


class HomelabSettings(BaseSettings):
    """
    Central settings for homelab-setup.

    All settings can be overridden via environment variables
    prefixed with HOMELAB_.

    Example:
        export HOMELAB_CONFIG_PATH=/etc/homelab-setup.conf
        export HOMELAB_LOG_FORMAT=json
    """

    model_config = SettingsConfigDict(
        env_prefix="HOMELAB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Persistent state
    config_path: str = Field(
        default="~/.homelab-setup.conf",
        description="Key/value configuration file",
    )
    marker_dir: str = Field(
        default="~/.local/homelab-setup",
        description="Directory holding step completion markers",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for log shippers, text for console)",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional log file in addition to stderr",
    )

    # Telemetry
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OTLP gRPC endpoint for step traces (disabled if unset)",
    )

    # Diagnostic targets
    file_server_host: str = Field(default="192.168.7.179")
    vps_host: str = Field(default="64.23.212.68")
    public_resolver: str = Field(default="8.8.8.8")
    dns_test_host: str = Field(default="google.com")

    # Probe tuning
    ping_count: int = Field(default=timeouts.PING_DEFAULT_COUNT, ge=1, le=100)
    ping_timeout_s: float = Field(default=timeouts.PING_TIMEOUT_S, gt=0)
    ping_interval_s: float = Field(default=timeouts.PING_INTERVAL_S, ge=0)
    unstable_latency_ms: float = Field(default=timeouts.PING_UNSTABLE_LATENCY_MS, gt=0)
    port_timeout_s: float = Field(default=timeouts.PORT_PROBE_TIMEOUT_S, gt=0)
    dns_timeout_s: float = Field(default=timeouts.DNS_TIER_TIMEOUT_S, gt=0)

    @field_validator("config_path", "marker_dir", "log_file")
    @classmethod
    def expand_path(cls, v: Optional[str]) -> Optional[str]:
        """Expand ~ and environment variables in paths."""
        if v is None:
            return v
        return os.path.expanduser(os.path.expandvars(v))

    @property
    def config_file(self) -> Path:
        return Path(self.config_path)

    @property
    def marker_path(self) -> Path:
        return Path(self.marker_dir)


def load_settings(**overrides) -> HomelabSettings:
    """
    Build settings from the environment, applying explicit overrides.

    ``None`` overrides are dropped so unset CLI options fall through to the
    environment and defaults.
    """
    return HomelabSettings(**{k: v for k, v in overrides.items() if v is not None})
