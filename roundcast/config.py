from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedConfig(BaseModel):
    """Where outcomes come from and how hard to try keeping the link alive."""

    mode: Literal["poll", "push"] = Field("poll", description="HTTP polling or websocket push")
    base_url: str = Field(
        "http://localhost:5000", description="Proxy exposing /status and /recent-outcomes"
    )
    ws_url: str = "wss://api-v2.blaze.com/replication/?EIO=3&transport=websocket"
    channel: str = Field("double", description="Room subscribed to and event name of round results")
    poll_interval_sec: float = 30.0
    reconnect_base_delay_sec: float = Field(
        3.0, description="Reconnect delay is this times the attempt number"
    )
    max_reconnect_attempts: int = 5
    simulation_interval_sec: float = Field(
        30.0, description="Cadence of synthetic outcomes once degraded"
    )
    heartbeat_interval_sec: float = Field(25.0, description="Client ping cadence on the push feed")
    stale_timeout_sec: float = Field(
        60.0, description="Push connection is closed and retried after this long without a frame"
    )
    network_timeout_sec: float = 10.0
    max_retries: int = 3
    backoff_base_sec: float = 0.5
    backoff_cap_sec: float = 10.0


class AnalysisConfig(BaseModel):
    history_capacity: int = Field(20, ge=1)
    min_history: int = Field(5, description="Fewer outcomes than this skips every detector")
    fusion_strategy: Literal["weighted", "simplified"] = "weighted"


class SignalConfig(BaseModel):
    interval_sec: int = Field(60, description="Spacing between projected slots")
    override_probability: float = Field(0.3, ge=0.0, le=1.0)
    default_count: int = 10


class AlertConfig(BaseModel):
    long_streak_min: int = 4
    high_confidence_min: int = 80


class RuntimeConfig(BaseModel):
    feed: FeedConfig = Field(default_factory=FeedConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    signals: SignalConfig = Field(default_factory=SignalConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    LOG_LEVEL: str = "INFO"

    # Source overrides, take precedence over config.yaml
    FEED_BASE_URL: Optional[str] = None
    FEED_WS_URL: Optional[str] = None


class AppConfig(BaseModel):
    env: EnvSettings
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    # Allow tests to pass a plain dict for env
    @field_validator("env", mode="before")
    @classmethod
    def _coerce_env(cls, v):  # type: ignore[no-untyped-def]
        if isinstance(v, dict):
            return EnvSettings(**v)
        return v

    @staticmethod
    def load(config_path: Optional[Path] = None) -> "AppConfig":
        env = EnvSettings()  # loads from environment and .env

        runtime = RuntimeConfig()
        if config_path is None:
            default_path = Path("config.yaml")
            config_path = default_path if default_path.exists() else None

        if config_path and Path(config_path).exists():
            with open(config_path, "r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            try:
                runtime = RuntimeConfig(**raw)
            except ValidationError as ve:
                raise ValueError(f"Invalid config.yaml: {ve}")

        if env.FEED_BASE_URL:
            runtime.feed.base_url = env.FEED_BASE_URL
        if env.FEED_WS_URL:
            runtime.feed.ws_url = env.FEED_WS_URL
        return AppConfig(env=env, runtime=runtime)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load merged configuration from environment and optional YAML."""

    return AppConfig.load(config_path)
