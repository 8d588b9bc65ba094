"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TELEPHONY_SAMPLE_RATE = 8000

# Observed deployment profiles: target sample rate -> commit threshold (frames).
DEFAULT_COMMIT_FRAMES: dict[int, int] = {
    16000: 20,
    24000: 25,
}

DEFAULT_INSTRUCTIONS = (
    "You are a helpful AI assistant answering phone calls. "
    "Be concise, friendly, and professional. Ask how you can help them."
)


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL used for the TwiML stream URL (e.g. https://<ngrok>.ngrok-free.app).",
    )

    # Upstream realtime session
    openai_api_key: str | None = Field(default=None)
    realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    realtime_model: str = Field(default="gpt-4o-mini-realtime-preview-2024-12-17")
    realtime_voice: str = Field(default="alloy")
    realtime_instructions: str = Field(default=DEFAULT_INSTRUCTIONS)
    transcription_model: str = Field(default="whisper-1")
    realtime_connect_timeout: float = Field(default=10.0, gt=0.0)

    # Relay
    target_sample_rate: int = Field(
        default=16000,
        validation_alias="relay_target_sample_rate",
        description="PCM16 sample rate declared to the upstream session.",
    )
    commit_frames: int | None = Field(
        default=None,
        ge=1,
        validation_alias="relay_commit_frames",
        description="Inbound frames between input_audio_buffer.commit messages. Derived from the rate if unset.",
    )
    commit_on_stop: bool = Field(
        default=False,
        validation_alias="relay_commit_on_stop",
        description="If true, commits the partially accumulated input when the stream stops.",
    )
    upsample_strategy: Literal["interpolate", "hold"] | None = Field(
        default=None, validation_alias="relay_upsample_strategy"
    )
    downsample_strategy: Literal["average", "decimate"] | None = Field(
        default=None, validation_alias="relay_downsample_strategy"
    )
    upstream_error_policy: Literal["lenient", "strict"] = Field(
        default="lenient",
        validation_alias="relay_upstream_error_policy",
        description="strict closes the call on an upstream error event; lenient only logs it.",
    )
    outbound_queue_max: int = Field(
        default=500,
        ge=0,
        validation_alias="relay_outbound_queue_max",
        description="Maximum queued outbound messages per connection (0 = unbounded).",
    )
    close_timeout: float = Field(
        default=2.0,
        gt=0.0,
        validation_alias="relay_close_timeout",
        description="Seconds to wait for queued messages to flush when a pair closes.",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("target_sample_rate")
    @classmethod
    def check_target_sample_rate(cls, value: int) -> int:
        if value not in DEFAULT_COMMIT_FRAMES:
            supported = ", ".join(str(rate) for rate in sorted(DEFAULT_COMMIT_FRAMES))
            raise ValueError(f"Unsupported target sample rate {value}; expected one of {supported}")
        return value

    @model_validator(mode="after")
    def apply_rate_profile(self) -> Settings:
        if self.commit_frames is None:
            self.commit_frames = DEFAULT_COMMIT_FRAMES[self.target_sample_rate]
        return self

    @property
    def resample_ratio(self) -> int:
        return self.target_sample_rate // TELEPHONY_SAMPLE_RATE

    @property
    def realtime_endpoint(self) -> str:
        return f"{self.realtime_url.rstrip('/')}?model={self.realtime_model}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
