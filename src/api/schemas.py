"""API-facing Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class StreamInfoResponse(BaseModel):
    message: str
    url: str = Field(description="Public WebSocket URL Twilio should stream to.")
    status: str = "ready"


class HealthResponse(BaseModel):
    status: str = "ok"
    active_pairs: int
    streaming_pairs: int
    target_sample_rate: int
    commit_frames: int
    resample_ratio: int
    stream_sids: list[str] = Field(default_factory=list, description="Twilio stream ids of live pairs.")
