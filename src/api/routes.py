"""Diagnostic routes; informational only, they never touch relay state beyond counting pairs."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from api.relay_routes import STREAM_PATH, stream_url
from api.schemas import HealthResponse, StreamInfoResponse
from config.settings import get_settings
from relay.registry import GLOBAL_PAIR_REGISTRY
from relay.session import PairState

router = APIRouter(tags=["diagnostics"])


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "Voice relay running"


@router.get("/ws-test", response_model=StreamInfoResponse)
async def ws_test(request: Request) -> StreamInfoResponse:
    return StreamInfoResponse(
        message=f"WebSocket endpoint is at {STREAM_PATH}",
        url=stream_url(request),
    )


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(
        active_pairs=len(GLOBAL_PAIR_REGISTRY),
        streaming_pairs=GLOBAL_PAIR_REGISTRY.count(PairState.STREAMING),
        target_sample_rate=settings.target_sample_rate,
        commit_frames=settings.commit_frames or 0,
        resample_ratio=settings.resample_ratio,
        stream_sids=GLOBAL_PAIR_REGISTRY.stream_sids(),
    )
