"""Entry point for the Twilio <-> realtime audio relay service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.relay_routes import router as relay_router
from api.routes import router as api_router
from config.settings import get_settings
from relay.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.environment == "prod" and not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY must be set in prod")
    if not settings.openai_api_key:
        LOGGER.warning("OPENAI_API_KEY not set; calls will be closed when the stream starts")
    LOGGER.info(
        "Relay ready: target rate %s Hz, commit every %s frames, upstream errors %s",
        settings.target_sample_rate,
        settings.commit_frames,
        settings.upstream_error_policy,
    )
    yield


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Voice Relay",
    description="Bridges Twilio Media Streams to a realtime conversational audio session.",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
)
app.include_router(api_router)
app.include_router(relay_router)


def main() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
