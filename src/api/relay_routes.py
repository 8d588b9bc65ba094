"""Twilio Media Streams entry points.

- TwiML webhook that connects a call to the relay WebSocket.
- The relay WebSocket itself: one SessionPair per accepted connection.
"""

from __future__ import annotations

import logging
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Request, Response, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from api.dependencies import get_upstream_connector
from config.settings import get_settings
from relay.registry import GLOBAL_PAIR_REGISTRY
from relay.session import SessionPair, UpstreamConnector

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["relay"])

STREAM_PATH = "/ws"


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def stream_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return _to_ws_url(settings.public_base_url.rstrip("/") + STREAM_PATH)
    # Twilio only connects over TLS; behind a proxy prefer PUBLIC_BASE_URL.
    return f"wss://{request.headers.get('host', request.url.netloc)}{STREAM_PATH}"


def _twiml_connect_stream(*, url: str) -> str:
    stream = escape(url, {'"': "&quot;"})
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Connect>"
        f"<Stream url=\"{stream}\" />"
        "</Connect>"
        "</Response>"
    )


@router.post("/twiml")
async def twiml_connect(request: Request) -> Response:
    LOGGER.info("TwiML request received")
    return Response(content=_twiml_connect_stream(url=stream_url(request)), media_type="application/xml")


class StarletteTelephonyConnection:
    """Adapts the FastAPI WebSocket to what a SessionPair sends and closes."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket

    @property
    def connected(self) -> bool:
        return (
            self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: str) -> None:
        if not self.connected:
            return
        await self._ws.send_text(message)

    async def close(self) -> None:
        if not self.connected:
            return
        await self._ws.close()


@router.websocket(STREAM_PATH)
async def relay_media_stream(
    websocket: WebSocket,
    connect: UpstreamConnector = Depends(get_upstream_connector),
) -> None:
    await websocket.accept()
    LOGGER.info("Media stream connected from %s", websocket.client)

    pair = SessionPair(StarletteTelephonyConnection(websocket), connect)
    GLOBAL_PAIR_REGISTRY.add(pair)
    try:
        while not pair.closed:
            message = await websocket.receive_text()
            await pair.handle_telephony_message(message)
    except WebSocketDisconnect:
        LOGGER.info("[%s] Media stream disconnected", pair.tag)
    finally:
        await pair.close("telephony disconnected")
        GLOBAL_PAIR_REGISTRY.discard(pair)
