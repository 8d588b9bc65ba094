"""Per-call pairing of a Twilio media stream with one upstream realtime session.

Lifecycle: IDLE -> STREAMING -> CLOSING -> CLOSED.

The telephony side drives `handle_telephony_message` from its receive loop; the
upstream side is drained by a reader task started once the session is open.
Each side's messages are handled strictly in order. All state here belongs to
exactly one call, so nothing is locked.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from uuid import uuid4

from config.settings import Settings, get_settings
from integrations.openai_realtime import (
    AudioDelta,
    SessionConfig,
    SessionCreated,
    UpstreamConnection,
    UpstreamErrorEvent,
    decode_upstream_event,
    encode_append,
    encode_commit,
    encode_session_update,
)
from integrations.twilio_streaming import (
    StreamMedia,
    StreamStart,
    StreamStop,
    decode_telephony_event,
    encode_media_event,
)
from relay.batching import CommitBatcher
from relay.errors import AudioDecodeError, ProtocolDecodeError, RelayError
from relay.outbound import OutboundQueue
from telephony.codec import TelephonyCodec

LOGGER = logging.getLogger(__name__)


class PairState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"


class TelephonyConnection(Protocol):
    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...


UpstreamConnector = Callable[[], Awaitable[UpstreamConnection]]


@dataclass(slots=True)
class PairStats:
    frames_in: int = 0
    frames_out: int = 0
    commits: int = 0
    decode_errors: int = 0


class SessionPair:
    """Relay state for one call: stream id, upstream handle, codec and commit counter."""

    def __init__(
        self,
        telephony: TelephonyConnection,
        connect: UpstreamConnector,
        *,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()

        self.pair_id = uuid4().hex[:12]
        self.state = PairState.IDLE
        self.stream_sid: str | None = None
        self.call_sid: str | None = None
        self.upstream: UpstreamConnection | None = None
        self.stats = PairStats()

        self.codec = TelephonyCodec.for_rate(
            settings.target_sample_rate,
            upsample_strategy=settings.upsample_strategy,
            downsample_strategy=settings.downsample_strategy,
        )
        self.batcher = CommitBatcher(settings.commit_frames)
        self.session_config = SessionConfig.from_settings(settings)
        self._commit_on_stop = settings.commit_on_stop
        self._strict_upstream_errors = settings.upstream_error_policy == "strict"
        self._queue_max = settings.outbound_queue_max
        self._close_timeout = settings.close_timeout

        self._telephony = telephony
        self._connect = connect
        self._telephony_out = OutboundQueue(
            "telephony",
            telephony.send,
            maxsize=self._queue_max,
            close_timeout=self._close_timeout,
            on_error=self._on_send_error,
        )
        self._upstream_out: OutboundQueue | None = None
        self._reader: asyncio.Task | None = None
        self._upstream_closed = False
        self._telephony_closed = False
        self._closed = asyncio.Event()

    @property
    def tag(self) -> str:
        return self.stream_sid or self.pair_id

    @property
    def closed(self) -> bool:
        return self.state in (PairState.CLOSING, PairState.CLOSED)

    @property
    def dropped_frames(self) -> int:
        upstream_drops = self._upstream_out.dropped if self._upstream_out else 0
        return upstream_drops + self._telephony_out.dropped

    # Telephony side

    async def handle_telephony_message(self, text: str | bytes) -> None:
        if self.closed:
            return
        try:
            event = decode_telephony_event(text)
        except ProtocolDecodeError as exc:
            self.stats.decode_errors += 1
            LOGGER.warning("[%s] Dropping telephony message: %s", self.tag, exc.detail)
            return

        if isinstance(event, StreamStart):
            await self._on_start(event)
        elif isinstance(event, StreamMedia):
            await self._on_media(event)
        elif isinstance(event, StreamStop):
            await self._on_stop()

    async def _on_start(self, event: StreamStart) -> None:
        if self.state is not PairState.IDLE:
            LOGGER.warning("[%s] Ignoring repeated start event (streamSid=%s)", self.tag, event.stream_sid)
            return

        self.stream_sid = event.stream_sid
        self.call_sid = event.call_sid
        LOGGER.info("[%s] Stream started (call=%s)", self.tag, self.call_sid)

        try:
            upstream = await self._connect()
        except RelayError as exc:
            LOGGER.error("[%s] Upstream session could not be opened: %s", self.tag, exc.detail)
            await self.close("upstream connect failed")
            return

        self.upstream = upstream
        self._upstream_out = OutboundQueue(
            "upstream",
            upstream.send,
            maxsize=self._queue_max,
            close_timeout=self._close_timeout,
            on_error=self._on_send_error,
        )
        await self._upstream_out.put(encode_session_update(self.session_config))
        self.state = PairState.STREAMING
        self._reader = asyncio.create_task(self._read_upstream(upstream), name=f"upstream-reader:{self.tag}")
        LOGGER.info(
            "[%s] Upstream session opened (rate=%s, commit every %s frames)",
            self.tag,
            self.codec.target_rate,
            self.batcher.threshold,
        )

    async def _on_media(self, event: StreamMedia) -> None:
        if self.state is not PairState.STREAMING or self._upstream_out is None:
            LOGGER.debug("[%s] Media before stream start dropped", self.tag)
            return

        pcm = self.codec.to_upstream(event.payload)
        self.stats.frames_in += 1
        LOGGER.debug("[%s] %s bytes mu-law -> %s bytes PCM", self.tag, len(event.payload), len(pcm))
        await self._upstream_out.put(encode_append(pcm), droppable=True)

        if self.batcher.record_frame():
            await self._upstream_out.put(encode_commit())
            self.stats.commits += 1
            LOGGER.debug("[%s] Committed input audio buffer", self.tag)

    async def _on_stop(self) -> None:
        LOGGER.info("[%s] Stream stopped", self.tag)
        if self._commit_on_stop and self.batcher.pending and self._upstream_out is not None:
            self.batcher.reset()
            await self._upstream_out.put(encode_commit())
            self.stats.commits += 1
        else:
            residual = self.batcher.reset()
            if residual:
                LOGGER.debug("[%s] Dropping %s uncommitted frames", self.tag, residual)
        await self.close("stop")

    # Upstream side

    async def handle_upstream_message(self, text: str | bytes) -> None:
        if self.state is not PairState.STREAMING:
            return
        try:
            event = decode_upstream_event(text)
        except ProtocolDecodeError as exc:
            self.stats.decode_errors += 1
            LOGGER.warning("[%s] Dropping upstream message: %s", self.tag, exc.detail)
            return

        if isinstance(event, AudioDelta):
            await self._on_audio_delta(event)
        elif isinstance(event, SessionCreated):
            LOGGER.info("[%s] Upstream session created", self.tag)
        elif isinstance(event, UpstreamErrorEvent):
            LOGGER.error("[%s] Upstream error: %s", self.tag, event.message)
            if self._strict_upstream_errors:
                await self.close("upstream error event")

    async def _on_audio_delta(self, event: AudioDelta) -> None:
        try:
            mulaw = self.codec.to_telephony(event.pcm)
        except AudioDecodeError as exc:
            self.stats.decode_errors += 1
            LOGGER.warning("[%s] Dropping audio delta: %s", self.tag, exc.detail)
            return
        if not mulaw:
            return

        self.stats.frames_out += 1
        LOGGER.debug("[%s] Sending %s bytes mu-law to telephony", self.tag, len(mulaw))
        await self._telephony_out.put(encode_media_event(self.stream_sid or "", mulaw), droppable=True)

    async def _read_upstream(self, upstream: UpstreamConnection) -> None:
        reason = "upstream closed"
        try:
            async for message in upstream:
                await self.handle_upstream_message(message)
                if self.state is not PairState.STREAMING:
                    break
        except asyncio.CancelledError:
            raise
        except OSError as exc:
            reason = "upstream transport error"
            LOGGER.warning("[%s] Upstream transport error: %s", self.tag, exc)
        except Exception:
            reason = "upstream reader crashed"
            LOGGER.exception("[%s] Upstream reader crashed", self.tag)

        if self.state is PairState.STREAMING:
            await self.close(reason)

    # Teardown

    async def _on_send_error(self, exc: BaseException) -> None:
        await self.close(f"send failed: {exc}")

    async def flush(self) -> None:
        """Wait until queued outbound messages have been handed to both transports."""

        if self._upstream_out is not None:
            await self._upstream_out.join()
        await self._telephony_out.join()

    async def close(self, reason: str = "closed") -> None:
        """Tear down both sides once; later calls are no-ops."""

        if self.closed:
            return
        self.state = PairState.CLOSING
        LOGGER.info("[%s] Closing pair: %s", self.tag, reason)

        reader = self._reader
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        if self._upstream_out is not None:
            await self._upstream_out.aclose()
        await self._telephony_out.aclose()

        if self.upstream is not None and not self._upstream_closed:
            self._upstream_closed = True
            try:
                await self.upstream.close()
            except OSError as exc:
                LOGGER.warning("[%s] Upstream close failed: %s", self.tag, exc)

        if not self._telephony_closed:
            self._telephony_closed = True
            try:
                await self._telephony.close()
            except OSError as exc:
                LOGGER.warning("[%s] Telephony close failed: %s", self.tag, exc)

        self.state = PairState.CLOSED
        self._closed.set()
        LOGGER.info(
            "[%s] Pair closed (frames in=%s out=%s, commits=%s, dropped=%s, decode errors=%s)",
            self.tag,
            self.stats.frames_in,
            self.stats.frames_out,
            self.stats.commits,
            self.dropped_frames,
            self.stats.decode_errors,
        )

    async def wait_closed(self) -> None:
        await self._closed.wait()
