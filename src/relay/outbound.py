from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

LOGGER = logging.getLogger(__name__)

_CLOSE = object()


class OutboundQueue:
    """Ordered, bounded send queue with a single writer task.

    Audio messages are dropped when the queue is full; control messages wait
    for space. A failing send stops the writer and reports through `on_error`.
    """

    def __init__(
        self,
        name: str,
        send: Callable[[str], Awaitable[None]],
        *,
        maxsize: int = 0,
        close_timeout: float | None = None,
        on_error: Callable[[BaseException], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self._send = send
        self._on_error = on_error
        self._close_timeout = close_timeout
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._writer: asyncio.Task | None = None
        self._closed = False
        self.sent = 0
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._run(), name=f"outbound:{self.name}")

    async def put(self, message: str, *, droppable: bool = False) -> bool:
        """Queue a message; returns False if it was dropped."""

        if self._closed:
            return False
        self.start()
        if droppable:
            try:
                self._queue.put_nowait(message)
            except asyncio.QueueFull:
                self.dropped += 1
                if self.dropped == 1 or self.dropped % 50 == 0:
                    LOGGER.warning("%s queue full (%s); dropped %s audio messages", self.name, self._queue.maxsize, self.dropped)
                return False
            return True
        await self._queue.put(message)
        return True

    async def join(self) -> None:
        """Wait until everything queued so far has been handed to the transport."""

        if self._writer is not None and not self._writer.done():
            await self._queue.join()

    async def aclose(self) -> None:
        """Flush pending messages and stop the writer. Safe to call twice.

        With a close timeout, a writer stuck on a stalled transport is cancelled
        and whatever is still queued is discarded.
        """

        if self._closed:
            return
        self._closed = True
        writer = self._writer
        if writer is None or writer.done():
            return
        if writer is asyncio.current_task():
            return
        try:
            await asyncio.wait_for(self._finish(writer), self._close_timeout)
        except asyncio.TimeoutError:
            pending = self._queue.qsize()
            LOGGER.warning(
                "%s queue did not drain within %ss; discarding %s messages",
                self.name,
                self._close_timeout,
                pending,
            )
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer
            self._drain()

    async def _finish(self, writer: asyncio.Task) -> None:
        await self._queue.put(_CLOSE)
        await asyncio.shield(writer)

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                if message is _CLOSE:
                    return
                await self._send(message)  # type: ignore[arg-type]
                self.sent += 1
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.warning("%s send failed: %s", self.name, exc)
                self._closed = True
                self._drain()
                if self._on_error is not None:
                    await self._on_error(exc)
                return
            finally:
                self._queue.task_done()

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()
