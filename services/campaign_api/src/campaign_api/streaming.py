"""
Chunked push-channel emitter.

A document is serialized once (two-space indented JSON) and then delivered
as fixed-size character slices, one per tick, followed by exactly one
terminal frame that carries the whole document as structured JSON:

    data: {"chunk": "{\n  \"campaign\": {", "done": false}\n\n
    ...
    data: {"chunk": "", "done": true, "complete": {...}}\n\n

Each stream is a single async generator driven by the ASGI server, so a
tick and a disconnect can never run concurrently for the same connection.
Teardown happens in one ``finally`` block and is guarded to run exactly
once, whether the stream completed, the client went away, or the task was
cancelled.
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import core_metrics
from core_config.constants import STREAM_CHUNK_SIZE, STREAM_TICK_MS
from core_logging import get_logger, log_stage
from core_utils import jsonx
from core_utils.sse import chunk_frame, terminal_frame

from .errors import SerializationError

logger = get_logger("campaign_api.streaming")

DisconnectProbe = Callable[[], Awaitable[bool]]


class StreamState(str, Enum):
    open = "open"
    closed_normal = "closed_normal"
    closed_client_gone = "closed_client_gone"


class StreamSession:
    """Per-connection delivery state; never shared between connections."""

    def __init__(self, document: Any, serialized: str, **context: Any) -> None:
        self.document = document
        self.serialized = serialized
        self.cursor = 0
        self.state = StreamState.open
        self.chunks_sent = 0
        self.context: Dict[str, Any] = context
        self.opened_at: Optional[float] = None
        self._released = False

    @property
    def length(self) -> int:
        return len(self.serialized)

    @property
    def complete(self) -> bool:
        return self.cursor >= self.length

    def advance(self, n: int) -> str:
        """Return the next slice of at most *n* characters and move the cursor."""
        start = self.cursor
        self.cursor = min(self.length, start + max(1, n))
        return self.serialized[start : self.cursor]

    def finish(self, outcome: StreamState) -> bool:
        """Move to a terminal state. Only the first call has an effect."""
        if self.state is not StreamState.open:
            return False
        self.state = outcome
        return True


class CancelToken:
    """Cancellation flag that a ticking stream can sleep on."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self, timeout: float) -> bool:
        """
        Sleep up to *timeout* seconds; return True if cancelled meanwhile.
        Always yields to the event loop, even for a zero timeout.
        """
        if timeout <= 0:
            await asyncio.sleep(0)
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return self.cancelled
        return True


class ChunkedStreamEmitter:
    def __init__(
        self,
        *,
        chunk_size: int = STREAM_CHUNK_SIZE,
        tick_ms: int = STREAM_TICK_MS,
        on_close: Optional[Callable[[StreamSession], None]] = None,
    ) -> None:
        if int(chunk_size) < 1:
            raise ValueError("chunk_size must be >= 1")
        if int(tick_ms) < 0:
            raise ValueError("tick_ms must be >= 0")
        self.chunk_size = int(chunk_size)
        self.tick_ms = int(tick_ms)
        self._on_close = on_close

    def prepare(self, document: Any, **context: Any) -> StreamSession:
        """
        Serialize *document* once and wrap it in a fresh StreamSession.

        Raises SerializationError when the document holds a value that has
        no JSON form; nothing has been sent to the client at that point.
        """
        try:
            serialized = jsonx.dumps_pretty(document)
        except (TypeError, ValueError) as exc:
            raise SerializationError(error=str(exc), session_id=context.get("session_id")) from exc
        return StreamSession(document, serialized, **context)

    async def stream(
        self,
        session: StreamSession,
        *,
        is_disconnected: Optional[DisconnectProbe] = None,
        token: Optional[CancelToken] = None,
    ) -> AsyncIterator[str]:
        """
        Yield SSE frames for *session*: one chunk per tick, then the terminal
        frame. Stops without a terminal frame as soon as the token is
        cancelled or the probe reports the client gone.
        """
        token = token or CancelToken()
        self._opened(session)
        tick_s = self.tick_ms / 1000.0
        try:
            while True:
                if await token.wait(tick_s):
                    break
                if is_disconnected is not None and await is_disconnected():
                    break
                if session.complete:
                    session.finish(StreamState.closed_normal)
                    yield terminal_frame(session.document)
                    return
                chunk = session.advance(self.chunk_size)
                session.chunks_sent += 1
                core_metrics.counter("campaign_api_stream_chunks_total", 1)
                yield chunk_frame(chunk)
        finally:
            self._release(session, token)

    def _opened(self, session: StreamSession) -> None:
        session.opened_at = time.perf_counter()
        core_metrics.counter("campaign_api_streams_opened_total", 1)
        core_metrics.gauge_add("campaign_api_active_streams", 1)
        log_stage(
            logger, "stream", "stream.open",
            length=session.length, chunk_size=self.chunk_size, tick_ms=self.tick_ms,
            **session.context,
        )

    def _release(self, session: StreamSession, token: CancelToken) -> None:
        if session._released:
            return
        session._released = True
        token.cancel()
        # Anything still open here ended without the terminal frame.
        session.finish(StreamState.closed_client_gone)
        outcome = session.state.value

        core_metrics.gauge_add("campaign_api_active_streams", -1)
        core_metrics.counter("campaign_api_streams_closed_total", 1, prom_labels=("outcome",), outcome=outcome)
        latency_ms = (time.perf_counter() - session.opened_at) * 1000.0 if session.opened_at else 0.0
        log_stage(
            logger, "stream", "stream.closed",
            outcome=outcome, chunks_sent=session.chunks_sent,
            cursor=session.cursor, length=session.length,
            latency_ms=round(latency_ms, 3),
            **session.context,
        )
        if self._on_close is not None:
            self._on_close(session)


__all__ = ["StreamState", "StreamSession", "CancelToken", "ChunkedStreamEmitter", "DisconnectProbe"]
