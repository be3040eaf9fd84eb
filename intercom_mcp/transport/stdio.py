"""Secure newline-delimited JSON-RPC transport over a byte stream (stdin/stdout).

Every inbound record passes a size gate, a token-bucket rate gate, JSON
decoding and envelope validation before it reaches the message handler.
Records are handled strictly one at a time in arrival order.
"""

from __future__ import annotations

import asyncio
import inspect
import sys
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from loguru import logger

from intercom_mcp.config.schema import TransportConfig
from intercom_mcp.transport.messages import JsonRpcMessage, decode_message, encode_message, validate_message
from intercom_mcp.transport.rate_limiter import TokenBucketLimiter
from intercom_mcp.utils.exceptions import (
    HealthCheckFailedError,
    MessageTooLargeError,
    NotConnectedError,
    RateLimitExceededError,
    TransportError,
    sanitize_error_message,
)

MessageHandler = Callable[[JsonRpcMessage], Awaitable[None] | None]
ErrorHandler = Callable[[Exception], None]
CloseHandler = Callable[[], None]


@dataclass(slots=True)
class QueuedEntry:
    """A validated inbound message and its arrival time (clock seconds)."""

    message: JsonRpcMessage
    timestamp: float


async def open_stdin_reader(limit: int) -> asyncio.StreamReader:
    """Wrap the process stdin in a non-blocking ``StreamReader``."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


class SecureStdioTransport:
    """Owns one byte-stream connection and mediates every message on it.

    Closed -> start() -> Open -> close() -> Closed. A closed instance cannot be
    reopened; build a new one.
    """

    def __init__(
        self,
        settings: TransportConfig | None = None,
        *,
        reader: asyncio.StreamReader | None = None,
        writer: Any | None = None,
        on_message: MessageHandler | None = None,
        on_error: ErrorHandler | None = None,
        on_close: CloseHandler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or TransportConfig()
        self._reader = reader
        self._writer = writer if writer is not None else sys.stdout.buffer
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self._clock = clock
        self._rate_limiter = TokenBucketLimiter(
            self.settings.max_requests_per_window,
            self.settings.rate_limit_window_ms,
            clock=clock,
        )
        self._connection_active = False
        self._started = False
        self._closed = False
        self._queue: list[QueuedEntry] = []
        self._last_health_check = clock()
        self._health_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._dispatching = False

    @property
    def connection_active(self) -> bool:
        return self._connection_active

    @property
    def rate_limiter(self) -> TokenBucketLimiter:
        return self._rate_limiter

    @property
    def pending_messages(self) -> tuple[QueuedEntry, ...]:
        return tuple(self._queue)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the connection, start the health check and the reader."""
        if self._closed:
            raise TransportError(
                "Transport is closed; create a new instance to reconnect",
                code="TRANSPORT_CLOSED",
            )
        if self._started:
            return
        self._started = True
        self._connection_active = True
        self._last_health_check = self._clock()
        self._health_task = asyncio.create_task(self._health_check_loop(), name="transport-health-check")
        if self._reader is not None:
            self._reader_task = asyncio.create_task(self._read_loop(), name="transport-reader")
        logger.debug("Transport started (reader attached: {})", self._reader is not None)

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._connection_active = False
        self._queue.clear()

        current = asyncio.current_task()
        tasks = [self._health_task]
        # A record being dispatched runs to completion; the reader then sees the closed state.
        if not self._dispatching:
            tasks.append(self._reader_task)
        for task in tasks:
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._health_task = None
        self._reader_task = None
        logger.debug("Transport closed")

        if self.on_close:
            self.on_close()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def handle_incoming_message(self, data: bytes) -> None:
        """Run one inbound record through size, rate, decode and schema gates, then dispatch.

        Raises:
            MessageTooLargeError, RateLimitExceededError, InvalidFormatError.
            Handler failures are reported to ``on_error`` instead.
        """
        limit = self.settings.max_message_size
        if len(data) > limit:
            raise MessageTooLargeError(limit, len(data))

        if not self._rate_limiter.try_acquire():
            raise RateLimitExceededError(self._rate_limiter.capacity, self._rate_limiter.window_ms)

        message = decode_message(data)
        self._queue.append(QueuedEntry(message=message, timestamp=self._clock()))

        if self.on_message:
            try:
                outcome = self.on_message(message)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                logger.warning("Message handler failed for method={}: {}", message.method, sanitize_error_message(str(exc)))
                self._handle_error(exc)

        self._clean_message_queue()

    async def _read_record(self) -> bytes:
        """Next newline-terminated record; ``b""`` at end of input.

        Raises:
            MessageTooLargeError: after the whole overlong record, through its
                newline, has been discarded.
        """
        assert self._reader is not None
        try:
            return await self._reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as exc:
            return exc.partial
        except asyncio.LimitOverrunError:
            await self._discard_through_newline()
            raise MessageTooLargeError(self.settings.max_message_size) from None

    async def _discard_through_newline(self) -> None:
        """Drop buffered and incoming bytes up to and including the next newline (or EOF)."""
        assert self._reader is not None
        while True:
            try:
                await self._reader.readuntil(b"\n")
                return
            except asyncio.LimitOverrunError as exc:
                await self._reader.readexactly(exc.consumed)
            except asyncio.IncompleteReadError:
                return

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while self._connection_active:
                try:
                    line = await self._read_record()
                except MessageTooLargeError as exc:
                    logger.warning("Rejected inbound message: {}", exc)
                    self._handle_error(exc)
                    continue
                if not line:
                    logger.info("Input stream reached end of file")
                    break
                record = line.strip()
                if not record:
                    continue
                if not self._connection_active:
                    break
                self._dispatching = True
                try:
                    await self.handle_incoming_message(record)
                except Exception as exc:
                    logger.warning("Rejected inbound message: {}", exc)
                    self._handle_error(exc)
                finally:
                    self._dispatching = False
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Input stream error: {}", sanitize_error_message(str(exc)))
            self._handle_error(exc)
        await self.close()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send(self, message: JsonRpcMessage | Mapping[str, Any]) -> None:
        """Validate, size-check and write one message, newline-terminated.

        Raises:
            InvalidFormatError, NotConnectedError, MessageTooLargeError.
        """
        validated = validate_message(message)

        if not self._connection_active:
            raise NotConnectedError()

        raw = encode_message(validated)
        limit = self.settings.max_message_size
        if len(raw) > limit:
            raise MessageTooLargeError(limit, len(raw))

        self._writer.write(raw + b"\n")
        drain = getattr(self._writer, "drain", None)
        if drain is not None:
            await drain()
        else:
            self._writer.flush()

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def _handle_error(self, error: Exception) -> None:
        if self.on_error:
            self.on_error(error)

    def _clean_message_queue(self) -> None:
        threshold = self._clock() - self.settings.connection_timeout_ms / 1000.0
        self._queue = [entry for entry in self._queue if entry.timestamp > threshold]

    async def check_health(self) -> bool:
        """One health-check tick. Closes the connection when it went stale."""
        now = self._clock()
        idle_ms = (now - self._last_health_check) * 1000.0
        if idle_ms > self.settings.connection_timeout_ms:
            logger.error("Health check failed after {:.0f} ms without a tick", idle_ms)
            self._handle_error(HealthCheckFailedError(idle_ms, self.settings.connection_timeout_ms))
            await self.close()
            return False
        self._last_health_check = now
        return True

    async def _health_check_loop(self) -> None:
        interval = self.settings.health_check_interval_ms / 1000.0
        while self._connection_active:
            await asyncio.sleep(interval)
            if not self._connection_active:
                break
            if not await self.check_health():
                break
