"""
Host receiver.

Async read loop that pulls bytes off the link transport, feeds them to the
frame reassembler and hands finished frames to a sink. It turns zero-byte
reads into stall notifications, forces out frames that stop growing, and
starts a new session when the transport reconnects.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Union

from sensor_link.core.connection import RetryPolicy
from sensor_link.core.logging_utils import get_module_logger
from sensor_link.errors import LinkStalledError, TransportDisconnected

from .reassembler import Frame, FrameReassembler

if TYPE_CHECKING:
    from sensor_link.transport.base_transport import BaseTransport

    from .display import FrameSink

logger = get_module_logger(__name__)

StallCallback = Callable[[int], Union[bool, Awaitable[bool]]]

DEFAULT_READ_TIMEOUT = 0.5
DEFAULT_FRAME_TIMEOUT = 2.0


@dataclass
class ReceiveResult:
    frames: List[Frame] = field(default_factory=list)
    stalled: bool = False
    resynced: bool = False


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class HostReceiver:
    """Turns link bytes into frames and delivers them to a sink."""

    def __init__(
        self,
        transport: "BaseTransport",
        reassembler: FrameReassembler,
        *,
        sink: Optional["FrameSink"] = None,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        frame_timeout: Optional[float] = DEFAULT_FRAME_TIMEOUT,
        max_stalls: int = 0,
        on_stall: Optional[StallCallback] = None,
        reconnect: bool = True,
        retry_policy: Optional[RetryPolicy] = None,
        read_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            transport: Link transport to read from
            reassembler: Reassembler matching the session's width and line count
            sink: Receives every emitted frame
            read_timeout: Seconds a single read may wait for data
            frame_timeout: Seconds without a new row after which a partial
                frame is flushed (None disables)
            max_stalls: Consecutive stalls tolerated when no ``on_stall``
                callback is given (0 means unlimited)
            on_stall: Called with the consecutive stall count; returning
                False aborts with :class:`LinkStalledError`
            reconnect: Reopen the transport after a disconnect
            retry_policy: Backoff used when reconnecting
            read_size: Maximum bytes per read (default: a few records)
        """
        self.transport = transport
        self.reassembler = reassembler
        self.sink = sink
        self.read_timeout = read_timeout
        self.frame_timeout = frame_timeout
        self.max_stalls = max_stalls
        self.on_stall = on_stall
        self.reconnect = reconnect
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=5, base_delay=0.5, max_delay=5.0)
        self.read_size = read_size or reassembler.record_size * 4
        self._clock = clock

        self.consecutive_stalls = 0
        self.frames_received = 0
        self._last_row_time = clock()
        self._last_accepted = reassembler.stats.records_accepted
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def session_id(self) -> int:
        return self.reassembler.session_id

    async def receive_once(self) -> ReceiveResult:
        """
        Perform one read and feed it to the reassembler.

        Raises:
            TransportDisconnected: The link went away
        """
        data = await self.transport.read_bytes(self.read_size, timeout=self.read_timeout)
        result = ReceiveResult()
        if data:
            self.consecutive_stalls = 0
            result.frames = self.reassembler.feed(data)
        else:
            self.consecutive_stalls += 1
            result.stalled = True
            result.resynced = self.reassembler.note_timeout()
            logger.debug("Read timed out (%d in a row)", self.consecutive_stalls)

        now = self._clock()
        accepted = self.reassembler.stats.records_accepted
        if accepted != self._last_accepted:
            self._last_accepted = accepted
            self._last_row_time = now
        elif self.frame_timeout is not None and now - self._last_row_time >= self.frame_timeout:
            flushed = self.reassembler.flush_partial()
            if flushed is not None:
                logger.info("Frame %d timed out with %d rows", flushed.frame_id, flushed.rows_received)
                result.frames.append(flushed)
            self._last_row_time = now

        self.frames_received += len(result.frames)
        return result

    async def _handle_stall(self) -> None:
        stalls = self.consecutive_stalls
        if self.on_stall is not None:
            keep_going = await _maybe_await(self.on_stall(stalls))
            if not keep_going:
                raise LinkStalledError(stalls)
        elif self.max_stalls and stalls >= self.max_stalls:
            raise LinkStalledError(stalls)

    async def deliver(self, frames: List[Frame]) -> None:
        if self.sink is None:
            return
        for frame in frames:
            await _maybe_await(self.sink.show(frame))

    async def _reopen(self) -> bool:
        await self.transport.disconnect()
        result = await self.retry_policy.execute(self.transport.connect)
        if result.success:
            logger.info("Link reopened after %d attempt(s)", result.attempt_count)
        else:
            logger.error("Could not reopen link: %s", result.final_error)
        return result.success

    async def run(self, max_frames: Optional[int] = None) -> int:
        """
        Receive until stopped, aborted by a stall, or ``max_frames`` frames.

        Returns:
            Number of frames delivered
        """
        self._running = True
        delivered = 0
        try:
            while self._running:
                try:
                    result = await self.receive_once()
                except TransportDisconnected as e:
                    logger.warning("Session %d ended: %s", self.session_id, e)
                    self.reassembler.reset_session()
                    self.consecutive_stalls = 0
                    if not self.reconnect or not await self._reopen():
                        raise
                    continue

                await self.deliver(result.frames)
                delivered += len(result.frames)
                if max_frames is not None and delivered >= max_frames:
                    break
                if result.stalled:
                    await self._handle_stall()
        finally:
            self._running = False
        logger.debug("Reassembly stats: %s", self.reassembler.stats.to_dict())
        return delivered

    async def start(self, max_frames: Optional[int] = None) -> None:
        if self._running:
            logger.warning("Receiver already running")
            return
        self._task = asyncio.create_task(self.run(max_frames))
        logger.info("Receiver started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Receiver stopped")

    async def wait(self) -> int:
        if self._task is None:
            return 0
        return await self._task


__all__ = ["HostReceiver", "ReceiveResult", "StallCallback"]
