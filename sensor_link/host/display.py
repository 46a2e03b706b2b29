"""
Frame sinks.

The receiver hands each emitted frame to a sink. Frames are read-only
copies, so a sink may keep them as long as it likes; it must not block
the receive loop for long.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Protocol, Union

from PIL import Image

from sensor_link.core.logging_utils import get_module_logger

from .reassembler import Frame

logger = get_module_logger(__name__)


class FrameSink(Protocol):

    def show(self, frame: Frame) -> Union[None, Awaitable[None]]:
        ...


class LatestFrameSlot:
    """Single-slot hand-off: a newer frame replaces one not yet taken."""

    def __init__(self) -> None:
        self._frame: Optional[Frame] = None
        self._event = asyncio.Event()
        self.frames_shown = 0
        self.frames_replaced = 0

    def show(self, frame: Frame) -> None:
        if self._frame is not None:
            self.frames_replaced += 1
        self._frame = frame
        self.frames_shown += 1
        self._event.set()

    def peek(self) -> Optional[Frame]:
        return self._frame

    def take(self) -> Optional[Frame]:
        frame, self._frame = self._frame, None
        self._event.clear()
        return frame

    async def wait(self, timeout: Optional[float] = None) -> Optional[Frame]:
        """Wait for the next frame and take it; None on timeout."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return None
        return self.take()


class CallbackSink:

    def __init__(self, callback: Callable[[Frame], object]):
        self.callback = callback

    def show(self, frame: Frame):
        return self.callback(frame)


class CollectingSink:
    """Keeps every frame; meant for short runs and tests."""

    def __init__(self) -> None:
        self.frames: List[Frame] = []

    def show(self, frame: Frame) -> None:
        self.frames.append(frame)


class PngFrameSink:
    """Writes frames as 8-bit grayscale PNG files."""

    def __init__(self, output_dir: Path, *, prefix: str = "frame", complete_only: bool = False):
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self.complete_only = complete_only
        self.files_written = 0

    def path_for(self, frame: Frame) -> Path:
        suffix = "" if frame.complete else "_partial"
        return self.output_dir / f"{self.prefix}_s{frame.session_id:03d}_{frame.frame_id:06d}{suffix}.png"

    def _write(self, frame: Frame) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(frame)
        Image.fromarray(frame.pixels).save(path)
        return path

    async def show(self, frame: Frame) -> None:
        if self.complete_only and not frame.complete:
            return
        try:
            path = await asyncio.to_thread(self._write, frame)
        except OSError as e:
            logger.error("Could not write frame %d: %s", frame.frame_id, e)
            return
        self.files_written += 1
        logger.debug("Wrote %s", path)


__all__ = ["CallbackSink", "CollectingSink", "FrameSink", "LatestFrameSlot", "PngFrameSink"]
