"""Runtime-tunable capture parameters shared by the frame driver and command decoder."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from typing import Iterator


@dataclass(frozen=True, slots=True)
class RuntimeSnapshot:
    """Immutable view of the configuration, taken once per frame."""
    exposure_time_us: int
    analog_gain: int
    digital_gain: int
    active_line_count: int
    streaming_enabled: bool


@dataclass(slots=True)
class RuntimeConfig:
    """Mutable runtime configuration.

    In the single-threaded device loop the command decoder and the frame
    driver take turns, so plain attribute access is enough. When capture and
    command handling run on different threads, wrap reads and writes in
    :meth:`locked`.
    """

    exposure_time_us: int = 10000
    analog_gain: int = 16
    digital_gain: int = 4
    active_line_count: int = 480
    streaming_enabled: bool = True
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @contextmanager
    def locked(self) -> Iterator["RuntimeConfig"]:
        with self._lock:
            yield self

    def snapshot(self) -> RuntimeSnapshot:
        with self._lock:
            return RuntimeSnapshot(
                exposure_time_us=self.exposure_time_us,
                analog_gain=self.analog_gain,
                digital_gain=self.digital_gain,
                active_line_count=self.active_line_count,
                streaming_enabled=self.streaming_enabled,
            )

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}


__all__ = ["RuntimeConfig", "RuntimeSnapshot"]
