"""
Logging setup for sensor-link entry points.

The per-line loggers in ``HOT_PATH_LOGGERS`` are held at INFO unless
``capture_debug`` is set, so ``--log-level debug`` on a long session shows
the control flow without one entry per missed line or dropped record.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 2

HOT_PATH_LOGGERS = (
    "sensor_link.device.capture",
    "sensor_link.device.frame_driver",
    "sensor_link.host.reassembler",
)

LevelLike = Union[int, str]

_applied_levels: set[str] = set()


def coerce_level(level: LevelLike) -> int:
    """Accept ``logging`` constants or names such as ``"debug"``."""
    if isinstance(level, str):
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level '{level}'")
        return value
    return int(level)


def _clear_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(OSError):
            handler.close()


def _build_handlers(console: bool, log_file: Optional[Union[str, Path]]) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8")
        )
    if not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))
    return handlers


def component_levels(
    level: int,
    *,
    capture_debug: bool = False,
    overrides: Optional[Mapping[str, LevelLike]] = None,
) -> dict[str, int]:
    """Per-logger levels applied on top of the root level.

    Override keys may be full logger names or names relative to the
    ``sensor_link`` package (``"host.receiver"``).
    """
    levels: dict[str, int] = {}
    if not capture_debug:
        quiet = max(level, logging.INFO)
        for name in HOT_PATH_LOGGERS:
            levels[name] = quiet
    for name, value in (overrides or {}).items():
        full = name if name.startswith("sensor_link") else f"sensor_link.{name}"
        levels[full] = coerce_level(value)
    return levels


def configure_logging(
    level: LevelLike = logging.INFO,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    capture_debug: bool = False,
    overrides: Optional[Mapping[str, LevelLike]] = None,
) -> dict[str, int]:
    """Install handlers on the root logger and set per-component levels.

    Handlers are rebuilt on every call. Returns the per-component levels
    that were applied.
    """
    numeric_level = coerce_level(level)
    levels = component_levels(numeric_level, capture_debug=capture_debug, overrides=overrides)

    root = logging.getLogger()
    _clear_handlers(root)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in _build_handlers(console, log_file):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _applied_levels - levels.keys():
        logging.getLogger(name).setLevel(logging.NOTSET)
    for name, value in levels.items():
        logging.getLogger(name).setLevel(value)
    _applied_levels.clear()
    _applied_levels.update(levels)
    return levels


__all__ = [
    "HOT_PATH_LOGGERS",
    "LOG_DATEFMT",
    "LOG_FORMAT",
    "component_levels",
    "coerce_level",
    "configure_logging",
]
