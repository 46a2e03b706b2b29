from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

from sensor_link.core.logging_config import configure_logging
from sensor_link.core.logging_utils import get_module_logger


LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def add_common_cli_arguments(
    parser: argparse.ArgumentParser,
    *,
    default_output: Path | str,
    include_config: bool = True,
    include_console_control: bool = True,
    default_console_output: bool = True,
) -> None:
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help=f"Directory where frames are written (default: {default_output})",
    )

    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS.keys()),
        default=None,
        help="Logging verbosity (default: info)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Optional path for a rotating log file",
    )

    parser.add_argument(
        "--capture-debug",
        action="store_true",
        help="Include DEBUG output from the per-line capture and reassembly loggers",
    )

    parser.add_argument(
        "--component-level",
        dest="component_levels",
        action="append",
        type=component_level,
        default=[],
        metavar="NAME=LEVEL",
        help="Level for one logger, e.g. host.receiver=debug (repeatable)",
    )

    if include_config:
        parser.add_argument(
            "--config",
            type=Path,
            default=None,
            help="Session configuration file (key = value); CLI arguments override it",
        )

    if include_console_control:
        console_group = parser.add_mutually_exclusive_group()
        console_group.add_argument(
            "--console",
            dest="console_output",
            action="store_true",
            default=default_console_output,
            help="Log to console (default)",
        )
        console_group.add_argument(
            "--no-console",
            dest="console_output",
            action="store_false",
            help="Log to file only (no console output)",
        )


def add_session_arguments(parser: argparse.ArgumentParser) -> None:
    """Out-of-band session parameters shared by every subcommand."""
    parser.add_argument("--width", type=positive_int, default=None, help="Pixels per line")
    parser.add_argument("--height", type=positive_int, default=None, help="Sensor visible height")
    parser.add_argument("--active-lines", dest="active_lines", type=positive_int, default=None,
                        help="Rows in the active window")


def _positive_number(value: str, typ: type, name: str):
    """Generic positive number validator for argparse."""
    try:
        parsed = typ(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Value must be a {name}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Value must be positive")
    return parsed

def positive_int(value: str) -> int:
    return _positive_number(value, int, "integer")

def positive_float(value: str) -> float:
    return _positive_number(value, float, "number")


def command_value(value: str) -> int:
    """Command payload; accepts decimal or 0x-prefixed hex."""
    try:
        parsed = int(value, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Value must be an integer") from exc
    if not 0 <= parsed <= 0xFFFF:
        raise argparse.ArgumentTypeError("Value must fit in 16 bits")
    return parsed


def component_level(value: str) -> tuple[str, int]:
    """``NAME=LEVEL`` pair for ``--component-level``."""
    name, sep, level = value.partition("=")
    if not sep or not name.strip() or level.strip().lower() not in LOG_LEVELS:
        raise argparse.ArgumentTypeError(f"Expected NAME=LEVEL with LEVEL in {sorted(LOG_LEVELS)}")
    return name.strip(), LOG_LEVELS[level.strip().lower()]


def setup_cli_logging(args: Any, level: str):
    configure_logging(
        level,
        console=getattr(args, "console_output", True),
        log_file=getattr(args, "log_file", None),
        capture_debug=getattr(args, "capture_debug", False),
        overrides=dict(getattr(args, "component_levels", None) or ()),
    )
    return get_module_logger("cli")


__all__ = [
    "LOG_LEVELS",
    "add_common_cli_arguments",
    "add_session_arguments",
    "command_value",
    "component_level",
    "positive_float",
    "positive_int",
    "setup_cli_logging",
]
