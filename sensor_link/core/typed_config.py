"""Type coercion helpers for building typed configs from raw ``key = value`` maps."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping


def get_config_str(config: Mapping[str, Any], key: str, default: str) -> str:
    val = config.get(key)
    return str(val) if val is not None else default


def get_config_int(config: Mapping[str, Any], key: str, default: int) -> int:
    val = config.get(key)
    if val is None:
        return default
    try:
        # Accept hex literals such as 0x0B for register-ish values.
        return int(str(val), 0)
    except (ValueError, TypeError):
        return default


def get_config_float(config: Mapping[str, Any], key: str, default: float) -> float:
    val = config.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except (ValueError, TypeError):
        return default


def get_config_bool(config: Mapping[str, Any], key: str, default: bool) -> bool:
    val = config.get(key)
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"true", "1", "yes", "on"}


def get_config_path(config: Mapping[str, Any], key: str, default: Path) -> Path:
    val = config.get(key)
    if val is None:
        return default
    text = str(val).strip()
    return Path(text) if text else default


__all__ = [
    "get_config_bool",
    "get_config_float",
    "get_config_int",
    "get_config_path",
    "get_config_str",
]
