"""Segment length derivation from a target output size."""

from __future__ import annotations

import math
import re

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class ConfigError(ValueError):
    """Raised when processing parameters cannot yield a usable segment length."""


def parse_bitrate_kbps(bitrate: str) -> int:
    """Read the leading integer of a bitrate string such as ``"24k"``."""

    match = _LEADING_INT.match(bitrate or "")
    if not match:
        raise ConfigError(f"Invalid bitrate format: {bitrate}")
    return int(match.group(1))


def duration_for_target_size(bitrate: str, target_mb: float) -> int:
    """Seconds of audio at ``bitrate`` that fit in ``target_mb`` megabytes.

    ``floor(target_mb * 1024 * 8 / kbps)``; the result may be zero or negative
    for degenerate inputs, see :func:`ensure_positive_duration`.
    """

    if not math.isfinite(target_mb):
        raise ConfigError(f"Target size must be a finite number of megabytes, got {target_mb}")
    kbps = parse_bitrate_kbps(bitrate)
    if kbps <= 0:
        raise ConfigError(f"Bitrate must be positive: {bitrate}")
    return math.floor((target_mb * 1024 * 8) / kbps)


def ensure_positive_duration(seconds: int) -> int:
    if seconds <= 0:
        raise ConfigError(f"Segment duration must be positive, got {seconds}s")
    return seconds
