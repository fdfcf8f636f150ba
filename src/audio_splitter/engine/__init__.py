"""Media engine package exports and the settings-driven factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from . import ffmpeg as _ffmpeg  # noqa: F401  (registers the ffmpeg backend)
from .base import (
    EngineError,
    MediaEngine,
    MediaMetadata,
    ProbeError,
    SegmentError,
    TranscodeError,
    TranscodeSettings,
)
from .registry import ENGINES

if TYPE_CHECKING:  # pragma: no cover - import guard for type checkers
    from audio_splitter.config import Settings


def build_engine(settings: "Settings") -> MediaEngine:
    """Instantiate the configured backend once, with binary paths resolved."""

    return ENGINES.create(settings.engine.backend, settings.engine)


__all__ = [
    "ENGINES",
    "EngineError",
    "MediaEngine",
    "MediaMetadata",
    "ProbeError",
    "SegmentError",
    "TranscodeError",
    "TranscodeSettings",
    "build_engine",
]
