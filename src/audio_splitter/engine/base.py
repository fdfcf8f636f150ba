"""Engine contract for the transcode, segment and probe operations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


class EngineError(Exception):
    """External engine failure carrying the engine's diagnostic stream."""

    operation = "engine"

    def __init__(self, message: str, *, stderr: str | None = None, returncode: int | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr or ""
        self.returncode = returncode

    def tail(self, lines: int = 10) -> str:
        """Return the last ``lines`` non-blank lines of the diagnostic stream."""

        kept = [line for line in self.stderr.splitlines() if line.strip()]
        return "\n".join(kept[-lines:])


class TranscodeError(EngineError):
    operation = "transcode"


class SegmentError(EngineError):
    operation = "segment"


class ProbeError(EngineError):
    operation = "probe"


@dataclass(frozen=True)
class TranscodeSettings:
    bitrate: str = "24k"
    sample_rate: int = 16000
    channels: int = 1


@dataclass
class MediaMetadata:
    duration: float
    format_name: Optional[str] = None
    bit_rate: Optional[int] = None
    size: Optional[int] = None
    streams: List[Dict[str, Any]] = field(default_factory=list)


class MediaEngine(ABC):
    """Capability wrapper around an external media processing engine."""

    name: str = ""
    codec: str = ""
    container: str = ""
    segment_prefix: str = "part_"

    @abstractmethod
    def transcode(self, input_path: Path, output_path: Path, settings: TranscodeSettings) -> None:
        """Write a mono, resampled, re-encoded copy of ``input_path`` to ``output_path``."""

    @abstractmethod
    def segment(self, input_path: Path, out_dir: Path, segment_time: int) -> None:
        """Split ``input_path`` into numbered parts inside ``out_dir`` without re-encoding."""

    @abstractmethod
    def probe(self, file_path: Path) -> MediaMetadata:
        """Inspect ``file_path`` and return its format metadata."""

    def segment_name(self, index: int) -> str:
        return f"{self.segment_prefix}{index:03d}.{self.container}"

    def is_segment_name(self, name: str) -> bool:
        stem, dot, ext = name.rpartition(".")
        if not dot or ext != self.container or not stem.startswith(self.segment_prefix):
            return False
        index = stem[len(self.segment_prefix):]
        return len(index) >= 3 and index.isdigit()

    def describe(self) -> Dict[str, str]:
        return {
            "engine": self.name,
            "codec": self.codec,
            "container": self.container,
        }
