"""FFmpeg/FFprobe backed media engine."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

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

logger = logging.getLogger(__name__)


def resolve_binary(binary: str) -> str:
    """Resolve a binary name against PATH, keeping the raw value when unresolved."""

    return shutil.which(binary) or binary


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class FFmpegEngine(MediaEngine):
    name = "ffmpeg"

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        *,
        timeout_sec: int | None = None,
        codec: str = "libopus",
        container: str = "webm",
        segment_prefix: str = "part_",
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.timeout_sec = timeout_sec
        self.codec = codec
        self.container = container
        self.segment_prefix = segment_prefix

    @classmethod
    def from_settings(cls, settings) -> "FFmpegEngine":
        return cls(
            resolve_binary(settings.ffmpeg_binary),
            resolve_binary(settings.ffprobe_binary),
            timeout_sec=settings.timeout_sec,
            codec=settings.audio_codec,
            container=settings.container,
            segment_prefix=settings.segment_prefix,
        )

    def _run(self, cmd: List[str], error_cls: Type[EngineError]) -> subprocess.CompletedProcess:
        logger.info("Running %s command: %s", error_cls.operation, " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout_sec,
            )
        except subprocess.TimeoutExpired as exc:
            stderr = exc.stderr.decode(errors="replace") if isinstance(exc.stderr, bytes) else exc.stderr
            raise error_cls(
                f"{error_cls.operation} timed out after {self.timeout_sec}s",
                stderr=stderr,
            ) from exc
        except OSError as exc:
            raise error_cls(f"{error_cls.operation} could not start {cmd[0]}: {exc}", stderr=str(exc)) from exc

        if proc.returncode != 0:
            error = error_cls(
                f"{error_cls.operation} failed with exit code {proc.returncode}",
                stderr=proc.stderr,
                returncode=proc.returncode,
            )
            logger.error("%s failed (code %s):\n%s", error_cls.operation, proc.returncode, error.tail())
            raise error
        return proc

    def transcode(self, input_path: Path, output_path: Path, settings: TranscodeSettings) -> None:
        cmd = [
            self.ffmpeg_binary,
            "-y",
            "-i",
            str(input_path),
            "-vn",
            "-ac",
            str(settings.channels),
            "-ar",
            str(settings.sample_rate),
            "-c:a",
            self.codec,
            "-b:a",
            settings.bitrate,
            str(output_path),
        ]
        self._run(cmd, TranscodeError)
        logger.info("Transcoding finished: %s", output_path)

    def segment(self, input_path: Path, out_dir: Path, segment_time: int) -> None:
        pattern = out_dir / f"{self.segment_prefix}%03d.{self.container}"
        cmd = [
            self.ffmpeg_binary,
            "-y",
            "-i",
            str(input_path),
            "-f",
            "segment",
            "-segment_time",
            str(segment_time),
            "-c",
            "copy",
            str(pattern),
        ]
        self._run(cmd, SegmentError)
        logger.info("Segmentation finished: %s", out_dir)

    def probe(self, file_path: Path) -> MediaMetadata:
        cmd = [
            self.ffprobe_binary,
            "-v",
            "error",
            "-show_format",
            "-show_streams",
            "-of",
            "json",
            str(file_path),
        ]
        proc = self._run(cmd, ProbeError)
        try:
            data: Dict[str, Any] = json.loads(proc.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ProbeError(f"Failed to parse ffprobe output: {exc}", stderr=proc.stderr) from exc

        fmt = data.get("format") or {}
        try:
            duration = float(fmt["duration"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProbeError(f"ffprobe reported no duration for {file_path.name}", stderr=proc.stderr) from exc

        return MediaMetadata(
            duration=duration,
            format_name=fmt.get("format_name"),
            bit_rate=_to_int(fmt.get("bit_rate")),
            size=_to_int(fmt.get("size")),
            streams=list(data.get("streams") or []),
        )


ENGINES.register(FFmpegEngine.name, FFmpegEngine.from_settings)
