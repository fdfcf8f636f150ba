"""Request pipeline: validate, transcode, segment, enumerate and report.

Each request walks a linear sequence of stages inside its own workspace. Any
failure after the workspace exists goes through a single cleanup transition
before the error is surfaced to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence

import structlog

from .config import Settings
from .engine import EngineError, MediaEngine, ProbeError, TranscodeSettings
from .errors import ServiceError, raise_error
from .monitoring import record_pipeline_failure, record_pipeline_success
from .sizing import ConfigError, duration_for_target_size, ensure_positive_duration
from .utils import stored_filename
from .workspace import Workspace, WorkspaceManager

logger = logging.getLogger(__name__)

MODE_BY_DURATION = "byDuration"
MODE_BY_TARGET_MB = "byTargetMB"
SEGMENTATION_MODES = (MODE_BY_DURATION, MODE_BY_TARGET_MB)


class Stage(str, Enum):
    IDLE = "idle"
    WORKSPACE_ALLOCATED = "workspace_allocated"
    TRANSCODED = "transcoded"
    SEGMENTED = "segmented"
    ENUMERATED = "enumerated"
    RESPONDED = "responded"
    FAILED = "failed"
    CLEANED = "cleaned"


@dataclass
class UploadedMedia:
    original_name: Optional[str]
    mime_type: Optional[str]
    stream: Optional[BinaryIO]
    size_bytes: Optional[int] = None


@dataclass(frozen=True)
class PipelineOptions:
    mode: str = MODE_BY_DURATION
    duration: int = 600
    bitrate: str = "24k"
    sample_rate: int = 16000
    target_mb: float = 10.0
    cleanup: bool = False


@dataclass
class SegmentInfo:
    file_name: str
    url: str
    size_bytes: int
    duration_sec: Optional[float] = None


@dataclass
class PipelineResult:
    original_name: Optional[str]
    mime_type: Optional[str]
    input_size_bytes: int
    mode: str
    segment_time: int
    bitrate: str
    sample_rate: int
    codec: str
    container: str
    base_url: str
    segments: List[SegmentInfo] = field(default_factory=list)
    total_duration_sec: Optional[float] = None
    total_size_bytes: int = 0
    processing_ms: int = 0

    @property
    def total_parts(self) -> int:
        return len(self.segments)


@dataclass
class PipelineRun:
    options: PipelineOptions
    started: float = field(default_factory=time.monotonic)
    stage: Stage = Stage.IDLE
    workspace: Optional[Workspace] = None
    result: Optional[PipelineResult] = None


class PipelineOrchestrator:
    def __init__(
        self,
        engine: MediaEngine,
        workspaces: WorkspaceManager,
        *,
        public_base_url: str,
        static_route: str = "/files",
        allowed_mime_types: Sequence[str] = (),
        max_upload_bytes: int = 2048 * 1024 * 1024,
        copy_chunk_bytes: int = 1024 * 1024,
        log_tail_lines: int = 10,
    ) -> None:
        self.engine = engine
        self.workspaces = workspaces
        self.public_base_url = public_base_url.rstrip("/")
        self.static_route = "/" + static_route.strip("/")
        self.allowed_mime_types = {mime.lower() for mime in allowed_mime_types}
        self.max_upload_bytes = max_upload_bytes
        self.copy_chunk_bytes = copy_chunk_bytes
        self.log_tail_lines = log_tail_lines
        self.events = structlog.get_logger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, engine: MediaEngine) -> "PipelineOrchestrator":
        return cls(
            engine,
            WorkspaceManager(settings.workspace.root, settings.workspace.output_dir_name),
            public_base_url=settings.server.public_base_url,
            static_route=settings.workspace.static_route,
            allowed_mime_types=settings.upload.allowed_mime_types,
            max_upload_bytes=settings.upload.max_size_bytes,
            copy_chunk_bytes=settings.upload.copy_chunk_bytes,
            log_tail_lines=settings.engine.log_tail_lines,
        )

    def validate(self, upload: UploadedMedia, options: PipelineOptions) -> None:
        """Reject bad requests before anything touches the filesystem."""

        if upload.stream is None:
            raise_error(
                "BAD_REQUEST",
                detail="Missing file field 'file' in multipart/form-data",
                hint="Send the upload as file=@/path/to/file.ext",
            )
        mime_type = (upload.mime_type or "").lower()
        if mime_type not in self.allowed_mime_types:
            raise_error("UNSUPPORTED_MEDIA_TYPE", detail=f"Unsupported media type: {upload.mime_type}")
        if upload.size_bytes is not None and upload.size_bytes > self.max_upload_bytes:
            raise_error(
                "FILE_TOO_LARGE",
                detail=f"Uploaded file is {upload.size_bytes} bytes, limit is {self.max_upload_bytes}",
            )
        if options.mode not in SEGMENTATION_MODES:
            raise_error(
                "BAD_REQUEST",
                detail="Invalid mode parameter. Must be 'byDuration' or 'byTargetMB'",
                hint="Use mode=byDuration or mode=byTargetMB",
            )

    def resolve_segment_time(self, options: PipelineOptions) -> int:
        if options.mode == MODE_BY_TARGET_MB:
            seconds = duration_for_target_size(options.bitrate, options.target_mb)
        else:
            seconds = options.duration
        return ensure_positive_duration(seconds)

    def run(self, upload: UploadedMedia, options: PipelineOptions) -> PipelineRun:
        run = PipelineRun(options=options)
        self.validate(upload, options)

        try:
            workspace = self.workspaces.allocate()
            run.workspace = workspace
            self._advance(run, Stage.WORKSPACE_ALLOCATED)

            input_path = workspace.work_dir / stored_filename(upload.original_name)
            input_size = self._store_upload(upload, input_path)
            logger.info("Processing file %s (%s bytes) in %s", input_path.name, input_size, workspace.work_dir)

            audio_path = workspace.work_dir / f"audio.{self.engine.container}"
            self.engine.transcode(
                input_path,
                audio_path,
                TranscodeSettings(bitrate=options.bitrate, sample_rate=options.sample_rate),
            )
            self._advance(run, Stage.TRANSCODED)

            segment_time = self.resolve_segment_time(options)
            logger.info("Segment time: %s seconds", segment_time)
            self.engine.segment(audio_path, workspace.out_dir, segment_time)
            self._advance(run, Stage.SEGMENTED)

            names = self._list_segments(workspace.out_dir)
            self._advance(run, Stage.ENUMERATED)

            result = self._build_result(run, workspace, upload, input_size, segment_time, names)
            run.result = result
        except (EngineError, ConfigError, OSError) as exc:
            self._fail(run)
            raise self._processing_error(exc) from exc
        except Exception:
            self._fail(run)
            raise

        record_pipeline_success(result.total_parts, result.processing_ms / 1000)
        return run

    def finish(self, run: PipelineRun) -> None:
        """Post-response step: release the workspace when the caller asked for cleanup."""

        self._advance(run, Stage.RESPONDED)
        if run.options.cleanup and run.workspace is not None:
            self.workspaces.release(run.workspace.work_dir)
            self._advance(run, Stage.CLEANED)

    def _advance(self, run: PipelineRun, stage: Stage) -> None:
        self.events.debug(
            "pipeline_stage",
            workspace=run.workspace.id if run.workspace else None,
            from_stage=run.stage.value,
            to_stage=stage.value,
        )
        run.stage = stage

    def _fail(self, run: PipelineRun) -> None:
        logger.exception("Error processing request at stage %s", run.stage.value)
        self._advance(run, Stage.FAILED)
        record_pipeline_failure()
        if run.workspace is not None:
            self.workspaces.release(run.workspace.work_dir)
        self._advance(run, Stage.CLEANED)

    def _processing_error(self, exc: Exception) -> ServiceError:
        logs_snippet = None
        if isinstance(exc, EngineError):
            logs_snippet = exc.tail(self.log_tail_lines) or str(exc)
        return ServiceError(
            "PROCESSING_ERROR",
            detail=f"Error processing media: {exc or 'Unknown error'}",
            logs_snippet=logs_snippet,
        )

    def _store_upload(self, upload: UploadedMedia, destination: Path) -> int:
        if upload.stream is None:
            raise ValueError("Upload has no stream to store")
        written = 0
        with destination.open("wb") as handle:
            while chunk := upload.stream.read(self.copy_chunk_bytes):
                written += len(chunk)
                if written > self.max_upload_bytes:
                    raise_error(
                        "FILE_TOO_LARGE",
                        detail=f"Uploaded file exceeds {self.max_upload_bytes} bytes",
                    )
                handle.write(chunk)
        return destination.stat().st_size

    def _list_segments(self, out_dir: Path) -> List[str]:
        return sorted(
            entry.name for entry in out_dir.iterdir() if entry.is_file() and self.engine.is_segment_name(entry.name)
        )

    def _public_url(self, workspace: Workspace, file_name: str | None = None) -> str:
        url = f"{self.public_base_url}{self.static_route}/{workspace.id}/{workspace.out_dir.name}"
        return f"{url}/{file_name}" if file_name else url

    def _build_result(
        self,
        run: PipelineRun,
        workspace: Workspace,
        upload: UploadedMedia,
        input_size: int,
        segment_time: int,
        names: List[str],
    ) -> PipelineResult:
        options = run.options

        segments: List[SegmentInfo] = []
        total_duration = 0.0
        total_size = 0
        probe_failed = False

        for name in names:
            path = workspace.out_dir / name
            size = path.stat().st_size
            duration: Optional[float] = None
            try:
                duration = self.engine.probe(path).duration
            except ProbeError as exc:
                probe_failed = True
                logger.warning("Error getting duration for %s: %s", name, exc)
            else:
                total_duration += duration

            total_size += size
            segments.append(
                SegmentInfo(
                    file_name=name,
                    url=self._public_url(workspace, name),
                    size_bytes=size,
                    duration_sec=duration,
                )
            )

        return PipelineResult(
            original_name=upload.original_name,
            mime_type=upload.mime_type,
            input_size_bytes=input_size,
            mode=options.mode,
            segment_time=segment_time,
            bitrate=options.bitrate,
            sample_rate=options.sample_rate,
            codec=self.engine.codec,
            container=self.engine.container,
            base_url=self._public_url(workspace),
            segments=segments,
            total_duration_sec=None if probe_failed or not segments else total_duration,
            total_size_bytes=total_size,
            processing_ms=int((time.monotonic() - run.started) * 1000),
        )
