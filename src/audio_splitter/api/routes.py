"""API route definitions for the transcode-and-split service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, Request, UploadFile

from ..config import Settings, settings_dependency
from ..errors import raise_error
from ..monitoring import collect_dependency_status
from ..pipeline import PipelineOptions, PipelineOrchestrator, PipelineResult, UploadedMedia
from .schemas import (
    ErrorResponse,
    HealthResponse,
    InputInfo,
    OutputFile,
    OutputInfo,
    SettingsInfo,
    StatsInfo,
    TranscodeSplitResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    415: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def orchestrator_dependency(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator


def _build_options(
    settings: Settings,
    *,
    mode: Optional[str],
    duration: Optional[int],
    bitrate: Optional[str],
    sample_rate: Optional[int],
    target_mb: Optional[float],
    cleanup: bool,
) -> PipelineOptions:
    defaults = settings.defaults
    return PipelineOptions(
        mode=mode or defaults.mode,
        duration=duration or defaults.duration,
        bitrate=bitrate or defaults.bitrate,
        sample_rate=sample_rate or defaults.sample_rate,
        target_mb=target_mb or defaults.target_mb,
        cleanup=cleanup,
    )


def _to_response(result: PipelineResult) -> TranscodeSplitResponse:
    return TranscodeSplitResponse(
        input=InputInfo(
            original_name=result.original_name,
            mime_type=result.mime_type,
            size_bytes=result.input_size_bytes,
        ),
        settings=SettingsInfo(
            mode=result.mode,
            duration=result.segment_time,
            bitrate=result.bitrate,
            sample_rate=result.sample_rate,
        ),
        output=OutputInfo(
            codec=result.codec,
            container=result.container,
            base_dir=result.base_url,
            files=[
                OutputFile(
                    file_name=segment.file_name,
                    abs_path_or_url=segment.url,
                    duration_sec=segment.duration_sec,
                    size_bytes=segment.size_bytes,
                )
                for segment in result.segments
            ],
        ),
        stats=StatsInfo(
            total_parts=result.total_parts,
            total_duration_sec=result.total_duration_sec,
            total_size_bytes=result.total_size_bytes,
            processing_ms=result.processing_ms,
        ),
    )


@router.post(
    "/transcode-and-split",
    response_model=TranscodeSplitResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
def transcode_and_split(
    background_tasks: BackgroundTasks,
    file: Optional[UploadFile] = File(None),
    duration: Optional[int] = Form(None, gt=0),
    bitrate: Optional[str] = Form(None),
    sample_rate: Optional[int] = Form(None, alias="sampleRate", gt=0),
    mode: Optional[str] = Form(None),
    target_mb: Optional[float] = Form(None, alias="targetMB", gt=0, allow_inf_nan=False),
    cleanup: bool = Query(False),
    settings: Settings = Depends(settings_dependency),
    orchestrator: PipelineOrchestrator = Depends(orchestrator_dependency),
) -> TranscodeSplitResponse:
    options = _build_options(
        settings,
        mode=mode,
        duration=duration,
        bitrate=bitrate,
        sample_rate=sample_rate,
        target_mb=target_mb,
        cleanup=cleanup,
    )
    upload = UploadedMedia(
        original_name=file.filename if file else None,
        mime_type=file.content_type if file else None,
        stream=file.file if file else None,
        size_bytes=getattr(file, "size", None) if file else None,
    )

    run = orchestrator.run(upload, options)
    if run.result is None:
        raise_error("SERVER_ERROR", detail="Pipeline finished without a result")
    background_tasks.add_task(orchestrator.finish, run)
    return _to_response(run.result)


@router.get("/monitor/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(settings_dependency)) -> HealthResponse:
    deps = collect_dependency_status(settings)
    status = "ok" if all(value == "ok" for value in deps.values()) else "degraded"
    return HealthResponse(status=status, timestamp=datetime.now(timezone.utc), dependencies=deps)
