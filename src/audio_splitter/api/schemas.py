"""Response models for the transcode-and-split API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InputInfo(CamelModel):
    original_name: Optional[str] = Field(None, description="Filename as sent by the client")
    mime_type: Optional[str] = Field(None, description="Declared media type of the upload")
    size_bytes: int


class SettingsInfo(CamelModel):
    mode: str
    duration: int = Field(..., description="Effective segment length in seconds")
    bitrate: str
    sample_rate: int


class OutputFile(CamelModel):
    file_name: str
    abs_path_or_url: str
    duration_sec: Optional[float] = Field(None, description="Absent when the segment could not be probed")
    size_bytes: int


class OutputInfo(CamelModel):
    codec: str
    container: str
    base_dir: str
    files: List[OutputFile] = Field(default_factory=list)


class StatsInfo(CamelModel):
    total_parts: int
    total_duration_sec: Optional[float] = Field(
        None, description="Absent when any segment could not be probed"
    )
    total_size_bytes: int
    processing_ms: int


class TranscodeSplitResponse(CamelModel):
    input: InputInfo
    settings: SettingsInfo
    output: OutputInfo
    stats: StatsInfo


class ErrorResponse(CamelModel):
    error: str
    hint: str
    code: str
    logs_snippet: Optional[str] = None


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded", "down"] = "ok"
    timestamp: datetime
    dependencies: dict[str, str] = Field(default_factory=dict)
