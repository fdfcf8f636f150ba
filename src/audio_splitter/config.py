"""Centralized settings and configuration loading utilities."""

from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_MIME_TYPES = [
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/mp4",
    "audio/x-m4a",
    "audio/webm",
    "video/mp4",
    "video/webm",
    "video/x-matroska",
]


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(3000, ge=1, le=65535)
    public_base_url: str = "http://localhost:3000"


class WorkspaceSettings(BaseModel):
    root: str = str(Path(tempfile.gettempdir()) / "audio-svc")
    output_dir_name: str = "out"
    static_route: str = "/files"


class EngineSettings(BaseModel):
    backend: str = "ffmpeg"
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    timeout_sec: int | None = Field(3600, ge=1)
    audio_codec: str = "libopus"
    container: str = "webm"
    segment_prefix: str = "part_"
    log_tail_lines: int = Field(10, ge=1)


class DefaultsSettings(BaseModel):
    duration: int = Field(600, ge=1)
    bitrate: str = "24k"
    sample_rate: int = Field(16000, ge=1)
    mode: Literal["byDuration", "byTargetMB"] = "byDuration"
    target_mb: float = Field(10.0, gt=0)


class UploadSettings(BaseModel):
    max_size_bytes: int = Field(2048 * 1024 * 1024, ge=1)
    allowed_mime_types: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES))
    copy_chunk_bytes: int = Field(1024 * 1024, ge=1)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    log_dir: str = "./logs"
    max_log_file_size_mb: int = 100
    backup_count: int = 7


class MonitoringSettings(BaseModel):
    prometheus_port: int = 9091


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SPLITTER_", env_nested_delimiter="__", extra="allow")

    service_name: str = "audio-splitter"
    environment: str = "dev"
    api_version: str = "v1"

    server: ServerSettings = ServerSettings()
    workspace: WorkspaceSettings = WorkspaceSettings()
    engine: EngineSettings = EngineSettings()
    defaults: DefaultsSettings = DefaultsSettings()
    upload: UploadSettings = UploadSettings()
    logging: LoggingSettings = LoggingSettings()
    monitoring: MonitoringSettings = MonitoringSettings()

    @staticmethod
    def load_yaml_config_file(file_path: str | Path | None) -> Dict[str, Any]:
        if not file_path:
            return {}
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        import yaml  # lazy import for optional dependency

        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration YAML must produce a mapping")
        return data

    @classmethod
    def from_source(cls, *, config_file: str | None = None, **overrides: Any) -> "Settings":
        base_data = cls.load_yaml_config_file(config_file)
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base_data.get(key), dict):
                base_data[key] = {**base_data[key], **value}
            else:
                base_data[key] = value
        return cls(**base_data)


def _legacy_env_overrides() -> Dict[str, Any]:
    """Map the plain PORT/SERVER_URL variables onto the server section."""

    server: Dict[str, Any] = {}
    if port := os.getenv("PORT"):
        server["port"] = int(port)
    if server_url := os.getenv("SERVER_URL"):
        server["public_base_url"] = server_url
    return {"server": server} if server else {}


@lru_cache
def get_settings() -> Settings:
    overrides = _legacy_env_overrides()
    cfg_file = os.getenv("SPLITTER_CONFIG_FILE")
    if cfg_file:
        return Settings.from_source(config_file=cfg_file, **overrides)

    default_path = Path.cwd() / "config" / "settings.yaml"
    if default_path.exists():
        return Settings.from_source(config_file=str(default_path), **overrides)

    return Settings.from_source(**overrides)


def reload_settings() -> None:
    get_settings.cache_clear()


def settings_dependency() -> Settings:
    return get_settings()
