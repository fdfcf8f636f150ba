"""Shared pytest fixtures for the transcode-and-split service tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

import pytest
from fastapi.testclient import TestClient

from audio_splitter.app import create_app
from audio_splitter.config import LoggingSettings, ServerSettings, Settings, WorkspaceSettings
from audio_splitter.engine import (
    MediaEngine,
    MediaMetadata,
    ProbeError,
    SegmentError,
    TranscodeError,
    TranscodeSettings,
)
from audio_splitter.pipeline import PipelineOrchestrator
from audio_splitter.workspace import WorkspaceManager

requires_posix_shell = pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")

ENGINE_STDERR = "\n".join(f"ffmpeg diagnostic line {idx}" for idx in range(1, 16))


class FakeEngine(MediaEngine):
    """In-memory stand-in for the external engine."""

    name = "fake"
    codec = "libopus"
    container = "webm"

    def __init__(
        self,
        *,
        parts: int = 3,
        part_duration: float = 10.0,
        fail_on: str | None = None,
        probe_failures: Iterable[str] = (),
        extra_outputs: Iterable[str] = (),
    ) -> None:
        self.parts = parts
        self.part_duration = part_duration
        self.fail_on = fail_on
        self.probe_failures = set(probe_failures)
        self.extra_outputs = list(extra_outputs)
        self.calls: list[tuple] = []

    def transcode(self, input_path: Path, output_path: Path, settings: TranscodeSettings) -> None:
        self.calls.append(("transcode", input_path, output_path, settings))
        if self.fail_on == "transcode":
            raise TranscodeError("transcode failed with exit code 1", stderr=ENGINE_STDERR, returncode=1)
        output_path.write_bytes(b"encoded:" + input_path.read_bytes())

    def segment(self, input_path: Path, out_dir: Path, segment_time: int) -> None:
        self.calls.append(("segment", input_path, out_dir, segment_time))
        if self.fail_on == "segment":
            raise SegmentError("segment failed with exit code 1", stderr=ENGINE_STDERR, returncode=1)
        for index in reversed(range(self.parts)):
            (out_dir / self.segment_name(index)).write_bytes(b"x" * (100 + index))
        for name in self.extra_outputs:
            (out_dir / name).write_bytes(b"stray")

    def probe(self, file_path: Path) -> MediaMetadata:
        self.calls.append(("probe", file_path))
        if file_path.name in self.probe_failures:
            raise ProbeError(f"ffprobe reported no duration for {file_path.name}")
        return MediaMetadata(duration=self.part_duration, format_name="matroska,webm")


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    return Settings(
        service_name="audio-splitter-test",
        environment="test",
        server=ServerSettings(public_base_url="http://testserver"),
        workspace=WorkspaceSettings(root=str(tmp_path / "workspaces")),
        logging=LoggingSettings(log_dir=str(tmp_path / "logs")),
    )


@pytest.fixture()
def workspace_root(test_settings) -> Path:
    return Path(test_settings.workspace.root)


@pytest.fixture()
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def orchestrator(test_settings, fake_engine) -> PipelineOrchestrator:
    return PipelineOrchestrator.from_settings(test_settings, fake_engine)


@pytest.fixture()
def workspace_manager(workspace_root) -> WorkspaceManager:
    manager = WorkspaceManager(workspace_root)
    manager.ensure_root()
    return manager


@pytest.fixture()
def api_client(monkeypatch, test_settings, fake_engine) -> TestClient:
    monkeypatch.setenv("SPLITTER_DISABLE_METRICS", "1")
    app = create_app(test_settings, engine=fake_engine)
    return TestClient(app)


def write_script(directory: Path, name: str, body: str) -> Path:
    """Write an executable shell script that stands in for an engine binary."""

    path = directory / name
    path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    path.chmod(0o755)
    return path
