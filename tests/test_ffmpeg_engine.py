"""Tests for the FFmpeg command-line engine with a stubbed subprocess layer."""

from __future__ import annotations

import json
import subprocess

import pytest

from audio_splitter.config import EngineSettings, Settings
from audio_splitter.engine import (
    ENGINES,
    ProbeError,
    SegmentError,
    TranscodeError,
    TranscodeSettings,
    build_engine,
)
from audio_splitter.engine.ffmpeg import FFmpegEngine
from audio_splitter.engine.registry import EngineRegistry

from .conftest import requires_posix_shell, write_script


class _Recorder:
    def __init__(self, *, returncode: int = 0, stdout: str = "", stderr: str = "", raises: Exception | None = None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.raises = raises
        self.commands: list[list[str]] = []
        self.kwargs: list[dict] = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(list(cmd))
        self.kwargs.append(kwargs)
        if self.raises is not None:
            raise self.raises
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr=self.stderr)


@pytest.fixture()
def engine() -> FFmpegEngine:
    return FFmpegEngine("/opt/ffmpeg/bin/ffmpeg", "/opt/ffmpeg/bin/ffprobe", timeout_sec=120)


def _install(monkeypatch, recorder: _Recorder) -> _Recorder:
    monkeypatch.setattr("audio_splitter.engine.ffmpeg.subprocess.run", recorder)
    return recorder


def test_transcode_builds_mono_resample_command(monkeypatch, engine, tmp_path):
    recorder = _install(monkeypatch, _Recorder())

    engine.transcode(tmp_path / "input.mp4", tmp_path / "audio.webm", TranscodeSettings(bitrate="24k", sample_rate=16000))

    assert recorder.commands == [
        [
            "/opt/ffmpeg/bin/ffmpeg",
            "-y",
            "-i",
            str(tmp_path / "input.mp4"),
            "-vn",
            "-ac",
            "1",
            "-ar",
            "16000",
            "-c:a",
            "libopus",
            "-b:a",
            "24k",
            str(tmp_path / "audio.webm"),
        ]
    ]
    assert recorder.kwargs[0]["timeout"] == 120
    assert recorder.kwargs[0]["encoding"] == "utf-8"
    assert recorder.kwargs[0]["errors"] == "replace"


def test_segment_uses_stream_copy_and_numbered_pattern(monkeypatch, engine, tmp_path):
    recorder = _install(monkeypatch, _Recorder())

    engine.segment(tmp_path / "audio.webm", tmp_path / "out", 600)

    cmd = recorder.commands[0]
    assert cmd[cmd.index("-f") + 1] == "segment"
    assert cmd[cmd.index("-segment_time") + 1] == "600"
    assert cmd[cmd.index("-c") + 1] == "copy"
    assert cmd[-1] == str(tmp_path / "out" / "part_%03d.webm")


def test_transcode_failure_carries_stderr_tail(monkeypatch, engine, tmp_path):
    stderr = "\n".join(f"line {idx}" for idx in range(1, 21)) + "\n\n"
    _install(monkeypatch, _Recorder(returncode=1, stderr=stderr))

    with pytest.raises(TranscodeError) as exc:
        engine.transcode(tmp_path / "in.wav", tmp_path / "out.webm", TranscodeSettings())

    assert exc.value.returncode == 1
    assert exc.value.tail().splitlines() == [f"line {idx}" for idx in range(11, 21)]
    assert exc.value.tail(2) == "line 19\nline 20"


def test_segment_timeout_raises_segment_error(monkeypatch, engine, tmp_path):
    timeout = subprocess.TimeoutExpired(cmd=["ffmpeg"], timeout=120, stderr=b"still muxing")
    _install(monkeypatch, _Recorder(raises=timeout))

    with pytest.raises(SegmentError) as exc:
        engine.segment(tmp_path / "audio.webm", tmp_path / "out", 10)

    assert "timed out" in str(exc.value)
    assert exc.value.stderr == "still muxing"


def test_missing_binary_raises_operation_error(monkeypatch, engine, tmp_path):
    _install(monkeypatch, _Recorder(raises=FileNotFoundError(2, "No such file or directory")))

    with pytest.raises(ProbeError) as exc:
        engine.probe(tmp_path / "part_000.webm")

    assert "could not start" in str(exc.value)


def test_probe_parses_format_metadata(monkeypatch, engine, tmp_path):
    payload = {
        "format": {"duration": "9.981000", "format_name": "matroska,webm", "bit_rate": "24550", "size": "30631"},
        "streams": [{"codec_name": "opus", "channels": 1, "sample_rate": "48000"}],
    }
    recorder = _install(monkeypatch, _Recorder(stdout=json.dumps(payload)))

    meta = engine.probe(tmp_path / "part_000.webm")

    assert meta.duration == pytest.approx(9.981)
    assert meta.format_name == "matroska,webm"
    assert meta.bit_rate == 24550
    assert meta.size == 30631
    assert meta.streams[0]["codec_name"] == "opus"
    assert recorder.commands[0][:2] == ["/opt/ffmpeg/bin/ffprobe", "-v"]
    assert "-show_format" in recorder.commands[0]


@pytest.mark.parametrize("stdout", ["not json", json.dumps({"format": {}}), json.dumps({"format": {"duration": "N/A"}})])
def test_probe_without_duration_is_probe_error(monkeypatch, engine, tmp_path, stdout):
    _install(monkeypatch, _Recorder(stdout=stdout))

    with pytest.raises(ProbeError):
        engine.probe(tmp_path / "part_000.webm")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("part_000.webm", True),
        ("part_1234.webm", True),
        ("part_01.webm", False),
        ("part_abc.webm", False),
        ("part_000.ogg", False),
        ("audio.webm", False),
        ("part_000", False),
    ],
)
def test_segment_name_recognition(engine, name, expected):
    assert engine.is_segment_name(name) is expected


def test_segment_name_is_zero_padded(engine):
    assert engine.segment_name(0) == "part_000.webm"
    assert engine.segment_name(42) == "part_042.webm"


def test_from_settings_resolves_binaries_once(monkeypatch):
    lookups: list[str] = []

    def _which(binary):
        lookups.append(binary)
        return f"/usr/local/bin/{binary}"

    monkeypatch.setattr("audio_splitter.engine.ffmpeg.shutil.which", _which)
    settings = Settings(engine=EngineSettings(timeout_sec=30, audio_codec="libopus", container="webm"))

    engine = build_engine(settings)

    assert isinstance(engine, FFmpegEngine)
    assert engine.ffmpeg_binary == "/usr/local/bin/ffmpeg"
    assert engine.ffprobe_binary == "/usr/local/bin/ffprobe"
    assert engine.timeout_sec == 30
    assert lookups == ["ffmpeg", "ffprobe"]


def test_registry_contains_ffmpeg_backend():
    assert "ffmpeg" in ENGINES.names()


def test_engine_registry_register_and_create():
    registry = EngineRegistry()
    registry.register("Stub", lambda settings: FFmpegEngine(timeout_sec=settings.timeout_sec))

    engine = registry.create("stub", EngineSettings(timeout_sec=5))
    assert engine.timeout_sec == 5

    with pytest.raises(ValueError):
        registry.register("stub", lambda settings: FFmpegEngine())

    with pytest.raises(KeyError):
        registry.create("gstreamer", EngineSettings())


def test_describe_reports_output_format(engine):
    assert engine.describe() == {"engine": "ffmpeg", "codec": "libopus", "container": "webm"}


def test_error_tail_of_empty_stderr():
    assert TranscodeError("boom").tail() == ""


@requires_posix_shell
def test_undecodable_transcode_stderr_stays_a_transcode_error(tmp_path):
    ffmpeg = write_script(tmp_path, "ffmpeg", "printf 'Invalid data \\377\\376 found\\nConversion failed!\\n' >&2\nexit 1")
    engine = FFmpegEngine(str(ffmpeg), str(ffmpeg), timeout_sec=30)

    with pytest.raises(TranscodeError) as exc:
        engine.transcode(tmp_path / "input.mp3", tmp_path / "audio.webm", TranscodeSettings())

    assert exc.value.returncode == 1
    assert "\ufffd" in exc.value.stderr
    assert exc.value.tail().splitlines()[-1] == "Conversion failed!"


@requires_posix_shell
def test_undecodable_metadata_tags_still_yield_duration(tmp_path):
    ffprobe = write_script(
        tmp_path,
        "ffprobe",
        "printf '{\"format\": {\"duration\": \"12.5\", \"tags\": {\"title\": \"\\377\\376\"}}}'",
    )
    engine = FFmpegEngine("ffmpeg", str(ffprobe), timeout_sec=30)

    metadata = engine.probe(tmp_path / "part_000.webm")

    assert metadata.duration == pytest.approx(12.5)


@requires_posix_shell
def test_undecodable_ffprobe_failure_is_probe_error(tmp_path):
    ffprobe = write_script(tmp_path, "ffprobe", "printf 'moov atom \\377 not found\\n' >&2\nexit 1")
    engine = FFmpegEngine("ffmpeg", str(ffprobe), timeout_sec=30)

    with pytest.raises(ProbeError) as exc:
        engine.probe(tmp_path / "part_000.webm")

    assert "\ufffd" in exc.value.tail()
