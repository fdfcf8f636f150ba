"""Unit tests for monitoring utilities and dependency checks."""

from __future__ import annotations

from audio_splitter.monitoring import (
    collect_dependency_status,
    ensure_metrics_server,
    metrics_disabled,
    record_pipeline_failure,
    record_pipeline_success,
)


class _CounterStub:
    def __init__(self) -> None:
        self.calls: list[dict[str, str]] = []
        self.count = 0

    def labels(self, **kwargs):
        self.calls.append(kwargs)
        return self

    def inc(self, amount: float = 1) -> None:
        self.count += amount


class _HistogramStub:
    def __init__(self) -> None:
        self.values: list[float] = []

    def observe(self, value: float) -> None:
        self.values.append(value)


def test_ensure_metrics_server_runs_once(monkeypatch):
    starts: list[int] = []
    monkeypatch.setattr("audio_splitter.monitoring._metrics_started", False)
    monkeypatch.setattr("audio_splitter.monitoring.start_http_server", lambda port: starts.append(port))

    ensure_metrics_server(9999)
    ensure_metrics_server(9999)

    assert starts == [9999]


def test_record_pipeline_metrics(monkeypatch):
    runs = _CounterStub()
    segments = _CounterStub()
    duration = _HistogramStub()
    monkeypatch.setattr("audio_splitter.monitoring.PIPELINE_RUNS", runs)
    monkeypatch.setattr("audio_splitter.monitoring.SEGMENTS_PRODUCED", segments)
    monkeypatch.setattr("audio_splitter.monitoring.PIPELINE_DURATION", duration)

    record_pipeline_success(4, 1.5)
    record_pipeline_failure()

    assert runs.calls == [{"status": "success"}, {"status": "failure"}]
    assert segments.count == 4
    assert duration.values == [1.5]


def test_metrics_disabled_flag(monkeypatch):
    monkeypatch.setenv("SPLITTER_DISABLE_METRICS", "yes")
    assert metrics_disabled() is True
    monkeypatch.setenv("SPLITTER_DISABLE_METRICS", "0")
    assert metrics_disabled() is False


def test_collect_dependency_status(monkeypatch, test_settings):
    monkeypatch.setattr(
        "audio_splitter.monitoring.shutil.which",
        lambda binary: "/usr/bin/ffmpeg" if binary == "ffmpeg" else None,
    )

    status = collect_dependency_status(test_settings)

    assert status == {"ffmpeg": "ok", "ffprobe": "missing", "workspace": "ok"}
