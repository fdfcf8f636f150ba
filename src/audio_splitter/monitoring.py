"""Monitoring utilities for dependency checks and Prometheus metrics."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict

from prometheus_client import Counter, Histogram, start_http_server

from .config import Settings

logger = logging.getLogger(__name__)

PIPELINE_RUNS = Counter(
    "splitter_pipeline_runs_total",
    "Total number of transcode-and-split pipeline runs",
    labelnames=("status",),
)
SEGMENTS_PRODUCED = Counter(
    "splitter_segments_produced_total",
    "Total number of segments returned to callers",
)
PIPELINE_DURATION = Histogram(
    "splitter_pipeline_duration_seconds",
    "Wall-clock time of successful pipeline runs",
    buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800, 3600),
)

_metrics_started = False


def metrics_disabled() -> bool:
    return os.getenv("SPLITTER_DISABLE_METRICS", "false").lower() in {"1", "true", "yes"}


def ensure_metrics_server(port: int) -> None:
    global _metrics_started
    if _metrics_started:
        return
    start_http_server(port)
    _metrics_started = True
    logger.info("Prometheus metrics server started", extra={"port": port})


def record_pipeline_success(segment_count: int, elapsed_sec: float) -> None:
    PIPELINE_RUNS.labels(status="success").inc()
    SEGMENTS_PRODUCED.inc(segment_count)
    PIPELINE_DURATION.observe(elapsed_sec)


def record_pipeline_failure() -> None:
    PIPELINE_RUNS.labels(status="failure").inc()


def _check_binary(binary: str) -> str:
    return "ok" if shutil.which(binary) else "missing"


def _check_workspace_root(root: str) -> str:
    path = Path(root)
    try:
        path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path):
            pass
        return "ok"
    except OSError as exc:
        logger.warning("Workspace root check failed", exc_info=exc)
        return f"error:{exc.__class__.__name__}"


def collect_dependency_status(settings: Settings) -> Dict[str, str]:
    """Probe the engine binaries and the workspace root."""

    return {
        "ffmpeg": _check_binary(settings.engine.ffmpeg_binary),
        "ffprobe": _check_binary(settings.engine.ffprobe_binary),
        "workspace": _check_workspace_root(settings.workspace.root),
    }
