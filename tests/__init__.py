"""Pytest package configuration for shared test settings."""

from __future__ import annotations

import os

os.environ.setdefault("SPLITTER_DISABLE_METRICS", "1")
