"""Helpers for turning untrusted upload names into safe on-disk names."""

from __future__ import annotations

import os
import re
import unicodedata

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

STORED_INPUT_STEM = "input"


def sanitize_filename(name: str | None) -> str:
    """Strip diacritics and replace anything outside ``[a-zA-Z0-9._-]`` with ``_``.

    Total on every input: names made only of unsupported characters degrade to
    a run of underscores, and ``None`` becomes an empty string.
    """

    decomposed = unicodedata.normalize("NFD", name or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _UNSAFE_CHARS.sub("_", stripped).lower()


def stored_filename(original_name: str | None) -> str:
    """Name used for the upload inside a workspace: a fixed stem plus the sanitized extension."""

    _, ext = os.path.splitext(sanitize_filename(original_name))
    return f"{STORED_INPUT_STEM}{ext}"
