"""Small filesystem helpers shared by the JSON stores."""

from __future__ import annotations

import os
from pathlib import Path

__all__ = ["atomic_write_bytes", "atomic_write_text"]


def atomic_write_bytes(path: Path, data: bytes, *, mode: int | None = None) -> Path:
    """Write ``data`` next to ``path`` and move it into place in one step.

    Readers never observe a half-written file. ``mode`` is applied to the
    temporary file before the move, on platforms that honour it.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(f".{path.name}.tmp")
    staging.write_bytes(data)
    if mode is not None and os.name != "nt":  # pragma: no cover - depends on OS
        os.chmod(staging, mode)
    staging.replace(path)
    return path


def atomic_write_text(path: Path, text: str) -> Path:
    return atomic_write_bytes(path, text.encode("utf-8"))
