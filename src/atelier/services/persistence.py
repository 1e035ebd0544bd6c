"""Snapshot persistence for the project tree and theme."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping

from ..utils.files import atomic_write_text

__all__ = [
    "DEFAULT_THEME",
    "THEMES",
    "ProjectSnapshot",
    "ProjectStore",
    "Theme",
]

LOGGER = logging.getLogger(__name__)

Theme = Literal["light", "dark"]
THEMES: tuple[str, ...] = ("light", "dark")
DEFAULT_THEME: Theme = "dark"

_STATE_DIR = Path.home() / ".atelier"
_PROJECT_FILENAME = "project.json"
_PROJECT_VERSION = 1


def _default_project_path() -> Path:
    return _STATE_DIR / _PROJECT_FILENAME


@dataclass(slots=True)
class ProjectSnapshot:
    """Persisted shape: the root children of the tree plus the UI theme.

    Tabs and other session state are deliberately not part of it.
    """

    files: list[dict[str, Any]] = field(default_factory=list)
    theme: Theme = DEFAULT_THEME

    def to_dict(self) -> dict[str, Any]:
        return {"files": self.files, "theme": self.theme}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "ProjectSnapshot":
        if not isinstance(payload, Mapping):
            return cls()
        files = payload.get("files")
        theme = payload.get("theme")
        if theme not in THEMES:
            if theme is not None:
                LOGGER.warning("Ignoring unknown theme %r in project snapshot", theme)
            theme = DEFAULT_THEME
        return cls(
            files=[dict(entry) for entry in files if isinstance(entry, Mapping)] if isinstance(files, list) else [],
            theme=theme,
        )


class ProjectStore:
    """JSON file adapter for :class:`ProjectSnapshot`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _default_project_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ProjectSnapshot:
        return ProjectSnapshot.from_dict(self._read_payload())

    def save(self, snapshot: ProjectSnapshot) -> Path:
        """Write ``snapshot`` atomically and return the target path."""

        payload = snapshot.to_dict()
        payload["version"] = _PROJECT_VERSION
        atomic_write_text(self._path, json.dumps(payload, indent=2, sort_keys=True))
        LOGGER.debug("Project saved to %s (%d root entries)", self._path, len(snapshot.files))
        return self._path

    def _read_payload(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
            if isinstance(data, Mapping):
                return dict(data)
        except FileNotFoundError:
            return {}
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Project file %s is not valid JSON: %s", self._path, exc)
        return {}
