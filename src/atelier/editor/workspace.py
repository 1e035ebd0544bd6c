"""Workspace state object owning the project tree, session, and theme."""

from __future__ import annotations

import logging
from typing import Iterable

from ..project.errors import InvalidOperationError
from ..project.tree import FileNode, NodeType, ProjectTree
from ..services.persistence import DEFAULT_THEME, THEMES, ProjectSnapshot, Theme
from .applicator import ApplyReport, PatchApplicator
from .directives import EditDirective
from .session import SessionManager

__all__ = ["Workspace"]

LOGGER = logging.getLogger(__name__)


class Workspace:
    """Single owner of all mutable editor state.

    Tree and session mutations go through this object so that cascades
    (closing tabs of deleted files, refreshing tabs after tree writes) are
    applied together.
    """

    def __init__(self, tree: ProjectTree | None = None, *, theme: Theme = DEFAULT_THEME) -> None:
        self.tree = tree if tree is not None else ProjectTree()
        self.session = SessionManager(self.tree)
        self.applicator = PatchApplicator(self.tree, self.session)
        self._theme: Theme = theme

    # ------------------------------------------------------------------
    # Tree operations
    # ------------------------------------------------------------------
    def create(self, parent_path: str, name: str, node_type: NodeType) -> FileNode:
        return self.tree.insert(parent_path, name, node_type)

    def delete(self, path: str) -> tuple[str, ...]:
        """Delete ``path`` with its subtree and close the affected tabs."""

        removed = self.tree.delete(path)
        if removed:
            self.session.close_paths(removed)
        return removed

    def set_content(self, path: str, content: str) -> FileNode:
        node = self.tree.set_content(path, content)
        self.session.sync_from_tree(node.path)
        return node

    # ------------------------------------------------------------------
    # Patch pipeline
    # ------------------------------------------------------------------
    def apply(self, directive: EditDirective) -> FileNode:
        return self.applicator.apply(directive)

    def apply_all(self, directives: Iterable[EditDirective]) -> ApplyReport:
        return self.applicator.apply_all(directives)

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------
    @property
    def theme(self) -> Theme:
        return self._theme

    def set_theme(self, theme: str) -> Theme:
        if theme not in THEMES:
            raise InvalidOperationError(f"Unknown theme: {theme!r}", reason="invalid_theme")
        self._theme = theme  # type: ignore[assignment]
        return self._theme

    def toggle_theme(self) -> Theme:
        return self.set_theme("light" if self._theme == "dark" else "dark")

    # ------------------------------------------------------------------
    # Persistence bridge
    # ------------------------------------------------------------------
    def snapshot(self) -> ProjectSnapshot:
        """Capture the persistable part of the workspace (files and theme)."""

        return ProjectSnapshot(files=self.tree.to_payload(), theme=self._theme)

    def restore(self, snapshot: ProjectSnapshot) -> None:
        """Replace the tree and theme from ``snapshot``; the session starts empty."""

        self.session.clear()
        self.tree.load_payload(snapshot.files)
        self._theme = snapshot.theme
        LOGGER.debug("Restored workspace with %d node(s), theme=%s", len(self.tree), self._theme)

    @classmethod
    def from_snapshot(cls, snapshot: ProjectSnapshot) -> "Workspace":
        return cls(ProjectTree.from_payload(snapshot.files), theme=snapshot.theme)
