"""Editing session: open tabs and the single active buffer."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Protocol

from ..project.errors import InvalidOperationError, NotFoundError
from ..project.tree import ProjectTree, normalize_path
from .languages import DEFAULT_LANGUAGE, language_for

__all__ = ["Tab", "SessionManager", "ActiveTabListener"]

LOGGER = logging.getLogger(__name__)


class ActiveTabListener(Protocol):
    """Callback signature fired whenever the active tab changes."""

    def __call__(self, tab: Optional["Tab"]) -> None:  # pragma: no cover - protocol
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _generate_tab_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(slots=True)
class Tab:
    """An open editor tab holding a working copy of one project file."""

    id: str
    path: str
    name: str
    content: str = ""
    is_dirty: bool = False
    language: str = DEFAULT_LANGUAGE
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def title(self) -> str:
        return f"*{self.name}" if self.is_dirty else self.name


class SessionManager:
    """Tracks open tabs over a :class:`ProjectTree`.

    Every content edit made through a tab is written into the tree, so the
    tab's cached copy and the file node always agree afterwards.
    """

    def __init__(self, tree: ProjectTree) -> None:
        self._tree = tree
        self._tabs: Dict[str, Tab] = {}
        self._order: List[str] = []
        self._active_tab_id: str | None = None
        self._listeners: List[ActiveTabListener] = []

    # ------------------------------------------------------------------
    # Tab lifecycle
    # ------------------------------------------------------------------
    def open(self, path: str) -> Tab | None:
        """Open ``path`` in a tab and make it active.

        Re-opening a path reuses its existing tab. Folders are ignored and
        return ``None``.
        """

        target = normalize_path(path)
        existing = self.find_by_path(target)
        if existing is not None:
            self._set_active(existing.id)
            return existing

        node = self._tree.find(target)
        if node is None:
            raise NotFoundError(f"Cannot open {target}: no such file", path=target)
        if not node.is_file:
            LOGGER.debug("Ignoring open request for folder %s", target)
            return None

        tab = Tab(
            id=_generate_tab_id(),
            path=node.path,
            name=node.name,
            content=node.content or "",
            language=language_for(node.name),
        )
        self._tabs[tab.id] = tab
        self._order.append(tab.id)
        LOGGER.debug("Opened tab %s for %s", tab.id, tab.path)
        self._set_active(tab.id)
        return tab

    def close(self, tab_id: str) -> Tab:
        """Close and return the tab ``tab_id``.

        When the active tab closes, the tab to its left becomes active, or
        the new first tab when it was leftmost.
        """

        tab = self.get(tab_id)
        index = self._order.index(tab_id)
        self._order.pop(index)
        del self._tabs[tab_id]
        LOGGER.debug("Closed tab %s (%s)", tab_id, tab.path)

        if self._active_tab_id == tab_id:
            self._active_tab_id = self._fallback_for(index)
            self._notify_active_listeners()
        return tab

    def close_paths(self, paths: Iterable[str]) -> tuple[Tab, ...]:
        """Close every tab whose path is in ``paths``.

        Used when files are deleted from the tree. The active-tab fallback
        follows :meth:`close` relative to the surviving tabs.
        """

        doomed = {normalize_path(path) for path in paths}
        closed = tuple(tab for tab in self.iter_tabs() if tab.path in doomed)
        if not closed:
            return ()

        active_index = self._order.index(self._active_tab_id) if self._active_tab_id else -1
        active_closed = any(tab.id == self._active_tab_id for tab in closed)
        survivors_before = sum(
            1 for position, tab_id in enumerate(self._order)
            if position < active_index and self._tabs[tab_id].path not in doomed
        )
        for tab in closed:
            self._order.remove(tab.id)
            del self._tabs[tab.id]
        LOGGER.debug("Closed %d tab(s) for removed paths", len(closed))

        if active_closed:
            self._active_tab_id = self._fallback_for(survivors_before)
            self._notify_active_listeners()
        return closed

    def activate(self, tab_id: str) -> Tab:
        """Switch the active tab without touching any content."""

        self.get(tab_id)
        return self._set_active(tab_id)

    # ------------------------------------------------------------------
    # Content edits
    # ------------------------------------------------------------------
    def edit_tab(self, tab_id: str, content: str) -> Tab:
        """Replace the working copy of ``tab_id`` and write it to the tree."""

        tab = self.get(tab_id)
        self._tree.set_content(tab.path, content)
        tab.content = content
        tab.is_dirty = True
        return tab

    def edit_active(self, content: str) -> Tab:
        tab = self.active_tab
        if tab is None:
            raise InvalidOperationError("No active tab to edit", reason="no_active_tab")
        return self.edit_tab(tab.id, content)

    def sync_from_tree(self, path: str) -> Tab | None:
        """Refresh the cached copy of an open tab after a tree-side write."""

        tab = self.find_by_path(path)
        if tab is None:
            return None
        node = self._tree.require_file(tab.path)
        if tab.content != node.content:
            tab.content = node.content or ""
            tab.is_dirty = True
        return tab

    def mark_clean(self, tab_id: str) -> Tab:
        tab = self.get(tab_id)
        tab.is_dirty = False
        return tab

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_active_listener(self, listener: ActiveTabListener) -> None:
        self._listeners.append(listener)

    def remove_active_listener(self, listener: ActiveTabListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify_active_listeners(self) -> None:
        tab = self.active_tab
        for listener in list(self._listeners):
            listener(tab)

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    @property
    def active_tab_id(self) -> str | None:
        return self._active_tab_id

    @property
    def active_tab(self) -> Tab | None:
        if self._active_tab_id is None:
            return None
        return self._tabs.get(self._active_tab_id)

    @property
    def current_file(self) -> str | None:
        tab = self.active_tab
        return tab.path if tab is not None else None

    @property
    def language(self) -> str:
        tab = self.active_tab
        return tab.language if tab is not None else DEFAULT_LANGUAGE

    @property
    def buffer(self) -> str:
        """Working copy shown in the editor for the active tab."""

        tab = self.active_tab
        return tab.content if tab is not None else ""

    def get(self, tab_id: str) -> Tab:
        tab = self._tabs.get(tab_id)
        if tab is None:
            raise NotFoundError(f"Unknown tab_id: {tab_id}", reason="unknown_tab")
        return tab

    def find_by_path(self, path: str) -> Tab | None:
        target = normalize_path(path)
        for tab in self.iter_tabs():
            if tab.path == target:
                return tab
        return None

    def iter_tabs(self) -> Iterator[Tab]:
        for tab_id in self._order:
            yield self._tabs[tab_id]

    @property
    def tabs(self) -> tuple[Tab, ...]:
        return tuple(self.iter_tabs())

    def tab_count(self) -> int:
        return len(self._order)

    def clear(self) -> None:
        had_active = self._active_tab_id is not None
        self._tabs.clear()
        self._order.clear()
        self._active_tab_id = None
        if had_active:
            self._notify_active_listeners()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _set_active(self, tab_id: str) -> Tab:
        if self._active_tab_id != tab_id:
            self._active_tab_id = tab_id
            self._notify_active_listeners()
        return self._tabs[tab_id]

    def _fallback_for(self, index: int) -> str | None:
        if not self._order:
            return None
        if 0 <= index - 1 < len(self._order):
            return self._order[index - 1]
        return self._order[0]
