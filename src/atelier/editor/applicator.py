"""Apply extracted edit directives to the project tree and session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Tuple

from ..project.errors import AtelierError, InvalidOperationError, NotFoundError
from ..project.tree import FILE, FileNode, ProjectTree, normalize_path, split_path
from .directives import DirectiveKind, EditDirective
from .session import SessionManager

__all__ = ["ApplyOutcome", "ApplyReport", "PatchApplicator"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ApplyOutcome:
    """Result of applying one directive."""

    directive: EditDirective
    node: FileNode | None = None
    error: AtelierError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        verb = "created" if self.directive.kind is DirectiveKind.CREATE else "updated"
        if self.ok:
            return f"{verb} {self.directive.path}"
        return f"failed {self.directive.path}: {self.error}"


@dataclass(slots=True, frozen=True)
class ApplyReport:
    outcomes: Tuple[ApplyOutcome, ...] = ()

    @property
    def applied(self) -> Tuple[ApplyOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> Tuple[ApplyOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)

    @property
    def ok(self) -> bool:
        return not self.failed


class PatchApplicator:
    """Writes directives into a :class:`ProjectTree` and opens the touched files."""

    def __init__(self, tree: ProjectTree, session: SessionManager) -> None:
        self._tree = tree
        self._session = session

    def apply(self, directive: EditDirective) -> FileNode:
        """Apply ``directive`` and return the affected file node.

        Creations require the parent folder to exist; modifications require
        an existing file. Either way the file ends up open and active.
        """

        path = normalize_path(directive.path)
        if directive.kind is DirectiveKind.CREATE:
            parent_dir, leaf = split_path(path)
            self._tree.insert(parent_dir, leaf, FILE)
        else:
            node = self._tree.find(path)
            if node is None:
                raise NotFoundError(f"Cannot edit {path}: no such file", path=path)
            if not node.is_file:
                raise InvalidOperationError(f"Cannot edit folder {path}", path=path, reason="folder_content")

        node = self._tree.set_content(path, directive.content)
        self._session.sync_from_tree(path)
        self._session.open(path)
        LOGGER.debug("Applied %s directive to %s", directive.kind.value, path)
        return node

    def apply_all(self, directives: Iterable[EditDirective]) -> ApplyReport:
        """Apply ``directives`` in order, continuing past individual failures.

        Already-applied directives are never rolled back.
        """

        outcomes: list[ApplyOutcome] = []
        for directive in directives:
            try:
                node = self.apply(directive)
            except AtelierError as exc:
                LOGGER.warning("Failed to apply %s directive for %s: %s", directive.kind.value, directive.path, exc)
                outcomes.append(ApplyOutcome(directive=directive, error=exc))
            else:
                outcomes.append(ApplyOutcome(directive=directive, node=node))
        return ApplyReport(outcomes=tuple(outcomes))
