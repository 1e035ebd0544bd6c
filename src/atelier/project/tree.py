"""In-memory project tree backed by a flat path index."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Iterator, List, Literal, Mapping, Sequence, cast

from .errors import DuplicatePathError, InvalidOperationError, NotFoundError

__all__ = [
    "FILE",
    "FOLDER",
    "ROOT_PATH",
    "FileNode",
    "NodeType",
    "ProjectTree",
    "join_path",
    "normalize_path",
    "split_path",
]

LOGGER = logging.getLogger(__name__)

NodeType = Literal["file", "folder"]
FILE: NodeType = "file"
FOLDER: NodeType = "folder"
ROOT_PATH = "/"


def _generate_node_id() -> str:
    return uuid.uuid4().hex[:12]


def normalize_path(path: str) -> str:
    """Return ``path`` in canonical ``/a/b`` form (the root is ``/``)."""

    parts = [segment for segment in (path or "").strip().split("/") if segment]
    if not parts:
        return ROOT_PATH
    return "/" + "/".join(parts)


def join_path(parent_path: str, name: str) -> str:
    parent = normalize_path(parent_path)
    prefix = "" if parent == ROOT_PATH else parent
    return f"{prefix}/{name}"


def split_path(path: str) -> tuple[str, str]:
    """Split ``path`` into ``(parent_dir, leaf_name)``."""

    normalized = normalize_path(path)
    if normalized == ROOT_PATH:
        return ROOT_PATH, ""
    parent, _, leaf = normalized.rpartition("/")
    return (parent or ROOT_PATH), leaf


@dataclass(slots=True)
class FileNode:
    """A file or folder stored in the project tree.

    Folders keep the ordered paths of their children; the nodes themselves
    live in the owning :class:`ProjectTree` index.
    """

    id: str
    name: str
    type: NodeType
    path: str
    content: str | None = None
    child_paths: List[str] | None = None

    def __post_init__(self) -> None:
        if self.type == FILE:
            if self.content is None:
                self.content = ""
            self.child_paths = None
        elif self.type == FOLDER:
            if self.child_paths is None:
                self.child_paths = []
            self.content = None
        else:
            raise InvalidOperationError(f"Unknown node type: {self.type!r}", path=self.path)

    @property
    def is_file(self) -> bool:
        return self.type == FILE

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER

    @property
    def extension(self) -> str:
        _, dot, ext = self.name.rpartition(".")
        return ext.lower() if dot else ""


class ProjectTree:
    """Hierarchical file/folder store rooted at ``/``.

    Nodes are held in a flat mapping keyed by path. Each folder (and the
    virtual root) keeps an ordered list of child paths, so inserts and
    deletes never copy the tree.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, FileNode] = {}
        self._root_children: list[str] = []

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def insert(
        self,
        parent_path: str,
        name: str,
        node_type: NodeType,
        *,
        node_id: str | None = None,
    ) -> FileNode:
        """Create a node named ``name`` under ``parent_path`` and return it."""

        leaf = (name or "").strip()
        if not leaf or "/" in leaf:
            raise InvalidOperationError(f"Invalid node name: {name!r}", reason="invalid_name")
        if node_type not in (FILE, FOLDER):
            raise InvalidOperationError(f"Unknown node type: {node_type!r}", reason="invalid_type")

        siblings = self._child_list(parent_path)
        path = join_path(parent_path, leaf)
        if path in self._nodes:
            raise DuplicatePathError(path)

        node = FileNode(id=node_id or _generate_node_id(), name=leaf, type=node_type, path=path)
        self._nodes[path] = node
        siblings.append(path)
        LOGGER.debug("Inserted %s %s", node_type, path)
        return node

    def delete(self, path: str) -> tuple[str, ...]:
        """Remove the node at ``path`` and its whole subtree.

        Returns the removed paths, parents before children. An absent path
        removes nothing and returns an empty tuple.
        """

        target = normalize_path(path)
        node = self._nodes.get(target)
        if node is None:
            return ()

        removed = tuple(entry.path for entry in self._walk_from(node))
        for removed_path in removed:
            self._nodes.pop(removed_path, None)

        parent_path, _ = split_path(target)
        self._child_list(parent_path).remove(target)
        LOGGER.debug("Deleted %s (%d node(s))", target, len(removed))
        return removed

    def set_content(self, path: str, content: str) -> FileNode:
        """Replace the content of the file at ``path``."""

        target = normalize_path(path)
        node = self._nodes.get(target)
        if node is None:
            raise InvalidOperationError(f"Cannot set content: no file at {target}", path=target, reason="missing_file")
        if not node.is_file:
            raise InvalidOperationError(f"Cannot set content on folder {target}", path=target, reason="folder_content")
        node.content = content
        return node

    def clear(self) -> None:
        self._nodes.clear()
        self._root_children.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def find(self, path: str) -> FileNode | None:
        return self._nodes.get(normalize_path(path))

    def require_file(self, path: str) -> FileNode:
        node = self.find(path)
        if node is None or not node.is_file:
            raise NotFoundError(f"No file at {normalize_path(path)}", path=normalize_path(path))
        return node

    def children(self, path: str = ROOT_PATH) -> tuple[FileNode, ...]:
        return tuple(self._nodes[child] for child in self._child_list(path))

    def walk(self) -> Iterator[FileNode]:
        """Yield every node depth-first, children in stored order."""

        for child in list(self._root_children):
            yield from self._walk_from(self._nodes[child])

    def iter_files(self) -> Iterator[FileNode]:
        return (node for node in self.walk() if node.is_file)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_path(path) in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def to_payload(self) -> list[dict[str, Any]]:
        """Return the root children as nested JSON-ready dictionaries."""

        return [self._serialize(self._nodes[path]) for path in self._root_children]

    @classmethod
    def from_payload(cls, payload: Sequence[Mapping[str, Any]] | None) -> "ProjectTree":
        """Rebuild a tree from :meth:`to_payload` output.

        Paths are recomputed from names, and malformed or colliding entries
        are dropped with a warning.
        """

        tree = cls()
        tree.load_payload(payload)
        return tree

    def load_payload(self, payload: Sequence[Mapping[str, Any]] | None) -> None:
        """Replace the whole tree with the nodes described by ``payload``."""

        self.clear()
        self._load_children(ROOT_PATH, payload or ())

    def _load_children(self, parent_path: str, entries: Sequence[Mapping[str, Any]]) -> None:
        for entry in entries:
            if not isinstance(entry, Mapping):
                LOGGER.warning("Skipping non-mapping tree entry under %s", parent_path)
                continue
            name = entry.get("name")
            node_type = entry.get("type")
            node_id = entry.get("id")
            try:
                node = self.insert(
                    parent_path,
                    str(name or ""),
                    node_type,  # type: ignore[arg-type]
                    node_id=str(node_id) if node_id else None,
                )
            except InvalidOperationError as exc:
                LOGGER.warning("Skipping tree entry %r under %s: %s", name, parent_path, exc)
                continue
            if node.is_file:
                content = entry.get("content")
                node.content = content if isinstance(content, str) else ""
            else:
                children = entry.get("children")
                if isinstance(children, Sequence) and not isinstance(children, (str, bytes)):
                    self._load_children(node.path, children)

    def _serialize(self, node: FileNode) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": node.id,
            "name": node.name,
            "type": node.type,
            "path": node.path,
        }
        if node.is_file:
            payload["content"] = node.content
        else:
            payload["children"] = [self._serialize(self._nodes[child]) for child in node.child_paths or ()]
        return payload

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _child_list(self, parent_path: str) -> list[str]:
        parent = normalize_path(parent_path)
        if parent == ROOT_PATH:
            return self._root_children
        node = self._nodes.get(parent)
        if node is None or not node.is_folder:
            raise NotFoundError(f"No folder at {parent}", path=parent, reason="missing_parent")
        return cast(List[str], node.child_paths)

    def _walk_from(self, node: FileNode) -> Iterator[FileNode]:
        stack = [node]
        while stack:
            current = stack.pop()
            yield current
            if current.child_paths:
                stack.extend(self._nodes[child] for child in reversed(current.child_paths))
