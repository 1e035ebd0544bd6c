"""Virtual project model: the file tree and its error types."""

from .errors import AtelierError, DuplicatePathError, InvalidOperationError, NotFoundError, ParseError
from .tree import FILE, FOLDER, ROOT_PATH, FileNode, ProjectTree, join_path, normalize_path, split_path

__all__ = [
    "AtelierError",
    "DuplicatePathError",
    "FILE",
    "FOLDER",
    "FileNode",
    "InvalidOperationError",
    "NotFoundError",
    "ParseError",
    "ProjectTree",
    "ROOT_PATH",
    "join_path",
    "normalize_path",
    "split_path",
]
