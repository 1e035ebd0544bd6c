"""Static mapping from file extensions to editor language identifiers."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

__all__ = ["DEFAULT_LANGUAGE", "LANGUAGE_BY_EXTENSION", "extension_of", "language_for"]

DEFAULT_LANGUAGE = "plaintext"

LANGUAGE_BY_EXTENSION: Mapping[str, str] = MappingProxyType(
    {
        "js": "javascript",
        "jsx": "javascript",
        "ts": "typescript",
        "tsx": "typescript",
        "py": "python",
        "html": "html",
        "css": "css",
        "scss": "scss",
        "less": "less",
        "json": "json",
        "md": "markdown",
        "php": "php",
        "java": "java",
        "cpp": "cpp",
        "c": "c",
        "cs": "csharp",
        "go": "go",
        "rs": "rust",
        "rb": "ruby",
        "sql": "sql",
        "xml": "xml",
        "yaml": "yaml",
        "yml": "yaml",
        "sh": "shell",
        "bash": "shell",
        "vue": "vue",
        "svelte": "svelte",
        "dart": "dart",
        "kt": "kotlin",
        "swift": "swift",
        "r": "r",
        "lua": "lua",
        "perl": "perl",
        "dockerfile": "dockerfile",
    }
)


def extension_of(name: str) -> str:
    """Return the lowercase extension of ``name``.

    Names without a dot use the whole name, so ``Dockerfile`` maps to
    ``dockerfile``.
    """

    leaf = name.rsplit("/", 1)[-1]
    return leaf.rsplit(".", 1)[-1].lower()


def language_for(name: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(extension_of(name), DEFAULT_LANGUAGE)
