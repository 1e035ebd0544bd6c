"""Prompt context assembled from the project tree.

The assistant prompt is built from three views of the project: an outline
of the tree, the files most relevant to the current file, and a dump of
every file.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from ..editor.directives import FENCE
from ..editor.languages import DEFAULT_LANGUAGE
from ..project.tree import FileNode, ProjectTree, normalize_path

__all__ = [
    "build_prompt",
    "build_suggestion_prompt",
    "dump_all_files",
    "flatten_conversation",
    "relevant_files",
    "render_file_block",
    "render_tree",
    "split_suggestions",
]

FOLDER_MARKER = "\U0001F4C1"
FILE_MARKER = "\U0001F4C4"
_INDENT = "  "
_CROSS_REFERENCES: Mapping[str, frozenset[str]] = {
    "html": frozenset({"css", "js"}),
    "css": frozenset({"html"}),
    "js": frozenset({"html"}),
}


def render_tree(tree: ProjectTree) -> str:
    """Return an indented outline with one line per node."""

    lines: list[str] = []

    def _render(nodes: Sequence[FileNode], depth: int) -> None:
        for node in nodes:
            marker = FOLDER_MARKER if node.is_folder else FILE_MARKER
            lines.append(f"{_INDENT * depth}{marker} {node.path}")
            if node.is_folder:
                _render(tree.children(node.path), depth + 1)

    _render(tree.children(), 0)
    return "".join(f"{line}\n" for line in lines)


def render_file_block(node: FileNode) -> str:
    return f"File: {node.path}\n{FENCE}{_path_extension(node.path)}\n{node.content}\n{FENCE}\n"


def dump_all_files(tree: ProjectTree) -> str:
    """Concatenate the path and content of every non-empty file in tree order."""

    return _join_blocks(node for node in tree.iter_files() if node.content)


def relevant_files(tree: ProjectTree, current_path: str | None) -> tuple[FileNode, ...]:
    """Select files likely related to ``current_path``.

    Picks the current file, files sharing its extension, and the fixed
    html <-> css/js cross references.
    """

    if not current_path:
        return ()
    target = normalize_path(current_path)
    current_ext = _path_extension(target)
    related_exts = _CROSS_REFERENCES.get(current_ext, frozenset())

    selected: list[FileNode] = []
    for node in tree.iter_files():
        if node.path == target:
            selected.append(node)
            continue
        if not node.content:
            continue
        ext = _path_extension(node.path)
        if (current_ext and ext == current_ext) or ext in related_exts:
            selected.append(node)
    return tuple(selected)


def build_prompt(
    tree: ProjectTree,
    *,
    current_file: str | None = None,
    language: str = DEFAULT_LANGUAGE,
    code: str = "",
) -> str:
    """Assemble the system context sent ahead of the conversation."""

    related = _join_blocks(relevant_files(tree, current_file))
    return f"""You are an AI coding assistant with direct access to the project's files and structure.
You can suggest edits, improvements, and help write new code.

Project Structure:
{render_tree(tree)}

Current File: {current_file or 'None selected'}
Current Language: {language}
Current Code:
{FENCE}{language}
{code}
{FENCE}

Immediately Related Files:
{related}

All Project Files:
{dump_all_files(tree)}

You can:
1. Analyze code and suggest improvements
2. Propose direct file edits (use {FENCE}edit:filepath{FENCE} blocks)
3. Suggest new files (use {FENCE}new:filepath{FENCE} blocks)
4. Reference any file in the project
5. Maintain consistency across files
6. Suggest refactoring across multiple files

When suggesting edits, use this format:
{FENCE}edit:/path/to/file
// Your edited code here
{FENCE}

When suggesting new files, use this format:
{FENCE}new:/path/to/new/file
// Your new file content here
{FENCE}

Based on this project structure and files, please provide helpful, specific responses to help the user with their code.
Consider relationships between files and suggest improvements that maintain consistency across the project."""


def build_suggestion_prompt(code: str, language: str = DEFAULT_LANGUAGE) -> str:
    return (
        f"You are an expert programmer. Given this {language} code:\n\n{code}\n\n"
        "Provide 2-3 suggestions for improvements or completions. "
        "Return only the code suggestions, no explanations."
    )


def split_suggestions(text: str) -> tuple[str, ...]:
    """Split a suggestion reply on code fences, keeping each non-blank piece trimmed."""

    return tuple(piece.strip() for piece in (text or "").split(FENCE) if piece.strip())


def flatten_conversation(system_prompt: str, history: Iterable[str]) -> str:
    """Join the system prompt and prior message contents into one provider prompt."""

    return "\n\n".join([system_prompt, *history])


def _join_blocks(nodes: Iterable[FileNode]) -> str:
    return "\n".join(render_file_block(node) for node in nodes)


def _path_extension(path: str) -> str:
    leaf = path.rsplit("/", 1)[-1]
    _, dot, ext = leaf.rpartition(".")
    return ext.lower() if dot else ""
