"""Extraction of file edit directives from free-form assistant text.

A directive block is a fenced region whose opening line is tagged with
``new:<path>`` or ``edit:<path>``::

    ```new:/src/app.js
    console.log("hi")
    ```

The body runs up to the next fence. Every other fenced block is ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from ..project.errors import ParseError

__all__ = [
    "FENCE",
    "DirectiveKind",
    "EditDirective",
    "ExtractionResult",
    "extract_directives",
]

LOGGER = logging.getLogger(__name__)

FENCE = "```"


class DirectiveKind(str, Enum):
    CREATE = "create"
    MODIFY = "modify"


_TAGS: Tuple[Tuple[str, DirectiveKind], ...] = (
    ("new:", DirectiveKind.CREATE),
    ("edit:", DirectiveKind.MODIFY),
)
_DESCRIPTIONS = {
    DirectiveKind.CREATE: "New file suggested by AI",
    DirectiveKind.MODIFY: "Suggested edit by AI",
}


@dataclass(slots=True, frozen=True)
class EditDirective:
    """A single create/modify instruction for one project file."""

    path: str
    content: str
    kind: DirectiveKind

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self.kind]


@dataclass(slots=True, frozen=True)
class ExtractionResult:
    """Directives found in a reply plus the number of malformed blocks dropped."""

    directives: Tuple[EditDirective, ...] = ()
    skipped: int = 0

    def __iter__(self):
        return iter(self.directives)

    def __len__(self) -> int:
        return len(self.directives)

    def __bool__(self) -> bool:
        return bool(self.directives)


def extract_directives(text: str) -> ExtractionResult:
    """Return every directive in ``text``, creations first.

    Creations keep their relative document order, followed by all
    modifications in document order. Malformed directive blocks (missing
    path, empty body, no closing fence) are skipped and only counted.
    """

    creations: List[EditDirective] = []
    modifications: List[EditDirective] = []
    skipped = 0
    position = 0
    source = text or ""

    while True:
        start = source.find(FENCE, position)
        if start < 0:
            break
        try:
            directive, position = _read_block(source, start)
        except ParseError as exc:
            skipped += 1
            LOGGER.debug("Skipping malformed directive block at offset %d: %s", start, exc)
            position = exc.offset
            continue
        if directive is None:
            continue
        if directive.kind is DirectiveKind.CREATE:
            creations.append(directive)
        else:
            modifications.append(directive)

    directives = tuple(creations + modifications)
    if directives or skipped:
        LOGGER.debug(
            "Extracted %d directive(s) (%d create, %d modify), skipped %d",
            len(directives),
            len(creations),
            len(modifications),
            skipped,
        )
    return ExtractionResult(directives=directives, skipped=skipped)


def _read_block(text: str, start: int) -> tuple[EditDirective | None, int]:
    """Read the fenced block opening at ``start``.

    Returns the directive (``None`` for ordinary fenced blocks) and the
    offset just past the closing fence.
    """

    info_start = start + len(FENCE)
    kind, tag_length = _match_tag(text, info_start)
    if kind is None:
        close = text.find(FENCE, info_start)
        if close < 0:
            return None, len(text)
        return None, close + len(FENCE)

    path_start = info_start + tag_length
    line_end = text.find("\n", path_start)
    inline_fence = text.find(FENCE, path_start)
    if inline_fence >= 0 and (line_end < 0 or inline_fence < line_end):
        raise ParseError("Directive tag is closed on its opening line", offset=inline_fence + len(FENCE))
    if line_end < 0:
        raise ParseError("Directive tag is not followed by a newline", offset=len(text))

    body_start = line_end + 1
    close = text.find(FENCE, body_start)
    if close < 0:
        raise ParseError("Directive block has no closing fence", offset=len(text), reason="unterminated")
    resume = close + len(FENCE)

    path = text[path_start:line_end].strip()
    body = text[body_start:close].strip()
    if not path:
        raise ParseError("Directive block has no path", offset=resume, reason="missing_path")
    if not body:
        raise ParseError(f"Directive block for {path} has no body", offset=resume, reason="empty_body")
    return EditDirective(path=path, content=body, kind=kind), resume


def _match_tag(text: str, offset: int) -> tuple[DirectiveKind | None, int]:
    for tag, kind in _TAGS:
        if text.startswith(tag, offset):
            return kind, len(tag)
    return None, 0
