"""Tests for the directive scanner."""

from __future__ import annotations

import pytest

from atelier.editor.directives import DirectiveKind, EditDirective, extract_directives
from atelier.editor.languages import extension_of, language_for


def test_extracts_creations_before_modifications() -> None:
    reply = (
        "I updated the script and added a stylesheet.\n"
        "```edit:/a.js\nconsole.log(2)\n```\n"
        "Some commentary.\n"
        "```new:/b.css\nbody { color: red; }\n```\n"
    )

    result = extract_directives(reply)

    assert result.directives == (
        EditDirective(path="/b.css", content="body { color: red; }", kind=DirectiveKind.CREATE),
        EditDirective(path="/a.js", content="console.log(2)", kind=DirectiveKind.MODIFY),
    )
    assert result.skipped == 0


def test_relative_order_is_preserved_within_each_kind() -> None:
    reply = (
        "```edit:/one.js\n1\n```\n"
        "```new:/x.css\nx\n```\n"
        "```edit:/two.js\n2\n```\n"
        "```new:/y.css\ny\n```\n"
    )

    paths = [directive.path for directive in extract_directives(reply)]

    assert paths == ["/x.css", "/y.css", "/one.js", "/two.js"]


def test_ordinary_code_blocks_are_ignored() -> None:
    reply = (
        "Try this:\n"
        "```python\nprint('not a directive')\n```\n"
        "```\nplain fence\n```\n"
        "```new:/c.txt\nhello\n```"
    )

    result = extract_directives(reply)

    assert [d.path for d in result] == ["/c.txt"]
    assert result.skipped == 0


def test_path_and_body_are_trimmed() -> None:
    result = extract_directives("```edit:  /src/app.js  \n\n   body text  \n\n```")

    directive = result.directives[0]
    assert directive.path == "/src/app.js"
    assert directive.content == "body text"


@pytest.mark.parametrize(
    "reply",
    [
        "```edit:\nbody\n```",
        "```new:/empty.js\n   \n```",
        "```new:/never-closed.js\nconsole.log(1)",
        "```edit:/inline.js```",
    ],
)
def test_malformed_blocks_are_counted_and_skipped(reply: str) -> None:
    result = extract_directives(reply)

    assert len(result) == 0
    assert not result
    assert result.skipped == 1


def test_malformed_block_does_not_hide_later_directives() -> None:
    reply = "```edit:\nnothing\n```\ntext\n```new:/ok.js\nok\n```"

    result = extract_directives(reply)

    assert [d.path for d in result] == ["/ok.js"]
    assert result.skipped == 1


def test_plain_text_yields_nothing() -> None:
    result = extract_directives("No code here at all.")

    assert result.directives == ()
    assert result.skipped == 0
    assert extract_directives("").directives == ()


def test_descriptions_follow_kind() -> None:
    create = EditDirective(path="/a", content="x", kind=DirectiveKind.CREATE)
    modify = EditDirective(path="/a", content="x", kind=DirectiveKind.MODIFY)

    assert create.description == "New file suggested by AI"
    assert modify.description == "Suggested edit by AI"


@pytest.mark.parametrize(
    ("name", "language"),
    [
        ("app.js", "javascript"),
        ("App.TSX", "typescript"),
        ("style.css", "css"),
        ("main.py", "python"),
        ("Dockerfile", "dockerfile"),
        ("notes.unknown", "plaintext"),
    ],
)
def test_language_for_known_extensions(name: str, language: str) -> None:
    assert language_for(name) == language


def test_extension_of_uses_whole_name_without_dot() -> None:
    assert extension_of("Makefile") == "makefile"
    assert extension_of("archive.tar.GZ") == "gz"
