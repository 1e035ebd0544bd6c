"""Tests for applying edit directives to a workspace."""

from __future__ import annotations

import logging

import pytest

from atelier.editor.directives import DirectiveKind, EditDirective, extract_directives
from atelier.editor.workspace import Workspace
from atelier.project.errors import DuplicatePathError, InvalidOperationError, NotFoundError
from atelier.project.tree import FILE, FOLDER


def _create(path: str, content: str) -> EditDirective:
    return EditDirective(path=path, content=content, kind=DirectiveKind.CREATE)


def _modify(path: str, content: str) -> EditDirective:
    return EditDirective(path=path, content=content, kind=DirectiveKind.MODIFY)


def test_create_inserts_file_and_opens_it(workspace: Workspace) -> None:
    node = workspace.apply(_create("/b.css", "body {}"))

    assert node.path == "/b.css"
    assert workspace.tree.find("/b.css").content == "body {}"
    assert workspace.session.current_file == "/b.css"
    assert workspace.session.buffer == "body {}"
    assert workspace.session.language == "css"


def test_create_in_nested_existing_folder(workspace: Workspace) -> None:
    workspace.create("/", "src", FOLDER)

    workspace.apply(_create("src/util.js", "export {}"))

    assert workspace.tree.find("/src/util.js").content == "export {}"


def test_create_requires_parent_folder(workspace: Workspace) -> None:
    with pytest.raises(NotFoundError):
        workspace.apply(_create("/missing/file.js", "x"))
    assert len(workspace.tree) == 0


def test_create_existing_path_is_rejected(workspace: Workspace) -> None:
    workspace.create("/", "a.js", FILE)
    workspace.set_content("/a.js", "original")

    with pytest.raises(DuplicatePathError):
        workspace.apply(_create("/a.js", "replacement"))

    assert workspace.tree.find("/a.js").content == "original"


def test_modify_updates_existing_file_and_open_tab(workspace: Workspace) -> None:
    workspace.create("/", "a.js", FILE)
    workspace.set_content("/a.js", "console.log(1)")
    tab = workspace.session.open("/a.js")

    workspace.apply(_modify("/a.js", "console.log(2)"))

    assert workspace.tree.find("/a.js").content == "console.log(2)"
    assert tab.content == "console.log(2)"
    assert tab.is_dirty is True
    assert workspace.session.tab_count() == 1


def test_modify_missing_file_raises(workspace: Workspace) -> None:
    with pytest.raises(NotFoundError):
        workspace.apply(_modify("/ghost.js", "x"))


def test_modify_folder_is_invalid(workspace: Workspace) -> None:
    workspace.create("/", "lib", FOLDER)

    with pytest.raises(InvalidOperationError):
        workspace.apply(_modify("/lib", "x"))


def test_apply_all_runs_create_before_modify(workspace: Workspace) -> None:
    workspace.create("/", "a.js", FILE)
    workspace.set_content("/a.js", "console.log(1)")
    reply = "```edit:/a.js\nconsole.log(2)\n```\n```new:/b.css\nbody{}\n```"

    report = workspace.apply_all(extract_directives(reply))

    assert [outcome.directive.path for outcome in report.outcomes] == ["/b.css", "/a.js"]
    assert report.ok
    assert workspace.tree.find("/b.css").content == "body{}"
    assert workspace.tree.find("/a.js").content == "console.log(2)"
    assert workspace.session.current_file == "/a.js"
    assert [tab.path for tab in workspace.session.tabs] == ["/b.css", "/a.js"]


def test_apply_all_continues_after_failure(workspace: Workspace, caplog: pytest.LogCaptureFixture) -> None:
    directives = [
        _modify("/missing.js", "x"),
        _create("/ok.txt", "fine"),
    ]

    with caplog.at_level(logging.WARNING, logger="atelier.editor.applicator"):
        report = workspace.apply_all(directives)

    assert not report.ok
    assert [outcome.directive.path for outcome in report.failed] == ["/missing.js"]
    assert isinstance(report.failed[0].error, NotFoundError)
    assert report.failed[0].summary().startswith("failed /missing.js:")
    assert [outcome.summary() for outcome in report.applied] == ["created /ok.txt"]
    assert workspace.tree.find("/ok.txt").content == "fine"
    assert "missing.js" in caplog.text


def test_apply_all_with_nothing_is_ok(workspace: Workspace) -> None:
    report = workspace.apply_all([])

    assert report.outcomes == ()
    assert report.ok
