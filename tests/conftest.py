"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from atelier.editor.workspace import Workspace
from atelier.project.tree import FILE, FOLDER


@pytest.fixture
def workspace() -> Workspace:
    return Workspace()


@pytest.fixture
def web_workspace() -> Workspace:
    """Workspace holding a small static site::

        /index.html
        /css/style.css
        /js/app.js
        /README.md
    """

    ws = Workspace()
    ws.create("/", "index.html", FILE)
    ws.set_content("/index.html", "<h1>Hello</h1>")
    ws.create("/", "css", FOLDER)
    ws.create("/css", "style.css", FILE)
    ws.set_content("/css/style.css", "body { margin: 0; }")
    ws.create("/", "js", FOLDER)
    ws.create("/js", "app.js", FILE)
    ws.set_content("/js/app.js", "console.log(1)")
    ws.create("/", "README.md", FILE)
    ws.set_content("/README.md", "# Demo")
    return ws
