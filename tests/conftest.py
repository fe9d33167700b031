# tests/conftest.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from extbuild.context import BuildContext
from extbuild.orchestrator.cli import build_graph
from extbuild.orchestrator.core import TaskGraph
from extbuild.orchestrator.utils import load_config

from .fakes import FakeRunner


UUID = "gravatar@example.com"


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """
    Minimal extension checkout: sources, a schema, a bundled lib, LICENSE,
    metadata.json and the package.json release counter.
    """
    root = tmp_path / "ext"
    (root / "src" / "schemas").mkdir(parents=True)
    (root / "src" / "ui").mkdir()
    (root / "lib").mkdir()

    (root / "src" / "extension.js").write_text("// extension\n", encoding="utf-8")
    (root / "src" / "prefs.js").write_text("// prefs\n", encoding="utf-8")
    (root / "src" / "prefs.js~").write_text("editor backup\n", encoding="utf-8")
    (root / "src" / "ui" / "menu.js").write_text("// menu\n", encoding="utf-8")
    (root / "src" / "schemas" / "gravatar.gschema.xml").write_text(
        "<schemalist/>\n", encoding="utf-8"
    )
    (root / "lib" / "md5.js").write_text("// md5\n", encoding="utf-8")
    (root / "LICENSE").write_text("MIT\n", encoding="utf-8")
    (root / "src" / "metadata.json").write_text(
        json.dumps(
            {
                "name": "Gravatar",
                "uuid": UUID,
                "shell-version": ["3.18"],
                "version": 1,
            },
            indent=2,
        )
        + "\n",
        encoding="utf-8",
    )
    (root / "package.json").write_text(
        json.dumps({"name": "gravatar", "version": 3}, indent=2) + "\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture()
def params(tmp_path: Path) -> dict:
    """Default settings with install roots redirected into tmp."""
    p = load_config(None)
    p["install"] = {
        "local_root": str(tmp_path / "home" / "extensions"),
        "global_root": str(tmp_path / "usr" / "extensions"),
    }
    return p


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner(sha="abc1234")


@pytest.fixture()
def context(project: Path, params: dict, runner: FakeRunner) -> BuildContext:
    return BuildContext.create(params, root=project, runner=runner)


@pytest.fixture()
def graph() -> TaskGraph:
    return build_graph()
