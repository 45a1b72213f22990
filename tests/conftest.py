from __future__ import annotations

import sys
import textwrap
from pathlib import Path

import pytest

ADD_SOURCE = """
    from fnsplit import server
    from fnsplit.types import f32, i32, u64


    @server
    def add(a: u64, b: i32) -> f32:
        return float(a) + float(b)
"""


@pytest.fixture
def write_tree(tmp_path):
    """Write ``{relative path: source}`` under ``tmp_path / name`` and return the root."""

    def _write(name: str, files: dict[str, str]) -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative, text in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        return root

    return _write


@pytest.fixture
def importable(tmp_path, monkeypatch):
    """Put directories on sys.path; modules imported from tmp_path are dropped afterwards."""

    def _add(path: Path) -> None:
        monkeypatch.syspath_prepend(str(path))

    yield _add

    bases = (str(tmp_path), str(tmp_path.resolve()))
    for name, module in list(sys.modules.items()):
        if (getattr(module, "__file__", None) or "").startswith(bases):
            del sys.modules[name]
