from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, Dict

import pytest

from querygen.context import AnalysisContext, load_package


def write_files(root: Path, files: Dict[str, str]) -> None:
    for name, text in files.items():
        p = root / name
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")


@pytest.fixture
def make_package(tmp_path: Path) -> Callable[..., AnalysisContext]:
    """Write files into tmp_path/app (a real package) and load them."""

    def _make(files: Dict[str, str]) -> AnalysisContext:
        pkg = tmp_path / "app"
        write_files(pkg, {"__init__.py": "", **files})
        ctx, diagnostics = load_package(pkg, sorted(pkg.glob("*.py")))
        assert diagnostics == []
        return ctx

    return _make
