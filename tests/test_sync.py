import ast
import importlib
import sys
from pathlib import Path

import pytest

from querygen.emitter import emit_structs, render_companion
from querygen.sync import (
    SyncEngine,
    companion_path,
    is_companion_path,
    load_companion,
    plan_companions,
    preamble_line_count,
    prefix_byte_count,
)
from querygen.types import CompanionArtifact, FieldDescriptor, FileResult, ParamDescriptorSet, Substitution


def params(name: str = "AQueryParams", fields=("id",)) -> ParamDescriptorSet:
    return ParamDescriptorSet(
        name, [FieldDescriptor(f, "int", [Substitution(i, "%d")]) for i, f in enumerate(fields)]
    )


@pytest.mark.parametrize(
    "source, expected",
    [
        ("pkg/users_query.py", "pkg/users_query_gen.py"),
        ("pkg/users_queries.py", "pkg/users_query_gen.py"),
        ("pkg/users_test.py", "pkg/users_query_gen_test.py"),
        ("pkg/users.py", "pkg/users_query_gen.py"),
        ("pkg/users_query_test.py", "pkg/users_query_query_gen_test.py"),
    ],
)
def test_companion_path(source, expected):
    assert companion_path(source) == Path(expected)


def test_generated_files_are_recognized():
    assert is_companion_path("a_query_gen.py")
    assert is_companion_path("a_query_gen_test.py")
    assert not is_companion_path("a_query.py")
    assert not is_companion_path("a_test.py")


def test_preamble_of_rendered_file_ends_at_last_import():
    text = render_companion("app", [params()])
    tree = ast.parse(text)
    n = preamble_line_count(tree)
    assert text.splitlines()[n - 1] == "from querygen import interpolate"
    assert text.encode()[prefix_byte_count(text.encode(), n):] == emit_structs([params()]).encode()


def test_preamble_with_docstring_only():
    assert preamble_line_count(ast.parse('"""doc\nstring"""\nX = 1\n')) == 2
    assert preamble_line_count(ast.parse("X = 1\n")) == 0


def test_prefix_byte_count():
    assert prefix_byte_count(b"a\nbb\nccc\n", 0) == 0
    assert prefix_byte_count(b"a\nbb\nccc\n", 2) == 5
    assert prefix_byte_count(b"a\nbb", 5) == 4


def _create(tmp_path: Path, wanted) -> CompanionArtifact:
    path = tmp_path / "a_query_gen.py"
    SyncEngine().create(CompanionArtifact(path=path, package="app", wanted=wanted))
    art = load_companion(path, "app")
    art.wanted = wanted
    return art


def test_update_without_changes_does_not_write(tmp_path):
    art = _create(tmp_path, [params()])
    before = art.path.stat().st_mtime_ns
    assert SyncEngine().update(art) is False
    assert art.path.stat().st_mtime_ns == before


def test_update_rewrites_body_and_keeps_preamble(tmp_path):
    art = _create(tmp_path, [params()])
    text = art.path.read_text()
    edited = text.replace("from querygen import interpolate\n", "from querygen import interpolate\nfrom app.models import UserId\n")
    art.path.write_text(edited)
    art = load_companion(art.path, "app")
    art.wanted = [params(fields=("id", "parent"))]

    assert SyncEngine().update(art) is True
    new_text = art.path.read_text()
    assert "from app.models import UserId\n" in new_text
    assert new_text.endswith(emit_structs(art.wanted))
    assert new_text.count("class AQueryParams") == 1

    # running again with the same wanted state is a no-op
    art = load_companion(art.path, "app")
    art.wanted = [params(fields=("id", "parent"))]
    assert SyncEngine().update(art) is False


def test_hash_comparison_is_byte_exact(tmp_path):
    art = _create(tmp_path, [params(fields=("a", "b"))])
    # same fields and occurrences, different declaration order
    reordered = ParamDescriptorSet(
        "AQueryParams",
        [
            FieldDescriptor("b", "int", [Substitution(1, "%d")]),
            FieldDescriptor("a", "int", [Substitution(0, "%d")]),
        ],
    )
    art.wanted = [reordered]
    assert SyncEngine().update(art) is True


def test_apply_creates_updates_and_deletes(tmp_path):
    engine = SyncEngine()
    stale = _create(tmp_path, [params()])
    stale.wanted = [params(fields=("x",))]
    doomed_path = tmp_path / "b_query_gen.py"
    doomed_path.write_text("# Code generated by querygen. DO NOT EDIT.\n")
    doomed = load_companion(doomed_path, "app")
    fresh = CompanionArtifact(path=tmp_path / "c_query_gen.py", package="app", wanted=[params("CQueryParams")])

    summary = engine.apply({a.path: a for a in (stale, doomed, fresh)})
    assert (summary.created, summary.updated, summary.deleted, summary.failed) == (1, 1, 1, 0)
    assert not doomed_path.exists()
    assert "class CQueryParams" in fresh.path.read_text()


def test_failures_are_isolated(tmp_path):
    missing = CompanionArtifact(path=tmp_path / "gone_query_gen.py", package="app", exists=True)
    broken_path = tmp_path / "broken_query_gen.py"
    broken_path.write_text("def (:\n")
    broken = load_companion(broken_path, "app")
    broken.wanted = [params()]
    fresh = CompanionArtifact(path=tmp_path / "c_query_gen.py", package="app", wanted=[params()])

    summary = SyncEngine().apply({a.path: a for a in (missing, broken, fresh)})
    assert summary.failed == 2
    assert summary.created == 1
    assert broken_path.read_text() == "def (:\n"


def test_plan_merges_results(tmp_path):
    existing = [
        CompanionArtifact(path=tmp_path / "a_query_gen.py", package="app", exists=True),
        CompanionArtifact(path=tmp_path / "orphan_query_gen.py", package="app", exists=True),
        CompanionArtifact(path=tmp_path / "held_query_gen.py", package="app", exists=True),
    ]
    results = [
        FileResult(path=tmp_path / "a_query.py", module="app.a_query", wanted=[params("First")]),
        FileResult(path=tmp_path / "a_queries.py", module="app.a_queries", wanted=[params("Second")]),
        FileResult(path=tmp_path / "plain.py", module="app.plain"),
        FileResult(path=tmp_path / "held.py", module="app.held", ok=False),
    ]
    plan = plan_companions(existing, results, "app")
    # last writer wins for colliding destinations
    assert [p.type_name for p in plan[tmp_path / "a_query_gen.py"].wanted] == ["Second"]
    assert plan[tmp_path / "orphan_query_gen.py"].wanted == []
    assert tmp_path / "plain_query_gen.py" not in plan
    assert tmp_path / "held_query_gen.py" not in plan


def test_companion_inside_runtime_package_imports(tmp_path, monkeypatch):
    pkg = tmp_path / "rtpkg"
    pkg.mkdir()
    (pkg / "__init__.py").write_text("")
    (pkg / "interpolate.py").write_text("from querygen.interpolate import query_params\n")
    engine = SyncEngine("rtpkg.interpolate")
    assert engine.should_import_runtime("app")
    assert not engine.should_import_runtime("rtpkg")

    path = pkg / "x_query_gen.py"
    engine.create(CompanionArtifact(path=path, package="rtpkg", wanted=[params()]))
    assert "\nfrom . import interpolate\n" in path.read_text()

    monkeypatch.syspath_prepend(str(tmp_path))
    importlib.invalidate_caches()
    try:
        module = importlib.import_module("rtpkg.x_query_gen")
        assert module.AQueryParams(id=3).format_args() == [3]
    finally:
        for name in [m for m in sys.modules if m == "rtpkg" or m.startswith("rtpkg.")]:
            del sys.modules[name]
