"""
Sync engine: converge companion modules on disk with the wanted state.

All the possibilities:

    | a.py    | Num queries | a_query_gen.py | Action                     |
    |---------|-------------|----------------|----------------------------|
    | Present | 1+          | Up-to-date     | Update file (no-op)        |
    | Present | 1+          | Stale          | Update file (creates diff) |
    | Present | 1+          | Absent         | Create file                |
    | Present | 0           | Present        | Remove file                |
    | Absent  | n/a         | Present        | Remove file                |

Everything below the preamble (module docstring and imports) is owned by
querygen. Updates compare hashes of the trailing bytes, so an unchanged tree
causes zero writes.
"""

from __future__ import annotations

import ast
import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Sequence, Set

from .emitter import emit_structs, render_companion
from .types import CompanionArtifact, FileResult

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".py"
GEN_SUFFIX = "_query_gen.py"
GEN_TEST_SUFFIX = "_query_gen_test.py"

_SUFFIX_REWRITES = (
    ("_query.py", GEN_SUFFIX),
    ("_queries.py", GEN_SUFFIX),
)


# =============================================================================
# Filename derivation
# =============================================================================

def is_companion_path(path: str | Path) -> bool:
    name = str(path)
    return name.endswith(GEN_SUFFIX) or name.endswith(GEN_TEST_SUFFIX)


def companion_path(source: str | Path) -> Path:
    """Map a source file to its companion; first match wins."""
    s = str(source)
    for old, new in _SUFFIX_REWRITES:
        if s.endswith(old):
            return Path(s[: -len(old)] + new)
    if s.endswith("_test.py") and not s.endswith(GEN_TEST_SUFFIX):
        return Path(s[: -len("_test.py")] + GEN_TEST_SUFFIX)
    return Path(s[: -len(SOURCE_SUFFIX)] + GEN_SUFFIX)


# =============================================================================
# Preamble
# =============================================================================

def preamble_line_count(tree: ast.Module) -> int:
    """max(end line of the module docstring, end line of the last top-level import)."""
    docstring_end = 0
    if tree.body:
        first = tree.body[0]
        if isinstance(first, ast.Expr) and isinstance(first.value, ast.Constant) and isinstance(first.value.value, str):
            docstring_end = first.end_lineno or first.lineno
    last_import_end = 0
    for stmt in tree.body:
        if isinstance(stmt, (ast.Import, ast.ImportFrom)):
            last_import_end = max(last_import_end, stmt.end_lineno or stmt.lineno)
    return max(docstring_end, last_import_end)


def prefix_byte_count(contents: bytes, line_count: int) -> int:
    """Byte offset just past the line_count-th newline (whole file if shorter)."""
    if line_count <= 0:
        return 0
    lines = 0
    for i, c in enumerate(contents):
        if c == 0x0A:
            lines += 1
            if lines == line_count:
                return i + 1
    return len(contents)


# =============================================================================
# Planning
# =============================================================================

def load_companion(path: Path, package: str) -> CompanionArtifact:
    """Describe an existing companion; tree stays None if it cannot be parsed."""
    art = CompanionArtifact(path=path, package=package, exists=True)
    try:
        art.tree = ast.parse(path.read_bytes(), filename=str(path))
    except (SyntaxError, ValueError) as e:
        logger.warning("failed to parse companion path=%s err=%s", path, e)
    return art


def plan_companions(
    existing: Iterable[CompanionArtifact],
    results: Iterable[FileResult],
    package: str,
) -> Dict[Path, CompanionArtifact]:
    """
    Merge per-file results into one artifact per companion path.

    If two sources map to the same companion, the later result wins.
    Companions of sources whose analysis did not complete are left out so
    they are neither rewritten nor deleted.
    """
    plan: Dict[Path, CompanionArtifact] = {a.path: a for a in existing}
    held: Set[Path] = set()
    for r in results:
        if not r.path.name.endswith(SOURCE_SUFFIX) or is_companion_path(r.path):
            continue
        dest = companion_path(r.path)
        if not r.ok:
            held.add(dest)
            continue
        art = plan.get(dest)
        if art is None:
            if not r.wanted:
                continue
            art = CompanionArtifact(path=dest, package=package)
            plan[dest] = art
        art.wanted = list(r.wanted)
        art.source_path = r.path
    for dest in held:
        plan.pop(dest, None)
    return plan


# =============================================================================
# Mutation
# =============================================================================

@dataclass
class SyncSummary:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0
    failed: int = 0

    @property
    def writes(self) -> int:
        return self.created + self.updated + self.deleted


def _sha1(data: bytes) -> bytes:
    return hashlib.sha1(data).digest()


class SyncEngine:
    """Applies a plan sequentially, one companion at a time."""

    def __init__(self, runtime_module: str = "querygen.interpolate") -> None:
        self.runtime_package, self.runtime_name = runtime_module.rsplit(".", 1)

    def should_import_runtime(self, package: str) -> bool:
        """False when the companion lives in the runtime package and imports it relatively."""
        return package != self.runtime_package

    def create(self, art: CompanionArtifact) -> None:
        text = render_companion(
            art.package,
            art.wanted,
            runtime_package=self.runtime_package,
            runtime_name=self.runtime_name,
            import_runtime=self.should_import_runtime(art.package),
        )
        with open(art.path, "x", encoding="utf-8", newline="\n") as fh:
            fh.write(text)

    def update(self, art: CompanionArtifact) -> bool:
        """Rewrite everything below the preamble; returns whether the file changed."""
        if art.tree is None:
            raise ValueError(f"cannot locate preamble in unparsable file {art.path}")
        body = emit_structs(art.wanted, f"{self.runtime_name}.").encode("utf-8")
        with open(art.path, "r+b") as fh:
            contents = fh.read()
            prefix = prefix_byte_count(contents, preamble_line_count(art.tree))
            if _sha1(contents[prefix:]) == _sha1(body):
                return False
            fh.truncate(prefix)
            fh.seek(0, 2)
            fh.write(body)
        return True

    def apply(self, plan: Dict[Path, CompanionArtifact]) -> SyncSummary:
        summary = SyncSummary()
        for path in sorted(plan):
            art = plan[path]
            try:
                if not art.exists:
                    logger.debug("creating new file path=%s", path)
                    self.create(art)
                    summary.created += 1
                elif not art.wanted:
                    logger.debug("removing file path=%s", path)
                    path.unlink()
                    summary.deleted += 1
                else:
                    logger.debug("updating file path=%s", path)
                    if self.update(art):
                        summary.updated += 1
                    else:
                        summary.unchanged += 1
            except (OSError, ValueError) as e:
                logger.warning("failed to sync file path=%s err=%s", path, e)
                summary.failed += 1
        return summary


def sync_package(
    existing: Sequence[CompanionArtifact],
    results: Sequence[FileResult],
    package: str,
    runtime_module: str = "querygen.interpolate",
) -> SyncSummary:
    plan = plan_companions(existing, results, package)
    summary = SyncEngine(runtime_module).apply(plan)
    if summary.created or summary.updated:
        logger.info(
            "querygen codegen summary pkg=%s filesCreated=%d filesUpdated=%d",
            package,
            summary.created,
            summary.updated,
        )
    return summary
