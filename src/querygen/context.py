"""
Read-only analysis context for one package.

A package is one directory of Python files. The context carries the parsed
files, a per-file definition index built lazily on first use, and the type
resolution capability handed to the descriptor builder.
"""

from __future__ import annotations

import ast
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .resolver import PackageTypeResolver
from .types import BUILTIN_KINDS, Diagnostic, PrimitiveKind, TypeObject


logger = logging.getLogger(__name__)


@dataclass
class SourceFile:
    path: Path
    module: str
    text: str
    tree: ast.Module


@dataclass
class DefinitionIndex:
    """Module-level bindings of one file."""

    values: Dict[str, ast.expr] = field(default_factory=dict)
    imports: Dict[str, Tuple[str, Optional[str]]] = field(default_factory=dict)  # name -> (module, attr)
    types: Dict[str, TypeObject] = field(default_factory=dict)
    others: Dict[str, str] = field(default_factory=dict)  # name -> what it is


# =============================================================================
# Module naming
# =============================================================================

def module_name_for(path: Path) -> str:
    """Dotted module name, walking up through directories with __init__.py."""
    path = path.resolve()
    parts = [] if path.name == "__init__.py" else [path.stem]
    d = path.parent
    while (d / "__init__.py").exists():
        parts.insert(0, d.name)
        d = d.parent
    if not parts:
        parts = [path.parent.name]
    return ".".join(parts)


def package_name_for(directory: Path) -> str:
    return module_name_for(directory / "__init__.py")


def resolve_import_from(module: str, is_package: bool, node: ast.ImportFrom) -> str:
    if not node.level:
        return node.module or ""
    base = module.split(".")
    if not is_package:
        base = base[:-1]
    if node.level > 1:
        base = base[: len(base) - (node.level - 1)]
    if node.module:
        base = base + node.module.split(".")
    return ".".join(base)


# =============================================================================
# Index construction
# =============================================================================

def _underlying_of(expr: Optional[ast.expr]) -> Optional[PrimitiveKind]:
    # one level only: the wrapped type must itself be a builtin primitive
    if isinstance(expr, ast.Name):
        return BUILTIN_KINDS.get(expr.id)
    return None


def _is_newtype_call(expr: ast.expr) -> bool:
    if not isinstance(expr, ast.Call) or len(expr.args) != 2:
        return False
    fn = expr.func
    return (isinstance(fn, ast.Name) and fn.id == "NewType") or (
        isinstance(fn, ast.Attribute) and fn.attr == "NewType"
    )


def _is_type_alias_annotation(ann: ast.expr) -> bool:
    return (isinstance(ann, ast.Name) and ann.id == "TypeAlias") or (
        isinstance(ann, ast.Attribute) and ann.attr == "TypeAlias"
    )


def _looks_like_type(expr: ast.expr) -> bool:
    return isinstance(expr, ast.Name) and expr.id in BUILTIN_KINDS


def build_definition_index(source: SourceFile) -> DefinitionIndex:
    idx = DefinitionIndex()
    counts: Dict[str, int] = {}
    is_package = source.path.name == "__init__.py"

    def bind_value(name: str, value: ast.expr) -> None:
        counts[name] = counts.get(name, 0) + 1
        idx.values[name] = value

    for stmt in source.tree.body:
        if isinstance(stmt, ast.ClassDef):
            bases = [_underlying_of(b) for b in stmt.bases]
            kind = next((k for k in bases if k is not None), None)
            idx.types[stmt.name] = TypeObject(stmt.name, True, kind)
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            idx.others[stmt.name] = "function"
        elif isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if alias.asname:
                    idx.imports[alias.asname] = (alias.name, None)
                else:
                    top = alias.name.split(".")[0]
                    idx.imports[top] = (top, None)
        elif isinstance(stmt, ast.ImportFrom):
            target = resolve_import_from(source.module, is_package, stmt)
            for alias in stmt.names:
                if alias.name == "*":
                    continue
                idx.imports[alias.asname or alias.name] = (target, alias.name)
        elif isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                if not isinstance(target, ast.Name):
                    continue
                if _is_newtype_call(stmt.value):
                    idx.types[target.id] = TypeObject(target.id, True, _underlying_of(stmt.value.args[1]))
                elif _looks_like_type(stmt.value):
                    idx.types[target.id] = TypeObject(target.id, True, _underlying_of(stmt.value))
                else:
                    bind_value(target.id, stmt.value)
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            name = stmt.target.id
            if stmt.value is None:
                continue
            if _is_type_alias_annotation(stmt.annotation):
                idx.types[name] = TypeObject(name, True, _underlying_of(stmt.value))
            elif _is_newtype_call(stmt.value):
                idx.types[name] = TypeObject(name, True, _underlying_of(stmt.value.args[1]))
            else:
                bind_value(name, stmt.value)

    for name, n in counts.items():
        if n > 1:
            # reassigned names are not constants
            del idx.values[name]
            idx.others[name] = "variable"
        else:
            idx.others.setdefault(name, "constant")
    return idx


# =============================================================================
# Context
# =============================================================================

class AnalysisContext:
    """
    Parsed files of one package plus lazily built per-file indices.

    Indices are built at most once per file (guarded by a lock) and never
    mutated afterwards, so concurrent workers may share them.
    """

    def __init__(self, directory: Path, package: str, files: Iterable[SourceFile]) -> None:
        self.directory = directory
        self.package = package
        self.files: Dict[str, SourceFile] = {}
        for f in files:
            self.files[f.module] = f
        self._indices: Dict[str, DefinitionIndex] = {}
        self._lock = threading.Lock()
        self.resolver = PackageTypeResolver(self)

    def source(self, module: str) -> Optional[SourceFile]:
        return self.files.get(module)

    def index(self, module: str) -> Optional[DefinitionIndex]:
        idx = self._indices.get(module)
        if idx is not None:
            return idx
        src = self.files.get(module)
        if src is None:
            return None
        with self._lock:
            idx = self._indices.get(module)
            if idx is None:
                logger.debug("indexing definitions path=%s", src.path)
                idx = build_definition_index(src)
                self._indices[module] = idx
        return idx


def parse_source_file(path: Path) -> SourceFile:
    text = path.read_text(encoding="utf-8")
    tree = ast.parse(text, filename=str(path))
    return SourceFile(path=path, module=module_name_for(path), text=text, tree=tree)


def load_package(directory: Path, paths: Iterable[Path]) -> Tuple[AnalysisContext, List[Diagnostic]]:
    """
    Parse every file of one package.

    Files that fail to parse are reported and left out of the context; the
    rest of the package is still analyzed.
    """
    files: List[SourceFile] = []
    diagnostics: List[Diagnostic] = []
    for p in sorted(paths):
        try:
            files.append(parse_source_file(p))
        except SyntaxError as e:
            diagnostics.append(Diagnostic(p, e.lineno or 0, e.offset or 0, f"syntax error: {e.msg}"))
        except (OSError, UnicodeDecodeError) as e:
            diagnostics.append(Diagnostic(p, 0, 0, f"failed to read file: {e}"))
    return AnalysisContext(directory, package_name_for(directory), files), diagnostics
