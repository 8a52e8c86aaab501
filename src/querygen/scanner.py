"""
Per-file analysis: find query constants, fold them, parse their directives
and build the parameter descriptor sets.

Files are analyzed independently on a thread pool; results are collected
before any file is touched.
"""

from __future__ import annotations

import ast
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from .config import DEFAULT_QUERY_NAME_PATTERN, QuerygenConfig
from .context import AnalysisContext, SourceFile
from .descriptors import build_descriptor_set
from .errors import MalformedDirective, UnformattableType
from .folding import ConstantFolder
from .sync import is_companion_path
from .template import parse_directives
from .types import Diagnostic, FileResult, QueryConstant

logger = logging.getLogger(__name__)


def is_query_name(name: str, pattern: Optional[str] = None) -> bool:
    return re.fullmatch(pattern or DEFAULT_QUERY_NAME_PATTERN, name) is not None


def discover_query_constants(source: SourceFile, pattern: Optional[str] = None) -> Iterator[QueryConstant]:
    """Yield module-level assignments whose name looks like a query."""
    for stmt in source.tree.body:
        if isinstance(stmt, ast.Assign):
            targets = [t for t in stmt.targets if isinstance(t, ast.Name)]
            value = stmt.value
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name) and stmt.value is not None:
            targets = [stmt.target]
            value = stmt.value
        else:
            continue
        for t in targets:
            if is_query_name(t.id, pattern):
                yield QueryConstant(
                    name=t.id,
                    path=source.path,
                    module=source.module,
                    line=t.lineno,
                    col=t.col_offset + 1,
                    value=value,
                )


def analyze_file(context: AnalysisContext, source: SourceFile, config: QuerygenConfig) -> FileResult:
    result = FileResult(path=source.path, module=source.module)
    folder = ConstantFolder(context)
    type_owners: Dict[str, str] = {}  # generated class name -> query that claimed it

    for q in discover_query_constants(source, config.query_name_pattern):
        log_ctx = f"path={q.path} const={q.name}"
        logger.debug("trying to fold query string %s", log_ctx)
        # reentrant per query: each chain starts from the query itself
        folded = folder.fold(q.module, q.value, {(q.module, q.name)})
        if folded is None:
            logger.debug("failed to fold query string %s", log_ctx)
            continue
        logger.debug("constant-folded query string %s folded=%r", log_ctx, folded)

        try:
            params = build_descriptor_set(
                context.resolver, q.module, q.name, parse_directives(folded), config.type_suffix
            )
        except MalformedDirective as e:
            logger.error("failed to create params from query string %s err=%s", log_ctx, e)
            result.diagnostics.append(Diagnostic(q.path, q.line, q.col, f"ill-formed interpolation: {e}"))
            if isinstance(e, UnformattableType):
                result.diagnostics.append(Diagnostic(q.path, q.line, q.col, e.detail()))
                result.diagnostics.append(Diagnostic(q.path, q.line, q.col, f"HINT: {e.remediation}", "hint"))
            continue

        if params is None:
            continue
        owner = type_owners.get(params.type_name)
        if owner is not None:
            logger.error("duplicate parameter type %s type=%s first=%s", log_ctx, params.type_name, owner)
            result.diagnostics.append(
                Diagnostic(
                    q.path,
                    q.line,
                    q.col,
                    f"parameter type {params.type_name} of {q.name} is already generated for {owner}; rename one of the queries",
                )
            )
            continue
        type_owners[params.type_name] = q.name
        result.wanted.append(params)
    return result


def analyze_package(
    context: AnalysisContext,
    config: QuerygenConfig,
    only: Optional[Iterable[Path]] = None,
) -> List[FileResult]:
    """
    Analyze the non-generated files of the package in parallel.

    If only is given, just those files are analyzed; the rest of the package
    still serves as context for folding and type lookup. A worker failing
    unexpectedly is turned into a diagnostic for its file; sibling files are
    unaffected.
    """
    sources = [s for s in context.files.values() if not is_companion_path(s.path)]
    if only is not None:
        wanted = set(only)
        sources = [s for s in sources if s.path in wanted]
    results: List[FileResult] = []
    with ThreadPoolExecutor(max_workers=config.workers) as pool:
        futures = [(s, pool.submit(analyze_file, context, s, config)) for s in sources]
        for s, fut in futures:
            try:
                results.append(fut.result())
            except Exception as e:
                logger.exception("analysis failed path=%s", s.path)
                results.append(
                    FileResult(
                        path=s.path,
                        module=s.module,
                        ok=False,
                        diagnostics=[Diagnostic(s.path, 0, 0, f"internal error during analysis: {e!r}")],
                    )
                )
    return results
