"""
Constant folding of query strings.

Only a small expression subset is folded: string literals, ``+``
concatenation, and references to other module-level constants of the same
package (by bare name, through ``from .x import NAME``, or as
``module.NAME`` on an imported sibling module). Everything else is simply not
a compile-time-known template.
"""

from __future__ import annotations

import ast
import logging
from typing import Optional, Set, Tuple

from .context import AnalysisContext

logger = logging.getLogger(__name__)

FoldKey = Tuple[str, str]  # (module, name)


class ConstantFolder:
    def __init__(self, context: AnalysisContext) -> None:
        self._context = context

    def fold(self, module: str, expr: ast.expr, in_progress: Set[FoldKey]) -> Optional[str]:
        """
        Return the string value of expr as seen from module, or None.

        in_progress holds the constants currently being folded on this chain;
        callers seed it with the query's own key.
        """
        if isinstance(expr, ast.Constant):
            return expr.value if isinstance(expr.value, str) else None
        if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.Add):
            lhs = self.fold(module, expr.left, in_progress)
            if lhs is None:
                return None
            rhs = self.fold(module, expr.right, in_progress)
            if rhs is None:
                return None
            return lhs + rhs
        if isinstance(expr, ast.Name):
            return self._fold_name(module, expr.id, in_progress)
        if isinstance(expr, ast.Attribute) and isinstance(expr.value, ast.Name):
            target = self._imported_module(module, expr.value.id)
            if target is None:
                return None
            return self._fold_name(target, expr.attr, in_progress)
        return None

    def _fold_name(self, module: str, name: str, in_progress: Set[FoldKey]) -> Optional[str]:
        idx = self._context.index(module)
        if idx is None:
            return None
        key = (module, name)
        if key in in_progress:
            logger.warning("cyclic dependency in constant expression module=%s ident=%s", module, name)
            return None
        if name in idx.values:
            in_progress.add(key)
            try:
                return self.fold(module, idx.values[name], in_progress)
            finally:
                in_progress.discard(key)
        if name in idx.imports:
            target, attr = idx.imports[name]
            if attr is None or target not in self._context.files:
                return None
            in_progress.add(key)
            try:
                return self._fold_name(target, attr, in_progress)
            finally:
                in_progress.discard(key)
        return None

    def _imported_module(self, module: str, name: str) -> Optional[str]:
        idx = self._context.index(module)
        if idx is None or name not in idx.imports:
            return None
        target, attr = idx.imports[name]
        dotted = target if attr is None else f"{target}.{attr}"
        return dotted if dotted in self._context.files else None
