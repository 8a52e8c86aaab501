from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, Set, Tuple

from .types import BUILTIN_KINDS, TypeObject

if TYPE_CHECKING:
    from .context import AnalysisContext


class TypeResolver(Protocol):
    def lookup(self, module: str, name: str) -> Optional[TypeObject]: ...


class PackageTypeResolver:
    """
    Resolve a type name as seen from one module of the package.

    Lookup order: the module's own declarations, names it imports from other
    files of the package, then builtins. Names imported from outside the
    package are types of unknown shape.
    """

    def __init__(self, context: "AnalysisContext") -> None:
        self._context = context

    def lookup(self, module: str, name: str) -> Optional[TypeObject]:
        return self._lookup(module, name, set())

    def _lookup(self, module: str, name: str, seen: Set[Tuple[str, str]]) -> Optional[TypeObject]:
        key = (module, name)
        if key in seen:
            return None
        seen.add(key)

        idx = self._context.index(module)
        if idx is not None:
            if name in idx.types:
                return idx.types[name]
            if name in idx.values or name in idx.others:
                return TypeObject(name, is_type=False)
            if name in idx.imports:
                target, attr = idx.imports[name]
                if attr is None:
                    return TypeObject(name, is_type=False)  # a module
                if f"{target}.{attr}" in self._context.files:
                    return TypeObject(name, is_type=False)
                if target in self._context.files:
                    return self._lookup(target, attr, seen)
                return TypeObject(name, is_type=True, underlying=None)

        if name in BUILTIN_KINDS:
            return TypeObject(name, is_type=True, underlying=BUILTIN_KINDS[name])
        return None
