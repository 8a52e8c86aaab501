"""
Runtime side of querygen.

Generated parameter classes satisfy QueryParams; do() substitutes their
format specifiers into the query text and pairs them with the argument
values, producing a Query that renders with any registered bind-var style.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, List, Protocol, Tuple, Type, TypeVar, runtime_checkable

from . import bindvars
from .template import SUBSTITUTION_RE


@runtime_checkable
class QueryParams(Protocol):
    def format_specifiers(self) -> List[str]:
        """One element per interpolation."""
        ...

    def format_args(self) -> List[Any]:
        """One element per interpolation."""
        ...


_P = TypeVar("_P", bound=Type[QueryParams])


def query_params(cls: _P) -> _P:
    """Class decorator marking a generated type as a QueryParams implementation."""
    for attr in ("format_specifiers", "format_args"):
        if not callable(getattr(cls, attr, None)):
            raise TypeError(f"{cls.__name__} does not implement QueryParams: missing {attr}()")
    return cls


class QueryDoesntUseInterpolationError(Exception):
    def __init__(self) -> None:
        super().__init__("query doesn't use interpolation")


_VERB_RE = re.compile(r"%(?:%|[-+# 0]*\d*(?:\.\d+)?[a-zA-Z])")


@dataclass(frozen=True)
class Query:
    text: str  # printf-style, one verb per argument
    args: List[Any] = field(default_factory=list)

    def render(self, bindvar: str = "postgres") -> str:
        placeholder = bindvars.get(bindvar)
        count = 0

        def repl(m: "re.Match[str]") -> str:
            nonlocal count
            if m.group(0) == "%%":
                return "%"
            count += 1
            return placeholder(count)

        out = _VERB_RE.sub(repl, self.text)
        if count != len(self.args):
            raise ValueError(f"query has {count} format verbs but {len(self.args)} arguments")
        return out


def _substitute(query: str, params: QueryParams) -> Tuple[str, int]:
    specs = params.format_specifiers()
    index = 0

    def repl(_: "re.Match[str]") -> str:
        nonlocal index
        spec = specs[index]
        index += 1
        return spec

    return SUBSTITUTION_RE.sub(repl, query), index


def do(query: str, params: QueryParams) -> Query:
    """
    Create a Query from a template string and its generated parameters.

    Raises QueryDoesntUseInterpolationError when the string has no
    directives.
    """
    text, n = _substitute(query, params)
    if n == 0:
        raise QueryDoesntUseInterpolationError()
    return Query(text, list(params.format_args()))


def must_do(query: str, params: QueryParams) -> Query:
    """Like do(), but raises ValueError naming the offending query."""
    try:
        return do(query, params)
    except QueryDoesntUseInterpolationError as e:
        raise ValueError(f"{e}: {query:.25s}") from e
