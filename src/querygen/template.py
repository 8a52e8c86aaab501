"""
Interpolation syntax embedded in query strings.

Conceptually, the following forms are allowed:

    {{ fieldName : typeName }}
    {{ fieldName : _ }}                 reuse the type of an earlier occurrence
    {{ fieldName : typeName : %fmt }}   explicit format specifier, e.g. %v

typeName may carry one package qualifier (``models.UserId``) and a leading
pointer marker (``*int``). The format specifier must not use positional
arguments and ends at the first whitespace or '}'.
"""

from __future__ import annotations

import re
from typing import List

from .types import InterpolationDirective


_IDENT = r"[a-zA-Z_][a-zA-Z0-9_]*"
_TYPE = rf"\*?(?:{_IDENT}\.)?{_IDENT}"

SUBSTITUTION_RE = re.compile(
    rf"{{{{\s*(?P<name>{_IDENT})\s*:\s*(?P<type>{_TYPE})\s*(?::\s*(?P<format>%[^\s}}]+)\s*)?}}}}"
)


def parse_directives(literal: str) -> List[InterpolationDirective]:
    """Return the directives of a folded query string, in order of appearance."""
    return [
        InterpolationDirective(
            name=m.group("name"),
            type_name=m.group("type"),
            explicit_format=m.group("format"),
            index=i,
        )
        for i, m in enumerate(SUBSTITUTION_RE.finditer(literal))
    ]
