"""
Descriptor builder: turns the directives of one query into a parameter type.

The same field may be interpolated several times; the first occurrence fixes
its type and later ones either repeat it or use the ``_`` wildcard. Fields are
kept in first-occurrence order, which becomes the declaration order of the
generated dataclass.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from .errors import (
    FirstOccurrenceRequiresType,
    NotAType,
    TypeConflict,
    UnformattableType,
    UnresolvedType,
)
from .resolver import TypeResolver
from .types import (
    FieldDescriptor,
    InterpolationDirective,
    ParamDescriptorSet,
    PrimitiveKind,
    Substitution,
)


# every other kind needs an explicit format in the directive
_FORMAT_FOR_KIND: Dict[PrimitiveKind, str] = {
    PrimitiveKind.INT: "%d",
    PrimitiveKind.STRING: "%s",
}

_UPPER_SNAKE_RE = re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*_?$")


def param_type_name(query_name: str, suffix: str) -> str:
    """USER_QUERY -> UserQueryParams; camelCase names only get the suffix."""
    if _UPPER_SNAKE_RE.match(query_name):
        base = "".join(part.capitalize() for part in query_name.split("_") if part)
    else:
        base = query_name
    return base + suffix


def determine_format_specifier(resolver: TypeResolver, module: str, field_name: str, type_name: str) -> str:
    pointer = type_name.startswith("*")
    base = type_name[1:] if pointer else type_name
    obj = resolver.lookup(module, base)
    if obj is None:
        raise UnresolvedType(field_name, base)
    if not obj.is_type:
        raise NotAType(field_name, base)
    if pointer:
        # nullable values have no automatic format
        raise UnformattableType(field_name, type_name)
    spec = _FORMAT_FOR_KIND.get(obj.underlying) if obj.underlying is not None else None
    if spec is None:
        raise UnformattableType(field_name, type_name)
    return spec


class DescriptorBuilder:
    """
    Accumulates the fields of one query.

    Fields live in an insertion-ordered list; _positions maps a field name to
    its slot so repeated occurrences append to the existing descriptor.
    """

    def __init__(self, resolver: TypeResolver, module: str, query_name: str, suffix: str = "Params") -> None:
        self._resolver = resolver
        self._module = module
        self._query_name = query_name
        self._suffix = suffix
        self._fields: List[FieldDescriptor] = []
        self._positions: Dict[str, int] = {}

    def add(self, directive: InterpolationDirective) -> None:
        pos = self._positions.get(directive.name)
        if pos is None:
            self._add_new_field(directive)
        else:
            self._merge(self._fields[pos], directive)

    def _format_for(self, directive: InterpolationDirective, type_name: str) -> str:
        if directive.explicit_format:
            return directive.explicit_format
        return determine_format_specifier(self._resolver, self._module, directive.name, type_name)

    def _add_new_field(self, directive: InterpolationDirective) -> None:
        if directive.is_wildcard:
            raise FirstOccurrenceRequiresType(directive.name)
        spec = self._format_for(directive, directive.type_name)
        self._positions[directive.name] = len(self._fields)
        self._fields.append(
            FieldDescriptor(
                name=directive.name,
                type_name=directive.type_name,
                substitutions=[Substitution(directive.index, spec)],
            )
        )

    def _merge(self, field: FieldDescriptor, directive: InterpolationDirective) -> None:
        if not directive.is_wildcard and directive.type_name != field.type_name:
            raise TypeConflict(field.name, field.type_name, directive.type_name)
        spec = self._format_for(directive, field.type_name)
        field.substitutions.append(Substitution(directive.index, spec))

    def build(self) -> Optional[ParamDescriptorSet]:
        if not self._fields:
            return None
        return ParamDescriptorSet(
            type_name=param_type_name(self._query_name, self._suffix),
            fields=list(self._fields),
        )


def build_descriptor_set(
    resolver: TypeResolver,
    module: str,
    query_name: str,
    directives: Iterable[InterpolationDirective],
    suffix: str = "Params",
) -> Optional[ParamDescriptorSet]:
    """
    Build the parameter type for one query.

    Returns None when the query uses no interpolation. Raises a
    MalformedDirective subclass on the first structural problem; nothing is
    returned for the query in that case.
    """
    builder = DescriptorBuilder(resolver, module, query_name, suffix)
    for d in directives:
        builder.add(d)
    return builder.build()
