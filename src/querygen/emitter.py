"""
Code emitter for companion modules.

Design goals:
- Pure: text is a function of the descriptor sets only, no I/O.
- Deterministic: the same input order always yields the same bytes, which is
  what the sync engine's hash comparison relies on.
- Occurrence-ordered accessors: format_specifiers()/format_args() follow the
  left-to-right order of directives in the query, not field declaration order.
"""

from __future__ import annotations

import json
from typing import List, Sequence, Tuple

from .types import ParamDescriptorSet


HEADER_MARKER = "# Code generated by querygen. DO NOT EDIT."
EDIT_RESTRICTION = "# You may only edit import statements."
MARKER_NAME = "query_params"
INDENT = "    "


def _py_str(s: str) -> str:
    # JSON string syntax is valid Python string syntax
    return json.dumps(s)


def annotation_for(type_name: str) -> str:
    """Map a directive type to a Python annotation; '*T' is nullable."""
    if type_name.startswith("*"):
        return f"Optional[{type_name[1:]}]"
    return type_name


def _by_occurrence(params: ParamDescriptorSet) -> List[Tuple[str, str]]:
    """(field name, format spec) for each occurrence index 0..N-1."""
    slots: List[Tuple[str, str]] = [("", "")] * params.occurrence_count()
    for f in params.fields:
        for sub in f.substitutions:
            slots[sub.index] = (f.name, sub.format_spec)
    return slots


def _emit_one(params: ParamDescriptorSet, runtime_prefix: str) -> str:
    slots = _by_occurrence(params)
    lines = [
        f"@{runtime_prefix}{MARKER_NAME}",
        "@dataclass",
        f"class {params.type_name}:",
    ]
    for f in params.fields:
        lines.append(f"{INDENT}{f.name}: {annotation_for(f.type_name)}")

    specs = ", ".join(_py_str(spec) for _, spec in slots)
    args = ", ".join(f"self.{name}" for name, _ in slots)
    lines += [
        "",
        f"{INDENT}def format_specifiers(self) -> List[str]:",
        f"{INDENT}{INDENT}return [{specs}]",
        "",
        f"{INDENT}def format_args(self) -> List[Any]:",
        f"{INDENT}{INDENT}return [{args}]",
    ]
    return "\n".join(lines) + "\n"


def emit_structs(wanted: Sequence[ParamDescriptorSet], runtime_prefix: str = "interpolate.") -> str:
    """
    Render the body of a companion module.

    The text starts with two blank lines so it sits directly below the
    preamble, and top-level classes are separated by two blank lines.
    """
    if not wanted:
        return ""
    return "\n\n" + "\n\n".join(_emit_one(p, runtime_prefix) for p in wanted)


def render_preamble(package: str, runtime_package: str, runtime_name: str, import_runtime: bool) -> str:
    lines = [
        HEADER_MARKER,
        EDIT_RESTRICTION,
        f'"""Query parameters generated for package ``{package}``."""',
        "",
        "from __future__ import annotations",
        "",
        "from dataclasses import dataclass",
        "from typing import Any, List, Optional",
    ]
    # inside the runtime package the module is imported relatively
    source = runtime_package if import_runtime else "."
    lines += ["", f"from {source} import {runtime_name}"]
    return "\n".join(lines) + "\n"


def render_companion(
    package: str,
    wanted: Sequence[ParamDescriptorSet],
    *,
    runtime_package: str = "querygen",
    runtime_name: str = "interpolate",
    import_runtime: bool = True,
) -> str:
    """Full text of a freshly created companion module."""
    return render_preamble(package, runtime_package, runtime_name, import_runtime) + emit_structs(
        wanted, f"{runtime_name}."
    )
