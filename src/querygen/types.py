from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class PrimitiveKind(str, Enum):
    INT = "int"
    STRING = "string"
    BOOL = "bool"
    FLOAT = "float"
    BYTES = "bytes"
    COMPLEX = "complex"


BUILTIN_KINDS: Dict[str, Optional[PrimitiveKind]] = {
    "int": PrimitiveKind.INT,
    "str": PrimitiveKind.STRING,
    "bool": PrimitiveKind.BOOL,
    "float": PrimitiveKind.FLOAT,
    "bytes": PrimitiveKind.BYTES,
    "complex": PrimitiveKind.COMPLEX,
    "object": None,
}

WILDCARD_TYPE = "_"


@dataclass(frozen=True)
class TypeObject:
    name: str
    is_type: bool = True
    underlying: Optional[PrimitiveKind] = None  # one level only; None = not a basic type


@dataclass(frozen=True)
class QueryConstant:
    name: str
    path: Path
    module: str
    line: int
    col: int
    value: ast.expr


@dataclass(frozen=True)
class InterpolationDirective:
    name: str
    type_name: str  # "_" | "int" | "*int" | "models.UserId"
    explicit_format: Optional[str] = None  # includes the leading '%'
    index: int = 0

    @property
    def is_wildcard(self) -> bool:
        return self.type_name == WILDCARD_TYPE


@dataclass(frozen=True)
class Substitution:
    index: int
    format_spec: str


@dataclass
class FieldDescriptor:
    name: str
    type_name: str
    substitutions: List[Substitution] = field(default_factory=list)


@dataclass
class ParamDescriptorSet:
    type_name: str
    fields: List[FieldDescriptor]

    def occurrence_count(self) -> int:
        return sum(len(f.substitutions) for f in self.fields)


@dataclass(frozen=True)
class Diagnostic:
    path: Path
    line: int
    col: int
    message: str
    severity: str = "error"  # "error" | "hint"

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.col}: {self.message}"


@dataclass
class FileResult:
    path: Path
    module: str
    ok: bool = True  # False: analysis did not complete, leave its companion alone
    wanted: List[ParamDescriptorSet] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class CompanionArtifact:
    """
    One generated file and the state it must converge to.

    exists/preamble_lines describe the file on disk at load time; wanted is
    filled in during aggregation and may stay empty (delete).
    """
    path: Path
    package: str
    exists: bool = False
    tree: Optional[ast.Module] = None
    wanted: List[ParamDescriptorSet] = field(default_factory=list)
    source_path: Optional[Path] = None
