from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class ExitCode(int, Enum):
    OK = 0
    DIAGNOSTICS = 1
    CONFIG_INVALID = 10
    RUNTIME_ERROR = 30
    INTERNAL_ERROR = 50


@dataclass(frozen=True)
class QuerygenProblem:
    code: str                 # stable machine code, e.g. "QUERYGEN_PATH_NOT_FOUND"
    category: str             # "config" | "runtime" | "internal"
    message: str              # short human message
    details: Dict[str, Any]   # structured details for debugging
    remediation: Optional[str] = None  # actionable next step


class QuerygenException(Exception):
    """Unrecoverable setup problem; aborts the whole run."""

    def __init__(
        self,
        problem: QuerygenProblem,
        exit_code: ExitCode,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(problem.message)
        self.problem = problem
        self.exit_code = exit_code
        self.cause = cause


def problem_to_dict(p: QuerygenProblem) -> Dict[str, Any]:
    d = asdict(p)
    if d.get("remediation") is None:
        d.pop("remediation", None)
    return d


# =============================================================================
# Directive errors (abort one query's descriptor, never the run)
# =============================================================================

FORMAT_HINT = "you can specify a custom format specifier using {{fieldName : type : %d}} syntax"


class MalformedDirective(Exception):
    code = "QUERYGEN_MALFORMED_DIRECTIVE"
    remediation: Optional[str] = None

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class FirstOccurrenceRequiresType(MalformedDirective):
    code = "QUERYGEN_FIRST_OCCURRENCE_REQUIRES_TYPE"

    def __init__(self, field: str) -> None:
        super().__init__(field, f"first interpolation of {field} must specify type")


class TypeConflict(MalformedDirective):
    code = "QUERYGEN_TYPE_CONFLICT"

    def __init__(self, field: str, first_type: str, other_type: str) -> None:
        super().__init__(
            field, f"field {field} used with distinct types: {first_type} and {other_type}"
        )
        self.first_type = first_type
        self.other_type = other_type


class UnresolvedType(MalformedDirective):
    code = "QUERYGEN_UNRESOLVED_TYPE"

    def __init__(self, field: str, type_name: str) -> None:
        super().__init__(
            field, f"failed name lookup for type {type_name} of interpolation variable {field}"
        )
        self.type_name = type_name


class NotAType(MalformedDirective):
    code = "QUERYGEN_NOT_A_TYPE"

    def __init__(self, field: str, type_name: str) -> None:
        super().__init__(
            field, f"expected named type after first ':' but found non-type {type_name}"
        )
        self.type_name = type_name


class UnformattableType(MalformedDirective):
    code = "QUERYGEN_UNFORMATTABLE_TYPE"
    remediation = FORMAT_HINT

    def __init__(self, field: str, type_name: str) -> None:
        super().__init__(field, f"cannot automatically format type: {type_name}")
        self.type_name = type_name

    def detail(self) -> str:
        return (
            f"cannot handle type {self.type_name} of interpolation variable {self.field};"
            " it should be a basic type (int, str) or have a basic type as its underlying type"
        )
