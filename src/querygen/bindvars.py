"""
Bind-variable styles: how the n-th argument of a query is written for a
given database driver.

A style is a function from the 1-based argument position to its
placeholder text. Drivers that number their parameters get the position;
drivers using positional markers ignore it.
"""

from __future__ import annotations

from typing import Callable, Dict

Placeholder = Callable[[int], str]

_STYLES: Dict[str, Placeholder] = {
    "postgres": lambda n: f"${n}",
    "simple": lambda n: "?",  # sqlite3, MySQL drivers
    "sqlserver": lambda n: f"@p{n}",
    "oracle": lambda n: f":{n}",
}


def register(name: str, placeholder: Placeholder) -> None:
    """Add or replace a style; names are case-insensitive identifiers."""
    key = (name or "").lower()
    if not key.isidentifier():
        raise ValueError(f"bind var style name must be an identifier, got {name!r}")
    _STYLES[key] = placeholder


def get(name: str) -> Placeholder:
    try:
        return _STYLES[(name or "").lower()]
    except KeyError:
        known = ", ".join(sorted(_STYLES))
        raise KeyError(f"Unknown bind var style '{name}'. Available: {known}") from None


def available() -> Dict[str, Placeholder]:
    return dict(_STYLES)
