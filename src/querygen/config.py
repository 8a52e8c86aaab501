"""
Configuration loading for the querygen CLI.

Loads an optional YAML file and returns a typed config object.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_FILE = "querygen.yaml"
DEFAULT_QUERY_NAME_PATTERN = r".*(Query|QUERY)(Fragment|_FRAGMENT)?[_0-9]*$"
LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class QuerygenConfig:
    """Settings shared by the analysis and sync phases."""

    log_level: str = "info"
    workers: int = 8
    type_suffix: str = "Params"
    runtime_module: str = "querygen.interpolate"
    query_name_pattern: str = DEFAULT_QUERY_NAME_PATTERN

    def __post_init__(self) -> None:
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if not self.type_suffix.isidentifier():
            raise ValueError(f"type_suffix must be a valid identifier, got {self.type_suffix!r}")
        if "." not in self.runtime_module:
            raise ValueError("runtime_module must be a dotted module path, e.g. 'querygen.interpolate'")

    @property
    def runtime_package(self) -> str:
        return self.runtime_module.rsplit(".", 1)[0]

    @property
    def runtime_name(self) -> str:
        return self.runtime_module.rsplit(".", 1)[1]

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> QuerygenConfig:
        defaults = cls()
        return cls(
            log_level=str(d.get("log_level", defaults.log_level)).lower(),
            workers=int(d.get("workers", defaults.workers)),
            type_suffix=str(d.get("type_suffix", defaults.type_suffix)),
            runtime_module=str(d.get("runtime_module", defaults.runtime_module)),
            query_name_pattern=str(d.get("query_name_pattern", defaults.query_name_pattern)),
        )

    def with_overrides(self, *, log_level: Optional[str] = None, workers: Optional[int] = None) -> QuerygenConfig:
        cfg = self
        if log_level is not None:
            cfg = replace(cfg, log_level=log_level)
        if workers is not None:
            cfg = replace(cfg, workers=workers)
        return cfg


def load_config(path: str | Path) -> QuerygenConfig:
    """
    Load configuration from a YAML file.

    The file must contain a mapping; unknown keys are ignored. An empty file
    yields the defaults.
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    obj = yaml.safe_load(text)
    if obj is None:
        return QuerygenConfig()
    if not isinstance(obj, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(obj).__name__}")
    return QuerygenConfig.from_dict(obj)
