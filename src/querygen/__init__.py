"""Typed parameter classes for interpolated query constants."""

from .descriptors import DescriptorBuilder, build_descriptor_set
from .emitter import emit_structs, render_companion
from .folding import ConstantFolder
from .scanner import analyze_file, analyze_package
from .sync import SyncEngine, companion_path, sync_package
from .template import SUBSTITUTION_RE, parse_directives

__all__ = [
    "DescriptorBuilder",
    "build_descriptor_set",
    "emit_structs",
    "render_companion",
    "ConstantFolder",
    "analyze_file",
    "analyze_package",
    "SyncEngine",
    "companion_path",
    "sync_package",
    "SUBSTITUTION_RE",
    "parse_directives",
]
