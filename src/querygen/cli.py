# src/querygen/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml

from .config import DEFAULT_CONFIG_FILE, LOG_LEVELS, QuerygenConfig, load_config
from .context import load_package
from .errors import ExitCode, QuerygenException, QuerygenProblem, problem_to_dict
from .scanner import analyze_package
from .sync import SyncSummary, companion_path, is_companion_path, load_companion, sync_package
from .types import Diagnostic, FileResult

logger = logging.getLogger("querygen")

_SKIP_DIRS = {"__pycache__", "build", "dist", "node_modules"}


# =============================================================================
# Helpers: config, logging, output
# =============================================================================

def _configure_logging(level: str) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
        format="%(asctime)s %(levelname)-8.8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        force=True,
    )


def _print_payload(payload: Dict[str, Any], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True, default=str))


def _raise_config_error(code: str, message: str, *, details: Dict[str, Any], remediation: str) -> None:
    raise QuerygenException(
        QuerygenProblem(
            code=code,
            category="config",
            message=message,
            details=details,
            remediation=remediation,
        ),
        ExitCode.CONFIG_INVALID,
    )


def _load_config(path: Optional[str]) -> QuerygenConfig:
    if path is None:
        default = Path(DEFAULT_CONFIG_FILE)
        if not default.is_file():
            return QuerygenConfig()
        path = str(default)
    if not Path(path).is_file():
        _raise_config_error(
            "QUERYGEN_CONFIG_NOT_FOUND",
            f"Config not found: {path}",
            details={"path": path},
            remediation="Verify the path is correct and the file exists.",
        )
    try:
        return load_config(path)
    except (ValueError, yaml.YAMLError) as e:
        raise QuerygenException(
            QuerygenProblem(
                code="QUERYGEN_CONFIG_INVALID",
                category="config",
                message=f"Invalid config: {path}",
                details={"path": path, "error": str(e)},
                remediation="Fix the YAML file; see querygen --help for the supported keys.",
            ),
            ExitCode.CONFIG_INVALID,
            cause=e,
        )


def _collect_packages(paths: List[str]) -> Dict[Path, Optional[Set[Path]]]:
    """
    Map each package directory named by paths to the sources to generate for.

    A directory argument selects every source of every package below it
    (None); a file argument selects just that file, with the rest of its
    directory loaded as context.
    """
    packages: Dict[Path, Optional[Set[Path]]] = {}

    def select(directory: Path, source: Optional[Path]) -> None:
        if directory in packages and packages[directory] is None:
            return
        if source is None:
            packages[directory] = None
        else:
            packages.setdefault(directory, set()).add(source)

    for raw in paths:
        p = Path(raw).resolve()
        if p.is_file():
            if p.suffix == ".py" and not is_companion_path(p):
                select(p.parent, p)
            continue
        if not p.is_dir():
            _raise_config_error(
                "QUERYGEN_PATH_NOT_FOUND",
                f"Path not found: {raw}",
                details={"path": raw},
                remediation="Pass existing Python files or directories.",
            )
        for f in sorted(p.rglob("*.py")):
            rel_parts = f.relative_to(p).parts[:-1]
            if any(part.startswith(".") or part in _SKIP_DIRS for part in rel_parts):
                continue
            select(f.parent, None)
    if not packages:
        _raise_config_error(
            "QUERYGEN_NO_SOURCES",
            "No Python files found",
            details={"paths": paths},
            remediation="Pass at least one directory or .py file containing query constants.",
        )
    return packages


def _run_package(
    directory: Path, selected: Optional[Set[Path]], config: QuerygenConfig
) -> Tuple[List[Diagnostic], SyncSummary]:
    files = sorted(directory.glob("*.py"))
    sources = [f for f in files if not is_companion_path(f)]
    if selected is None:
        targets = sources
        companions = [f for f in files if is_companion_path(f)]
    else:
        targets = [f for f in sources if f in selected]
        companions = sorted({companion_path(f) for f in targets if companion_path(f).is_file()})

    context, load_diagnostics = load_package(directory, sources)
    logger.debug("loaded package dir=%s package=%s files=%d", directory, context.package, len(context.files))
    target_set = set(targets)
    diagnostics = [d for d in load_diagnostics if d.path in target_set]

    results = analyze_package(context, config, only=targets)
    # files that failed to parse keep their companion untouched
    parsed = {s.path for s in context.files.values()}
    results += [FileResult(path=f, module="", ok=False) for f in targets if f not in parsed]
    for r in results:
        diagnostics.extend(r.diagnostics)

    existing = [load_companion(c, context.package) for c in companions]
    summary = sync_package(existing, results, context.package, config.runtime_module)
    return diagnostics, summary


# =============================================================================
# Command
# =============================================================================

def cmd_generate(args: argparse.Namespace) -> int:
    try:
        config = _load_config(args.config).with_overrides(log_level=args.log_level, workers=args.workers)
    except ValueError as e:
        _raise_config_error(
            "QUERYGEN_OPTION_INVALID",
            str(e),
            details={"workers": args.workers, "log_level": args.log_level},
            remediation="Pass --workers >= 1.",
        )
    _configure_logging(config.log_level)

    diagnostics: List[Diagnostic] = []
    total = SyncSummary()
    for directory, selected in sorted(_collect_packages(args.paths).items(), key=lambda kv: kv[0]):
        diags, summary = _run_package(directory, selected, config)
        diagnostics += diags
        for k, v in asdict(summary).items():
            setattr(total, k, getattr(total, k) + v)

    ok = not diagnostics and not total.failed
    if args.format == "json":
        _print_payload(
            {
                "ok": ok,
                "diagnostics": [str(d) for d in diagnostics],
                "summary": asdict(total),
            },
            args.format,
        )
    else:
        for d in diagnostics:
            print(str(d), file=sys.stderr)
        if total.writes or total.failed:
            print(
                f"querygen: created={total.created} updated={total.updated} "
                f"deleted={total.deleted} failed={total.failed}"
            )
    return int(ExitCode.OK) if ok else int(ExitCode.DIAGNOSTICS)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="querygen",
        description="Generate typed parameter classes for interpolated query constants.",
    )
    p.add_argument("paths", nargs="+", help="Python files or directories to scan")
    p.add_argument("--config", default=None, help=f"YAML config file (default: ./{DEFAULT_CONFIG_FILE} if present)")
    p.add_argument("--log-level", choices=LOG_LEVELS, default=None, help="Log level")
    p.add_argument("--workers", type=int, default=None, help="Parallel analysis workers per package")
    p.add_argument("--format", choices=("text", "json"), default="text", help="Output format")
    p.set_defaults(func=cmd_generate)
    return p


def main(argv: list[str] | None = None) -> int:
    """
    Entry point used by the console script: `from querygen.cli import main`.
    """
    return _main(argv)


def _main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return int(args.func(args))
    except QuerygenException as e:
        payload = {"ok": False, "error": problem_to_dict(e.problem), "exit_code": int(e.exit_code)}
        fmt = getattr(args, "format", "text")
        if fmt == "json":
            _print_payload(payload, fmt)
        else:
            err = payload["error"]
            print(f"ERROR[{err.get('code', 'QUERYGEN_ERROR')}]: {err.get('message')}", file=sys.stderr)
            if err.get("remediation"):
                print(f"REMEDIATION: {err['remediation']}", file=sys.stderr)
            print(f"DETAILS: {err.get('details', {})}", file=sys.stderr)
        return int(e.exit_code)
    except Exception as e:
        print(f"ERROR[QUERYGEN_INTERNAL_ERROR]: {e!r}", file=sys.stderr)
        return int(ExitCode.INTERNAL_ERROR)


if __name__ == "__main__":
    raise SystemExit(main())
