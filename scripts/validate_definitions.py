#!/usr/bin/env python3
"""
Lint workflow definition YAML files.

Each file is parsed (either payload shape) and validated.  Errors and
warnings are printed per file; the exit code is 1 if any file has errors.

Usage:
    python3 scripts/validate_definitions.py [paths ...] [--strict]

Examples:
    # Lint the seeded definitions
    python3 scripts/validate_definitions.py

    # Lint a directory, failing on shadowed transitions too
    python3 scripts/validate_definitions.py my_workflows/ --strict
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from uuid import UUID

import yaml

from workflow_config import seeded_definition_paths
from workflow_config.loader import load_definition_file
from workflow_config.validator import validate_definition
from workflow_engines.transitions import find_ambiguous_transitions
from workflow_kernel.exceptions import DefinitionValidationError

# Seed files carry no organization; any fixed id will do for linting.
LINT_ORGANIZATION_ID = UUID(int=0)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate workflow definition YAML files.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="YAML files or directories (default: the seeded definitions).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat shadowed transitions as errors.",
    )
    return parser.parse_args(argv)


def _expand(paths: list[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(path.glob("*.yaml")) + sorted(path.glob("*.yml")))
        else:
            files.append(path)
    return files


def lint_file(path: Path, strict: bool = False) -> tuple[list[str], list[str]]:
    """Return (errors, warnings) for one file."""
    try:
        definition = load_definition_file(
            path, organization_id=LINT_ORGANIZATION_ID, validate=False,
        )
    except DefinitionValidationError as exc:
        return exc.errors, []
    except (OSError, yaml.YAMLError) as exc:
        return [f"cannot read file: {exc}"], []

    result = validate_definition(definition)
    if not strict:
        return result.errors, result.warnings

    shadowed = {
        finding.message
        for step in definition.steps
        for finding in find_ambiguous_transitions(step)
    }
    errors = result.errors + [w for w in result.warnings if w in shadowed]
    warnings = [w for w in result.warnings if w not in shadowed]
    return errors, warnings


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    files = _expand(args.paths) if args.paths else seeded_definition_paths()
    if not files:
        print("No definition files found.", file=sys.stderr)
        return 1

    failed = 0
    for path in files:
        errors, warnings = lint_file(path, strict=args.strict)
        status = "FAILED" if errors else "OK"
        print(f"{path}: {status}")
        for err in errors:
            print(f"  ERROR: {err}")
        for warning in warnings:
            print(f"  WARNING: {warning}")
        if errors:
            failed += 1

    print(f"{len(files)} file(s) checked, {failed} with errors.")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
