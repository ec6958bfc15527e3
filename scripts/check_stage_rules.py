#!/usr/bin/env python3
"""CI enforcement: warn on stage classification done outside ``stages.py``.

Detects comparisons such as ``location == "pdi_bay"`` or ``"garage" in loc``
anywhere in ``dealer_mcp`` except the stage rule table. Those should call
``classify_stage()`` so every module agrees on a vehicle's stage.

Exit 0 (warning only) by default; pass ``--strict`` to fail the build.
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent.parent / "dealer_mcp"
RULE_TABLE = PACKAGE_DIR / "workflow" / "stages.py"

# Location ids and substrings the stage rules key on
STAGE_MARKERS = {
    "new_arrivals",
    "pdi_bay",
    "delivery_lot",
    "garage",
    "showroom",
    "inventory",
    "pdi",
    "repair",
    "sold",
}


def _marker(node: ast.AST) -> str | None:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        if node.value in STAGE_MARKERS:
            return node.value
    return None


def check_file(path: Path) -> list[str]:
    violations: list[str] = []
    try:
        tree = ast.parse(path.read_text())
    except (SyntaxError, FileNotFoundError) as exc:
        print(f"ERROR: cannot parse {path}: {exc}", file=sys.stderr)
        return violations

    rel = path.relative_to(PACKAGE_DIR.parent)
    for node in ast.walk(tree):
        if not isinstance(node, ast.Compare):
            continue
        for side in (node.left, *node.comparators):
            marker = _marker(side)
            if marker is not None:
                violations.append(
                    f"{rel}:{node.lineno}: stage comparison against '{marker}'"
                )
                break
    return violations


def check() -> list[str]:
    violations: list[str] = []
    for path in sorted(PACKAGE_DIR.rglob("*.py")):
        if path == RULE_TABLE:
            continue
        violations.extend(check_file(path))
    return violations


def main(argv: list[str] | None = None) -> None:
    strict = "--strict" in (argv if argv is not None else sys.argv[1:])
    violations = check()
    if violations:
        print("WARNING: stage comparisons found outside workflow/stages.py:")
        for v in violations:
            print(f"  {v}")
        print("\nThese should use classify_stage() from dealer_mcp.workflow.stages.")
        sys.exit(1 if strict else 0)
    else:
        print("OK: stage classification only happens in workflow/stages.py")


if __name__ == "__main__":
    main()
