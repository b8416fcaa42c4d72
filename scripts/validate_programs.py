"""
Publish gate validator for program requirement data.

Checks that a program's requirement tree is structurally sound before plans
are assigned against it. Importable for tests and runnable as a CLI.

Usage:
    python scripts/validate_programs.py --program 1
    python scripts/validate_programs.py --all
    python scripts/validate_programs.py --all --path path/to/data
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

import config  # noqa: E402
from requirements import iter_requirements  # noqa: E402
from validators import find_unknown_course_references, validate_program_requirements  # noqa: E402


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for a single program validation run."""

    def __init__(self, program_label: str):
        self.program_label = program_label
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] Program '{self.program_label}'"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_has_requirements(program: dict, result: ValidationResult) -> None:
    """A program with no requirements can never be completed."""
    requirements = program.get("requirements") or {}
    if not any(True for _ in iter_requirements(requirements)):
        result.error("Program defines no requirements.")


def check_credit_totals(program: dict, result: ValidationResult) -> None:
    """Section targets should add up to at least the program total."""
    requirements = program.get("requirements") or {}
    total = program.get("total_credits")
    section_sum = sum(s.get("credits_required") or 0 for s in requirements.get("sections") or [])
    if total is not None and section_sum < total:
        result.warn(f"Sections require {section_sum} credit(s) but the program total is {total}.")

    for section in requirements.get("sections") or []:
        req_sum = sum(r.get("credits_required") or 0 for r in section.get("requirements") or [])
        if req_sum < (section.get("credits_required") or 0):
            result.warn(
                f"Section '{section.get('id')}' requires {section.get('credits_required')} credit(s) "
                f"but its requirements only add up to {req_sum}."
            )


def check_catalog_references(program: dict, catalog_ids: set[str] | None, result: ValidationResult) -> None:
    """Named courses should exist in the catalog."""
    if catalog_ids is None:
        return
    unknown = find_unknown_course_references(program.get("requirements") or {}, catalog_ids)
    if unknown:
        result.warn(f"Course(s) not found in catalog: {unknown}")


# ── Main validate function ────────────────────────────────────────────────────

def validate_program(program: dict, catalog_ids: set[str] | None = None) -> ValidationResult:
    """Run all publish gate checks for a program. Returns a ValidationResult."""
    result = ValidationResult(program.get("name") or str(program.get("id")))

    problems = validate_program_requirements(program.get("requirements") or {})
    for problem in problems:
        result.error(problem)
    if problems:
        return result

    check_has_requirements(program, result)
    check_credit_totals(program, result)
    check_catalog_references(program, catalog_ids, result)
    return result


# ── CLI entry point ───────────────────────────────────────────────────────────

def main(args=None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate program requirement data before plans are assigned against it.",
    )
    parser.add_argument("--program", type=int, help="Program ID to validate.")
    parser.add_argument("--all", action="store_true", help="Validate all programs.")
    parser.add_argument("--path", type=str, default=config.DATA_PATH, help="Data directory.")
    opts = parser.parse_args(args)

    if opts.program is None and not opts.all:
        parser.error("Provide --program PROGRAM_ID or --all.")

    from data_loader import load_data

    try:
        store = load_data(opts.path)
    except (OSError, ValueError) as exc:
        print(f"[FATAL] Could not load data from {opts.path}: {exc}", file=sys.stderr)
        return 1

    catalog_ids = {c["course_id"] for c in store.catalog.get_all_courses()}

    if opts.all:
        programs = [store.programs[k] for k in sorted(store.programs)]
        if not programs:
            print("[INFO] No programs found.")
            return 0
    else:
        program = store.programs.get(opts.program)
        if program is None:
            print(f"[ERROR] Program {opts.program} not found.", file=sys.stderr)
            return 1
        programs = [program]

    all_passed = True
    for program in programs:
        result = validate_program(program, catalog_ids)
        print(result.summary())
        if not result.passed:
            all_passed = False

    return 0 if all_passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
