"""
Print requirement progress for every program linked to a plan.

Fulfillments are recomputed first unless --no-reassign is given.
--preview adds a progress estimate for a program that is not linked yet.

Usage:
    python scripts/progress_report.py --plan 1
    python scripts/progress_report.py --plan 1 --preview 3
    python scripts/progress_report.py --plan 1 --xlsx reports/plan1.xlsx
"""

import argparse
import os
import sys

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

import config  # noqa: E402
from allocator import auto_assign_fulfillments  # noqa: E402
from data_loader import load_data  # noqa: E402
from errors import AppError  # noqa: E402
from progress import (  # noqa: E402
    aggregate_plan_progress,
    calculate_program_progress,
    preview_program_progress,
)
from workbook_io import safe_sheet_name, write_workbook  # noqa: E402


def _fmt_pct(value) -> str:
    return f"{value:.0f}%"


def format_program_progress(progress: dict) -> str:
    """Indented text rendering of one program's progress tree."""
    title = progress["program_name"] or progress["program_id"]
    if progress.get("preview"):
        title = f"{title} (preview)"
    lines = [
        f"{title}: {progress['status']} "
        f"{progress['total_credits_fulfilled']}/{progress['total_credits_required']} cr "
        f"({_fmt_pct(progress['percentage'])})"
    ]
    for section in progress["section_progress"]:
        lines.append(
            f"  {section['title'] or section['section_id']}: {section['status']} "
            f"{section['credits_fulfilled']}/{section['credits_required']} cr"
        )
        for requirement in section["requirement_progress"]:
            courses = ", ".join(
                f"{c['course_id']} ({c['term_label'] or c['semester_number']})"
                for c in requirement["fulfilling_courses"]
            )
            lines.append(
                f"    - {requirement['title'] or requirement['requirement_id']}: {requirement['status']} "
                f"{requirement['credits_fulfilled']}/{requirement['credits_required']} cr"
                + (f" <- {courses}" if courses else "")
            )
        validation = section.get("constraint_validation")
        if validation and not validation["all_satisfied"]:
            lines.append("    ! section constraints not satisfied")
    validation = progress.get("constraint_validation")
    if validation and not validation["all_satisfied"]:
        lines.append("  ! program constraints not satisfied")
    return "\n".join(lines)


def progress_frame(progress: dict) -> pd.DataFrame:
    """One row per requirement, for the workbook export."""
    rows = []
    for section in progress["section_progress"]:
        for requirement in section["requirement_progress"]:
            rows.append({
                "section": section["title"] or section["section_id"],
                "requirement_id": requirement["requirement_id"],
                "requirement": requirement["title"],
                "status": requirement["status"],
                "credits_fulfilled": requirement["credits_fulfilled"],
                "credits_required": requirement["credits_required"],
                "percentage": round(requirement["percentage"], 1),
                "courses": "; ".join(c["course_id"] for c in requirement["fulfilling_courses"]),
                "terms": "; ".join(str(c["term_label"] or "") for c in requirement["fulfilling_courses"]),
            })
    return pd.DataFrame(rows, columns=[
        "section", "requirement_id", "requirement", "status",
        "credits_fulfilled", "credits_required", "percentage", "courses", "terms",
    ])


def build_report(store, plan_id, preview_program_id=None) -> list[dict]:
    reports = [
        calculate_program_progress(store, pp["id"])
        for pp in store.get_plan_programs(plan_id)
    ]
    if preview_program_id is not None:
        reports.append(preview_program_progress(store, preview_program_id, plan_id))
    return reports


def export_workbook(path: str, reports: list[dict]) -> None:
    order: list[str] = []
    sheets: dict[str, pd.DataFrame] = {}
    taken: set[str] = set()
    for progress in reports:
        name = safe_sheet_name(progress["program_name"] or str(progress["program_id"]), taken)
        order.append(name)
        sheets[name] = progress_frame(progress)
    write_workbook(path, order, sheets)
    print(f"[OK] Wrote {len(order)} sheet(s) to {path}")


def main(args=None) -> int:
    parser = argparse.ArgumentParser(description="Report requirement progress for a plan.")
    parser.add_argument("--plan", type=int, required=True, help="Plan ID.")
    parser.add_argument("--preview", type=int, help="Program ID to preview against the plan.")
    parser.add_argument("--path", type=str, default=config.DATA_PATH, help="Data directory.")
    parser.add_argument("--xlsx", type=str, help="Also write the report to this workbook.")
    parser.add_argument("--no-reassign", action="store_true", help="Use stored fulfillments as-is.")
    opts = parser.parse_args(args)

    try:
        store = load_data(opts.path)
    except (OSError, ValueError) as exc:
        print(f"[FATAL] Could not load data from {opts.path}: {exc}", file=sys.stderr)
        return 1

    try:
        if not opts.no_reassign:
            auto_assign_fulfillments(store, opts.plan)
        reports = build_report(store, opts.plan, opts.preview)
        overview = aggregate_plan_progress(store, opts.plan)
    except AppError as exc:
        print(f"[ERROR] {exc.error_code}: {exc.message}", file=sys.stderr)
        return 1

    for progress in reports:
        print(format_program_progress(progress))
        print()
    print(
        f"[INFO] Plan {opts.plan}: {overview['overall_status']} "
        f"({overview['completed_programs']}/{overview['total_programs']} program(s) complete)"
    )

    if opts.xlsx:
        export_workbook(opts.xlsx, reports)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
