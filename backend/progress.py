"""
Read-side progress views over persisted (or synthetic preview) fulfillments.

Aggregation runs bottom-up: requirement credits roll into sections, section
credits into the program total. Nothing here writes to the store.
"""

import sys

from allocator import planned_course_credits, resolve_effective_course
from errors import NotFoundError
from requirement_matcher import find_matching_requirements
from requirements import (
    full_requirement_id,
    requirement_index,
    split_requirement_id,
    validate_program_constraints,
    validate_requirement_constraints,
    validate_section_constraints,
)
from rule_progress import evaluate_rule_progress, progress_status


def term_label(semester_number, academic_year_start) -> str | None:
    """Semester 1 is the fall of the starting year; even semesters are springs."""
    if semester_number is None or academic_year_start is None:
        return None
    season = "Fall" if semester_number % 2 == 1 else "Spring"
    return f"{season} {academic_year_start + semester_number // 2}"


def _percentage(fulfilled, required) -> float:
    return 100 if not required else fulfilled / required * 100


def _constraint_validation(constraints, validate):
    if not constraints:
        return None
    return validate()


# ── Fulfillment enrichment ────────────────────────────────────────────────────

def _enrich(fulfillment: dict, planned_course: dict, course: dict) -> dict:
    section_id, _ = split_requirement_id(fulfillment["requirement_id"])
    return {
        "requirement_id": fulfillment["requirement_id"],
        "section_id": section_id,
        "planned_course_id": planned_course.get("id"),
        "course": {**course, "credits": planned_course_credits(planned_course, course)},
        "credits_applied": fulfillment["credits_applied"],
        "semester_number": planned_course.get("semester_number"),
    }


def _enrich_fulfillments(fulfillments, planned_courses, program_requirements, program_name) -> list[dict]:
    by_id = {pc["id"]: pc for pc in planned_courses}
    index = requirement_index(program_requirements)
    enriched = []
    for fulfillment in fulfillments:
        if fulfillment["requirement_id"] not in index:
            print(
                f"[WARN] Fulfillment for {fulfillment['requirement_id']} has no requirement in "
                f"program {program_name}; skipped",
                file=sys.stderr,
            )
            continue
        planned_course = by_id.get(fulfillment["planned_course_id"])
        course = resolve_effective_course(planned_course) if planned_course else None
        if course is None:
            print(
                f"[WARN] Fulfillment for {fulfillment['requirement_id']} references missing "
                f"planned course {fulfillment['planned_course_id']}; skipped",
                file=sys.stderr,
            )
            continue
        enriched.append(_enrich(fulfillment, planned_course, course))
    return enriched


# ── Aggregation ───────────────────────────────────────────────────────────────

def _requirement_progress(section, requirement, fulfillments, context) -> dict:
    requirement_id = full_requirement_id(section["id"], requirement["id"])
    own = [f for f in fulfillments if f["requirement_id"] == requirement_id]
    rule = requirement.get("rule") or {}

    catalog_courses = None
    if rule.get("type") == "take_any_courses" and rule.get("filter"):
        catalog_courses = context["catalog"].get_courses_by_filter(
            rule["filter"], context["academic_year_id"],
        )
    try:
        rule_progress = evaluate_rule_progress(rule, [f["course"] for f in own], catalog_courses)
    except ValueError as exc:
        print(f"[WARN] Rule progress unavailable for {requirement_id}: {exc}", file=sys.stderr)
        rule_progress = None

    credits_fulfilled = sum(f["credits_applied"] for f in own)
    credits_required = requirement.get("credits_required") or 0

    return {
        "requirement_id": requirement_id,
        "section_id": section["id"],
        "title": requirement.get("title"),
        "description": requirement.get("description"),
        "status": progress_status(credits_fulfilled, credits_required),
        "credits_required": credits_required,
        "credits_fulfilled": credits_fulfilled,
        "percentage": _percentage(credits_fulfilled, credits_required),
        "rule_progress": rule_progress,
        "fulfilling_courses": [
            {
                "course_id": f["course"].get("course_id") or f["course"].get("class_id"),
                "title": f["course"].get("title"),
                "credits": f["course"]["credits"],
                "credits_applied": f["credits_applied"],
                "semester_number": f["semester_number"],
                "term_label": term_label(f["semester_number"], context["academic_year_start"]),
            }
            for f in own
        ],
        "constraint_validation": _constraint_validation(
            requirement.get("constraints_structured"),
            lambda: validate_requirement_constraints(requirement, requirement_id, fulfillments),
        ),
    }


def _section_progress(section, fulfillments, context) -> dict:
    requirements = [
        _requirement_progress(section, requirement, fulfillments, context)
        for requirement in section.get("requirements", [])
    ]
    credits_fulfilled = sum(r["credits_fulfilled"] for r in requirements)
    credits_required = section.get("credits_required") or 0
    return {
        "section_id": section["id"],
        "title": section.get("title"),
        "status": progress_status(credits_fulfilled, credits_required),
        "credits_required": credits_required,
        "credits_fulfilled": credits_fulfilled,
        "percentage": _percentage(credits_fulfilled, credits_required),
        "requirement_progress": requirements,
        "constraint_validation": _constraint_validation(
            section.get("constraints_structured"),
            lambda: validate_section_constraints(section, fulfillments),
        ),
    }


def _program_progress(program: dict, fulfillments: list[dict], context: dict) -> dict:
    program_requirements = program.get("requirements") or {"sections": []}
    sections = [
        _section_progress(section, fulfillments, context)
        for section in program_requirements.get("sections", [])
    ]
    total_fulfilled = sum(s["credits_fulfilled"] for s in sections)
    total_required = program.get("total_credits")
    if total_required is None:
        total_required = sum(s["credits_required"] for s in sections)

    return {
        "program_id": program["id"],
        "program_name": program.get("name"),
        "program_type": program.get("type"),
        "status": progress_status(total_fulfilled, total_required),
        "total_credits_required": total_required,
        "total_credits_fulfilled": total_fulfilled,
        "percentage": _percentage(total_fulfilled, total_required),
        "section_progress": sections,
        "constraint_validation": _constraint_validation(
            program_requirements.get("constraints_structured"),
            lambda: validate_program_constraints(program_requirements, fulfillments),
        ),
    }


def _plan_context(store, plan: dict, catalog) -> dict:
    academic_year = store.get_academic_year(plan.get("academic_year_id")) or {}
    return {
        "catalog": catalog if catalog is not None else store.catalog,
        "academic_year_id": plan.get("academic_year_id"),
        "academic_year_start": academic_year.get("start"),
    }


# ── Public entry points ───────────────────────────────────────────────────────

def calculate_program_progress(store, plan_program_id, catalog=None) -> dict:
    """
    Progress tree for one program linked to a plan.

    Raises NotFoundError for an unknown association and lets
    CatalogUnavailableError through when a take_any_courses requirement
    needs the catalog.
    """
    plan_program = store.get_plan_program(plan_program_id)
    program = plan_program["program"]
    plan = store.get_plan(plan_program["plan_id"])

    fulfillments = _enrich_fulfillments(
        store.get_fulfillments(plan_program_id),
        store.get_planned_courses(plan["id"]),
        program.get("requirements") or {"sections": []},
        program.get("name"),
    )
    progress = _program_progress(program, fulfillments, _plan_context(store, plan, catalog))
    return {"plan_program_id": plan_program_id, **progress}


def get_section_progress(store, plan_program_id, section_id, catalog=None) -> dict:
    progress = calculate_program_progress(store, plan_program_id, catalog)
    for section in progress["section_progress"]:
        if section["section_id"] == section_id:
            return section
    raise NotFoundError("Section not found", {"section_id": section_id})


def preview_program_progress(store, program_id, plan_id, catalog=None) -> dict:
    """
    Approximate progress for a program that is not linked to the plan.

    Each planned course counts once, toward its single highest-specificity
    match. No double counting, overflow handling or deferral; this is not
    what the assigner would produce after linking.
    """
    program = store.get_program(program_id)
    plan = store.get_plan(plan_id)
    program_requirements = program.get("requirements") or {"sections": []}

    fulfillments = []
    for planned_course in store.get_planned_courses(plan_id):
        course = resolve_effective_course(planned_course)
        if course is None:
            continue
        matches = find_matching_requirements(course, program_requirements)
        if not matches:
            continue
        best = matches[0]
        synthetic = {
            "requirement_id": full_requirement_id(best["section_id"], best["requirement_id"]),
            "planned_course_id": planned_course.get("id"),
            "credits_applied": planned_course_credits(planned_course, course),
        }
        fulfillments.append(_enrich(synthetic, planned_course, course))

    progress = _program_progress(program, fulfillments, _plan_context(store, plan, catalog))
    return {"plan_program_id": None, "preview": True, **progress}


def aggregate_plan_progress(store, plan_id, catalog=None) -> dict:
    """Per-program summary for every program linked to a plan, plus an overall status."""
    store.get_plan(plan_id)
    programs = [
        calculate_program_progress(store, pp["id"], catalog)
        for pp in store.get_plan_programs(plan_id)
    ]
    completed = sum(1 for p in programs if p["status"] == "completed")

    if programs and completed == len(programs):
        overall = "completed"
    elif any(p["status"] != "not_started" for p in programs):
        overall = "in_progress"
    else:
        overall = "not_started"

    return {
        "plan_id": plan_id,
        "programs": [
            {
                "plan_program_id": p["plan_program_id"],
                "program_id": p["program_id"],
                "program_name": p["program_name"],
                "program_type": p["program_type"],
                "status": p["status"],
                "percentage": p["percentage"],
                "credits_fulfilled": p["total_credits_fulfilled"],
                "credits_required": p["total_credits_required"],
            }
            for p in programs
        ],
        "overall_status": overall,
        "total_programs": len(programs),
        "completed_programs": completed,
    }
