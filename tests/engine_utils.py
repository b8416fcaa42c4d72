"""Builders for synthetic courses, programs and plans shared by the engine tests."""

import pandas as pd

from catalog import COURSE_COLUMNS, CourseCatalog
from plan_store import PlanStore


def make_course(code, credits=3, axle=None, core=None, academic_year_id=1, is_catalog_course=True, id=None):
    subject, number = code.split(" ")
    return {
        "id": id,
        "course_id": code,
        "subject_code": subject,
        "course_number": number,
        "title": f"{code} title",
        "credits_min": credits,
        "credits_max": credits,
        "attributes": {"axle": list(axle or []), "core": list(core or [])},
        "academic_year_id": academic_year_id,
        "is_catalog_course": is_catalog_course,
    }


def take_any(course_filter, credits=3):
    return {"type": "take_any_courses", "credits": credits, "filter": course_filter}


def subject_filter(subject, low=None, high=None):
    course_filter = {"type": "subject_number", "subjects": [subject]}
    if low is not None:
        course_filter["numbers"] = [{"type": "range", "min": low, "max": high}]
    return course_filter


def requirement(req_id, rule, credits_required=3, constraints=None):
    req = {
        "id": req_id,
        "title": req_id.replace("_", " ").title(),
        "description": "",
        "credits_required": credits_required,
        "rule": rule,
    }
    if constraints:
        req["constraints_structured"] = constraints
    return req


def section(section_id, requirements, credits_required=None, constraints=None):
    sec = {
        "id": section_id,
        "title": section_id.title(),
        "credits_required": (
            credits_required if credits_required is not None
            else sum(r["credits_required"] for r in requirements)
        ),
        "requirements": requirements,
    }
    if constraints:
        sec["constraints_structured"] = constraints
    return sec


def program(program_id, sections, name=None, total_credits=None, constraints=None):
    requirements = {"sections": sections}
    if constraints:
        requirements["constraints_structured"] = constraints
    return {
        "id": program_id,
        "program_id": f"P{program_id}",
        "name": name or f"Program {program_id}",
        "type": "major",
        "total_credits": (
            total_credits if total_credits is not None
            else sum(s["credits_required"] for s in sections)
        ),
        "requirements": requirements,
    }


def planned(pc_id, course, semester=1, position=0, credits=None, plan_id=1):
    return {
        "id": pc_id,
        "plan_id": plan_id,
        "semester_number": semester,
        "position": position,
        "credits": credits,
        "course": course,
        "class": None,
    }


def plan_program(pp_id, prog, plan_id=1):
    return {"id": pp_id, "plan_id": plan_id, "program_id": prog["id"], "program": prog}


def catalog_frame(courses):
    return pd.DataFrame([{col: c.get(col) for col in COURSE_COLUMNS} for c in courses], columns=COURSE_COLUMNS)


def build_store(catalog_courses, programs, planned_rows, linked_program_ids, academic_year_start=2025):
    """
    Store with one plan (id 1) in academic year 1.

    planned_rows are (course_code, semester, position, credits) tuples that
    reference catalog_courses by course_id.
    """
    store = PlanStore(CourseCatalog(catalog_frame(catalog_courses)))
    store.add_academic_year({"id": 1, "start": academic_year_start})
    store.add_plan({"id": 1, "name": "Plan", "academic_year_id": 1})
    for prog in programs:
        store.add_program(prog)
    for i, (code, semester, position, credits) in enumerate(planned_rows, start=1):
        store.add_planned_course({
            "id": i,
            "plan_id": 1,
            "semester_number": semester,
            "position": position,
            "credits": credits,
            "course_id": code,
        })
    for program_id in linked_program_ids:
        store.link_program(1, program_id)
    return store
