import sys

import config
from normalizer import course_code
from requirement_matcher import find_matching_requirements
from requirements import (
    build_double_count_map,
    can_double_count,
    check_enforcement_constraints,
    full_requirement_id,
    requirement_index,
    requirement_limits,
)


def _trace(msg: str) -> None:
    if config.VERBOSE_ASSIGNMENT:
        print(f"[DEBUG] {msg}")


def resolve_effective_course(planned_course: dict) -> dict | None:
    """The semester-specific class offering wins over the generic catalog course."""
    return planned_course.get("class") or planned_course.get("course")


def planned_course_credits(planned_course: dict, course: dict | None):
    """Credits the plan applies for this slot: plan value, then catalog minimum, then default."""
    credits = planned_course.get("credits")
    if credits is None and course is not None:
        credits = course.get("credits_min")
    if credits is None:
        credits = config.DEFAULT_COURSE_CREDITS
    return credits


def course_label(course: dict) -> str:
    return str(course.get("course_id") or course.get("class_id") or course_code(course))


class ProgramAllocationState:
    """
    Mutable per-program state for a single assignment run.

    Holds the running credit totals per requirement and every fulfillment
    committed so far in this program. Created fresh for each run.
    """

    def __init__(self, plan_program: dict):
        program = plan_program.get("program") or {}
        self.plan_program_id = plan_program["id"]
        self.program_name = program.get("name") or str(plan_program.get("program_id"))
        self.program_requirements = program.get("requirements") or {"sections": []}
        self.double_count_map = build_double_count_map(self.program_requirements)
        self.limits = requirement_limits(self.program_requirements)
        self.index = requirement_index(self.program_requirements)
        self.credits_assigned: dict[str, float] = {}
        self.fulfillments: list[dict] = []

    def assigned_credits(self, requirement_id: str):
        return self.credits_assigned.get(requirement_id, 0)

    def is_full(self, requirement_id: str) -> bool:
        return self.assigned_credits(requirement_id) >= self.limits.get(requirement_id, 0)

    def commit(self, planned_course: dict, course: dict, section_id: str, requirement_id: str, credits) -> dict:
        record = {
            "plan_program_id": self.plan_program_id,
            "requirement_id": requirement_id,
            "planned_course_id": planned_course.get("id"),
            "credits_applied": credits,
        }
        self.credits_assigned[requirement_id] = self.assigned_credits(requirement_id) + credits
        self.fulfillments.append({
            **record,
            "section_id": section_id,
            "course": course,
            "semester_number": planned_course.get("semester_number"),
        })
        return record


def _double_count_ok(state: ProgramAllocationState, course: dict, assigned_ids: list[str], candidate_id: str) -> bool:
    # Each additional requirement must be pairwise-compatible with all already-assigned ones.
    return all(
        can_double_count(course, existing, candidate_id, state.double_count_map)
        for existing in assigned_ids
    )


def _assign_in_program(
    state: ProgramAllocationState,
    planned_course: dict,
    course: dict,
    credits,
    enforcement_check,
    records: list[dict],
    notes: list[str],
) -> list[str]:
    """Place one planned course within one program. Returns the requirement ids it landed in."""
    label = course_label(course)
    matches = find_matching_requirements(course, state.program_requirements)
    if not matches:
        _trace(f"No matches for {label} in program {state.program_name}")
        return []

    # Unfilled requirements first, then specificity (highest first).
    ordered = sorted(
        matches,
        key=lambda m: (
            state.is_full(full_requirement_id(m["section_id"], m["requirement_id"])),
            -m["specificity_score"],
        ),
    )
    ordered_ids = [full_requirement_id(m["section_id"], m["requirement_id"]) for m in ordered]

    assigned_ids: list[str] = []
    deferred: list[dict] = []

    def commit(match: dict, requirement_id: str) -> None:
        records.append(state.commit(planned_course, course, match["section_id"], requirement_id, credits))
        assigned_ids.append(requirement_id)

    for match, requirement_id in zip(ordered, ordered_ids):
        if requirement_id in assigned_ids:
            continue

        overflow = state.is_full(requirement_id)
        if overflow:
            has_unfilled = any(
                other != requirement_id and not state.is_full(other) for other in ordered_ids
            )
            if has_unfilled:
                _trace(
                    f"Skipping {label} for {requirement_id} in {state.program_name}: requirement is full "
                    f"({state.assigned_credits(requirement_id)}/{state.limits.get(requirement_id, 0)}) "
                    "and unfilled matches exist"
                )
                continue

        if assigned_ids and not _double_count_ok(state, course, assigned_ids, requirement_id):
            _trace(
                f"Skipping {label} for {requirement_id} in {state.program_name}: "
                "already assigned within program and double counting not allowed"
            )
            continue

        if requirement_id not in state.index:
            print(
                f"[WARN] Requirement {requirement_id} not found in program {state.program_name}",
                file=sys.stderr,
            )
            continue

        allowed, reason = enforcement_check(course, requirement_id, state.fulfillments, state.program_requirements)
        if not allowed:
            _trace(f"Deferring {label} for {requirement_id} in {state.program_name}: {reason}")
            deferred.append(match)
            continue

        commit(match, requirement_id)
        if overflow:
            notes.append(
                f"{label} overflows into {requirement_id} in {state.program_name}: "
                "every requirement it matches is already full."
            )
        _trace(
            f"Assigned {label} to {requirement_id} in {state.program_name} "
            f"(score: {match['specificity_score']})"
            + (" [DOUBLE COUNT]" if len(assigned_ids) > 1 else "")
        )

    # Exactly one retry over deferred matches; more fulfillments exist now.
    for match in deferred:
        requirement_id = full_requirement_id(match["section_id"], match["requirement_id"])
        if requirement_id in assigned_ids:
            continue
        allowed, reason = enforcement_check(course, requirement_id, state.fulfillments, state.program_requirements)
        if not allowed:
            notes.append(f"{label} could not count toward {requirement_id} in {state.program_name}: {reason}")
            continue
        if assigned_ids and not _double_count_ok(state, course, assigned_ids, requirement_id):
            continue
        commit(match, requirement_id)
        _trace(f"Assigned {label} to {requirement_id} in {state.program_name} [DEFERRED]")

    return assigned_ids


def assign_fulfillments(
    planned_courses: list[dict],
    plan_programs: list[dict],
    enforcement_check=check_enforcement_constraints,
) -> dict:
    """
    Deterministically assign a plan's courses to requirements of every linked program.

    planned_courses must already be in plan order (semester, then position).
    Each program is evaluated independently: what happens in one never
    affects another. Within a program a course lands in at most one
    requirement unless the double-count policy allows the pair.

    enforcement_check(course, requirement_id, prior_fulfillments, program_requirements)
    returns (allowed, reason); blocked matches are retried once after the
    course's other placements in that program.
    """
    states = [ProgramAllocationState(pp) for pp in plan_programs]
    records: list[dict] = []
    double_counted: list[dict] = []
    notes: list[str] = []

    for planned_course in planned_courses:
        course = resolve_effective_course(planned_course)
        if course is None:
            continue
        credits = planned_course_credits(planned_course, course)
        _trace(f"Processing {course_label(course)} across {len(states)} programs")

        for state in states:
            assigned_ids = _assign_in_program(
                state, planned_course, course, credits, enforcement_check, records, notes,
            )
            if len(assigned_ids) > 1:
                double_counted.append({
                    "planned_course_id": planned_course.get("id"),
                    "plan_program_id": state.plan_program_id,
                    "requirement_ids": assigned_ids,
                })

    by_plan_program: dict = {state.plan_program_id: [] for state in states}
    for record in records:
        by_plan_program[record["plan_program_id"]].append(record)

    return {
        "fulfillments": records,
        "by_plan_program": by_plan_program,
        "double_counted_courses": double_counted,
        "notes": notes,
    }


def auto_assign_fulfillments(store, plan_id, enforcement_check=check_enforcement_constraints) -> dict:
    """
    Recompute every fulfillment of a plan: clear the old set, write the new one.

    Runs inside the store's per-plan transaction so a failure leaves the
    previous fulfillment set in place. Raises NotFoundError for unknown plans.
    """
    store.get_plan(plan_id)
    print(f"[INFO] Auto-assigning fulfillments for plan {plan_id}")

    with store.transaction(plan_id):
        plan_programs = store.get_plan_programs(plan_id)
        planned_courses = store.get_planned_courses(plan_id)
        store.delete_fulfillments([pp["id"] for pp in plan_programs])
        result = assign_fulfillments(planned_courses, plan_programs, enforcement_check)
        store.bulk_insert_fulfillments(result["fulfillments"])

    print(
        f"[OK] Plan {plan_id}: {len(result['fulfillments'])} fulfillment(s) across "
        f"{len(plan_programs)} program(s)"
    )
    return result
