import math
import sys

from course_filter import evaluate_course_filter
from normalizer import course_code, course_identifiers, normalize_code, parse_course_number

# Constraints that change how the assigner places courses.
ENFORCEMENT_CONSTRAINT_TYPES = {"allow_double_count", "require_course_from_sections"}

# Constraints that are only checked and reported on the progress view.
VALIDATION_CONSTRAINT_TYPES = {
    "min_course_count",
    "max_course_count",
    "max_credits_from_courses",
    "min_credits_from_courses",
    "course_number_range",
}


# ── Requirement tree helpers ──────────────────────────────────────────────────

def full_requirement_id(section_id: str, requirement_id: str) -> str:
    return f"{section_id}.{requirement_id}"


def split_requirement_id(full_id: str) -> tuple[str, str]:
    """'core.writing' -> ('core', 'writing'). Requirement ids may contain dots."""
    section_id, _, requirement_id = str(full_id).partition(".")
    return section_id, requirement_id


def iter_requirements(program_requirements: dict):
    """Yield (section, requirement) pairs in program order."""
    for section in program_requirements.get("sections", []):
        for requirement in section.get("requirements", []):
            yield section, requirement


def requirement_index(program_requirements: dict) -> dict[str, tuple[dict, dict]]:
    """Map 'section.requirement' -> (section, requirement)."""
    return {
        full_requirement_id(section["id"], requirement["id"]): (section, requirement)
        for section, requirement in iter_requirements(program_requirements)
    }


def requirement_limits(program_requirements: dict) -> dict[str, float]:
    """Map 'section.requirement' -> credits required."""
    return {
        full_requirement_id(section["id"], requirement["id"]): requirement.get("credits_required") or 0
        for section, requirement in iter_requirements(program_requirements)
    }


def _all_constraint_lists(program_requirements: dict):
    yield program_requirements.get("constraints_structured") or []
    for section in program_requirements.get("sections", []):
        yield section.get("constraints_structured") or []
        for requirement in section.get("requirements", []):
            yield requirement.get("constraints_structured") or []


# ── Double counting ───────────────────────────────────────────────────────────

def _identifier_key(identifier) -> str:
    raw = str(identifier or "").strip()
    return normalize_code(raw) or raw


def build_double_count_map(program_requirements: dict) -> dict[str, set[str]]:
    """
    Course identifier -> requirement ids it may count toward simultaneously.

    Built once per program per assignment run from every allow_double_count
    constraint at program, section, and requirement level. Repeated entries
    for the same course are merged.
    """
    double_count_map: dict[str, set[str]] = {}
    for constraints in _all_constraint_lists(program_requirements):
        for constraint in constraints:
            if constraint.get("type") != "allow_double_count":
                continue
            key = _identifier_key(constraint.get("course_id"))
            if not key:
                continue
            double_count_map.setdefault(key, set()).update(constraint.get("requirement_ids", []))
    return double_count_map


def can_double_count(
    course: dict,
    assigned_requirement_id: str,
    candidate_requirement_id: str,
    double_count_map: dict[str, set[str]],
) -> bool:
    """
    True if the course may count toward both requirements of the same program.

    No policy entry for the course means the pair is denied.
    """
    allowed: set[str] = set()
    for ident in course_identifiers(course):
        allowed |= double_count_map.get(_identifier_key(ident), set())
    return assigned_requirement_id in allowed and candidate_requirement_id in allowed


# ── Enforcement ───────────────────────────────────────────────────────────────

def _same_course(a: dict, b: dict) -> bool:
    keys_a = {_identifier_key(i) for i in course_identifiers(a)}
    keys_b = {_identifier_key(i) for i in course_identifiers(b)}
    return bool(keys_a & keys_b)


def _check_require_course_from_sections(
    course: dict,
    constraint: dict,
    prior_fulfillments: list[dict],
) -> tuple[bool, str | None]:
    fulfilled_sections = {
        f["section_id"] for f in prior_fulfillments if _same_course(course, f["course"])
    }
    allowed_sections = constraint.get("allowed_section_ids", [])

    if constraint.get("operator", "OR") == "AND":
        if not all(s in fulfilled_sections for s in allowed_sections):
            return False, f"Course must also fulfill all of: {', '.join(allowed_sections)}"
    elif not any(s in fulfilled_sections for s in allowed_sections):
        return False, f"Course must also fulfill at least one of: {', '.join(allowed_sections)}"
    return True, None


def check_enforcement_constraints(
    course: dict,
    requirement_id: str,
    prior_fulfillments: list[dict],
    program_requirements: dict,
) -> tuple[bool, str | None]:
    """
    Default enforcement policy for the fulfillment assigner.

    Checks require_course_from_sections at requirement level, then section
    level, against every fulfillment recorded so far in this program.
    Returns (allowed, reason); reason is None when allowed.
    """
    found = requirement_index(program_requirements).get(requirement_id)
    if found is None:
        return True, None
    section, requirement = found

    for constraints in (requirement.get("constraints_structured") or [], section.get("constraints_structured") or []):
        for constraint in constraints:
            if constraint.get("type") != "require_course_from_sections":
                continue
            allowed, reason = _check_require_course_from_sections(course, constraint, prior_fulfillments)
            if not allowed:
                return allowed, reason
    return True, None


# ── Validation constraints ────────────────────────────────────────────────────

def _matches_course_ids(fulfillment: dict, course_ids: list[str]) -> bool:
    keys = {_identifier_key(c) for c in course_ids}
    course = fulfillment["course"]
    if course.get("course_id") and _identifier_key(course["course_id"]) in keys:
        return True
    return _identifier_key(course_code(course)) in keys


def _in_number_range(fulfillment: dict, constraint: dict) -> bool:
    course = fulfillment["course"]
    if course.get("subject_code") != constraint.get("subject_code"):
        return False
    number = parse_course_number(course.get("course_number"))
    if number is None:
        return False
    low = constraint.get("min_number", 0)
    operator = constraint.get("operator", "between")
    if operator == "above":
        return number > low
    if operator == "below":
        return number < low
    high = constraint.get("max_number")
    return low <= number <= (math.inf if high is None else high)


def validate_constraint(constraint: dict, fulfillments: list[dict]) -> dict | None:
    """
    Check one validation constraint against a set of fulfillments.

    Returns {"constraint", "satisfied"}, or None for enforcement constraints
    (those act during assignment) and unknown types.
    """
    kind = constraint.get("type")
    if kind in ENFORCEMENT_CONSTRAINT_TYPES:
        return None

    if kind == "min_course_count":
        count = sum(1 for f in fulfillments if evaluate_course_filter(f["course"], constraint["filter"]))
        satisfied = count >= constraint.get("count", 0)
    elif kind == "max_course_count":
        count = sum(1 for f in fulfillments if evaluate_course_filter(f["course"], constraint["filter"]))
        satisfied = count <= constraint.get("count", 0)
    elif kind == "max_credits_from_courses":
        credits = sum(f["credits_applied"] for f in fulfillments if _matches_course_ids(f, constraint.get("course_ids", [])))
        satisfied = credits <= constraint.get("max_credits", 0)
    elif kind == "min_credits_from_courses":
        credits = sum(f["credits_applied"] for f in fulfillments if _matches_course_ids(f, constraint.get("course_ids", [])))
        satisfied = credits >= constraint.get("min_credits", 0)
    elif kind == "course_number_range":
        count = sum(1 for f in fulfillments if _in_number_range(f, constraint))
        satisfied = count >= constraint.get("min_count", 1)
    else:
        print(f"[WARN] Unknown constraint type: {kind!r}", file=sys.stderr)
        return None

    return {"constraint": constraint, "satisfied": satisfied}


def _validate_constraints(constraints: list[dict], fulfillments: list[dict]) -> dict:
    results = []
    for constraint in constraints:
        result = validate_constraint(constraint, fulfillments)
        if result is not None:
            results.append(result)
    return {"results": results, "all_satisfied": all(r["satisfied"] for r in results)}


def validate_requirement_constraints(requirement: dict, requirement_id: str, all_fulfillments: list[dict]) -> dict:
    scoped = [f for f in all_fulfillments if f["requirement_id"] == requirement_id]
    return _validate_constraints(requirement.get("constraints_structured") or [], scoped)


def validate_section_constraints(section: dict, all_fulfillments: list[dict]) -> dict:
    scoped = [f for f in all_fulfillments if f["section_id"] == section["id"]]
    return _validate_constraints(section.get("constraints_structured") or [], scoped)


def validate_program_constraints(program_requirements: dict, all_fulfillments: list[dict]) -> dict:
    return _validate_constraints(program_requirements.get("constraints_structured") or [], all_fulfillments)
