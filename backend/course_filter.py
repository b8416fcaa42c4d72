"""
Course-selection filters: evaluation, specificity scoring, structural validation.

A filter is a dict discriminated by its "type" key:

  any                   matches everything
  subject_number        subjects, optional numbers, optional exclude (course ids)
  attribute             attributes, optional attribute_type, optional exclude.subjects
  course_list           courses (course ids)
  course_number_suffix  suffixes, optional subjects, optional exclude (course ids)
  number_attribute      numbers + attributes, optional subjects, exclude.subjects / exclude.courses
  composite             operator AND|OR over filters

Number constraints are {"type": "specific", "values": [...]} or
{"type": "range", "min": n, "max": n | None}.
"""

import math

from normalizer import parse_course_number

FILTER_TYPES = (
    "any",
    "subject_number",
    "attribute",
    "course_list",
    "course_number_suffix",
    "number_attribute",
    "composite",
)

ATTRIBUTE_TYPES = {"axle", "core"}
COMPOSITE_OPERATORS = {"AND", "OR"}


# ── Evaluation ────────────────────────────────────────────────────────────────

def get_course_attributes(course: dict, attribute_type: str | None = None) -> list[str]:
    """AXLE and/or CORE attribute tags of a course; [] when it has none."""
    attrs = course.get("attributes")
    if not attrs or not isinstance(attrs, dict):
        return []
    axle = list(attrs.get("axle") or [])
    core = list(attrs.get("core") or [])
    if attribute_type == "axle":
        return axle
    if attribute_type == "core":
        return core
    return axle + core


def _matches_number_constraint(course_number: str, course_num: int | None, constraint: dict) -> bool:
    if constraint.get("type") == "specific":
        return course_number in constraint.get("values", [])
    if course_num is None:
        return False
    low = constraint.get("min", 0)
    high = constraint.get("max")
    if high is None:
        high = math.inf
    return low <= course_num <= high


def matches_number_constraints(course_number, constraints: list[dict]) -> bool:
    """True when the course number satisfies at least one constraint."""
    course_number = "" if course_number is None else str(course_number)
    course_num = parse_course_number(course_number)
    return any(_matches_number_constraint(course_number, course_num, c) for c in constraints)


def _attributes_intersect(course: dict, course_filter: dict) -> bool:
    course_attributes = get_course_attributes(course, course_filter.get("attribute_type"))
    if not course_attributes:
        return False
    return any(attr in course_attributes for attr in course_filter.get("attributes", []))


def _evaluate_any(course: dict, course_filter: dict) -> bool:
    return True


def _evaluate_subject_number(course: dict, course_filter: dict) -> bool:
    if course.get("subject_code") not in course_filter.get("subjects", []):
        return False
    numbers = course_filter.get("numbers")
    if numbers is not None and not matches_number_constraints(course.get("course_number"), numbers):
        return False
    exclude = course_filter.get("exclude")
    if exclude and course.get("course_id") in exclude:
        return False
    return True


def _evaluate_attribute(course: dict, course_filter: dict) -> bool:
    excluded_subjects = (course_filter.get("exclude") or {}).get("subjects") or []
    if course.get("subject_code") in excluded_subjects:
        return False
    return _attributes_intersect(course, course_filter)


def _evaluate_course_list(course: dict, course_filter: dict) -> bool:
    return course.get("course_id") in course_filter.get("courses", [])


def _evaluate_course_number_suffix(course: dict, course_filter: dict) -> bool:
    subjects = course_filter.get("subjects")
    if subjects is not None and course.get("subject_code") not in subjects:
        return False
    exclude = course_filter.get("exclude")
    if exclude and course.get("course_id") in exclude:
        return False
    number = str(course.get("course_number") or "")
    return any(number.endswith(suffix) for suffix in course_filter.get("suffixes", []))


def _evaluate_number_attribute(course: dict, course_filter: dict) -> bool:
    subjects = course_filter.get("subjects")
    if subjects is not None and course.get("subject_code") not in subjects:
        return False
    exclude = course_filter.get("exclude") or {}
    if course.get("subject_code") in (exclude.get("subjects") or []):
        return False
    if course.get("course_id") in (exclude.get("courses") or []):
        return False
    if not matches_number_constraints(course.get("course_number"), course_filter.get("numbers", [])):
        return False
    return _attributes_intersect(course, course_filter)


def _evaluate_composite(course: dict, course_filter: dict) -> bool:
    sub_filters = course_filter.get("filters", [])
    if course_filter.get("operator") == "AND":
        return all(evaluate_course_filter(course, f) for f in sub_filters)
    return any(evaluate_course_filter(course, f) for f in sub_filters)


_EVALUATORS = {
    "any": _evaluate_any,
    "subject_number": _evaluate_subject_number,
    "attribute": _evaluate_attribute,
    "course_list": _evaluate_course_list,
    "course_number_suffix": _evaluate_course_number_suffix,
    "number_attribute": _evaluate_number_attribute,
    "composite": _evaluate_composite,
}


def evaluate_course_filter(course: dict, course_filter: dict) -> bool:
    """Return True if the course satisfies the filter. Raises ValueError on unknown types."""
    filter_type = course_filter.get("type")
    evaluator = _EVALUATORS.get(filter_type)
    if evaluator is None:
        raise ValueError(f"Unknown course filter type: {filter_type!r}")
    return evaluator(course, course_filter)


# ── Specificity ───────────────────────────────────────────────────────────────

def _score_attribute(course_filter: dict):
    exclusion_bonus = 10 if "subjects" in (course_filter.get("exclude") or {}) else 0
    attribute_count = len(course_filter.get("attributes", []))
    # Wider attribute net, lower score.
    attribute_penalty = min(15, (attribute_count - 1) * 3)
    return 40 + exclusion_bonus - attribute_penalty


def _score_subject_number(course_filter: dict):
    score = 50
    numbers = course_filter.get("numbers")
    if numbers:
        if any(c.get("type") == "specific" for c in numbers):
            score += 25
        elif any(c.get("type") == "range" for c in numbers):
            score += 15
    if course_filter.get("exclude"):
        score += 5
    if len(course_filter.get("subjects", [])) <= 2:
        score += 5
    return min(85, score)


def _score_course_list(course_filter: dict):
    list_size = len(course_filter.get("courses", []))
    if list_size <= 5:
        return 90
    if list_size <= 10:
        return 88
    return 85


def _score_course_number_suffix(course_filter: dict):
    score = 45
    subjects = course_filter.get("subjects")
    if subjects is not None and len(subjects) <= 2:
        score += 5
    if len(course_filter.get("suffixes", [])) == 1:
        score += 5
    return min(60, score)


def _score_number_attribute(course_filter: dict):
    score = 55
    subjects = course_filter.get("subjects")
    if subjects is not None and len(subjects) <= 2:
        score += 5
    score -= min(10, (len(course_filter.get("attributes", [])) - 1) * 2)
    if any(c.get("type") == "specific" for c in course_filter.get("numbers", [])):
        score += 10
    return min(75, score)


def _score_composite(course_filter: dict):
    sub_scores = [calculate_filter_specificity(f) for f in course_filter.get("filters", [])]
    if not sub_scores:
        return 0
    if course_filter.get("operator") == "AND":
        ranked = sorted(sub_scores, reverse=True)
        return (ranked[0] + ranked[1]) / 2 if len(ranked) >= 2 else ranked[0]
    # An OR accepts anything its loosest branch accepts.
    return min(sub_scores)


_SCORERS = {
    "any": lambda f: 10,
    "subject_number": _score_subject_number,
    "attribute": _score_attribute,
    "course_list": _score_course_list,
    "course_number_suffix": _score_course_number_suffix,
    "number_attribute": _score_number_attribute,
    "composite": _score_composite,
}


def calculate_filter_specificity(course_filter: dict):
    """
    0-100 narrowness score of a filter, higher = more specific.

    Only used to order simultaneously matching requirements; never rejects a match.
    """
    filter_type = course_filter.get("type")
    scorer = _SCORERS.get(filter_type)
    if scorer is None:
        raise ValueError(f"Unknown course filter type: {filter_type!r}")
    return scorer(course_filter)


# ── Validation ────────────────────────────────────────────────────────────────

def _validate_number_constraints(numbers: list[dict]) -> str | None:
    for constraint in numbers:
        kind = constraint.get("type")
        if kind == "specific":
            if not constraint.get("values"):
                return "specific number constraint must have at least one value"
        elif kind == "range":
            low = constraint.get("min")
            if low is None or low < 0:
                return "range min must be non-negative"
        else:
            return f"unknown number constraint type: {kind!r}"
    return None


def validate_filter(course_filter: dict) -> str | None:
    """Return the first structural problem found in the filter, or None if valid."""
    if not isinstance(course_filter, dict):
        return "filter must be an object"
    filter_type = course_filter.get("type")

    if filter_type == "any":
        return None

    if filter_type == "subject_number":
        if not course_filter.get("subjects"):
            return "subject_number filter must have at least one subject"
        if course_filter.get("numbers") is not None:
            return _validate_number_constraints(course_filter["numbers"])
        return None

    if filter_type == "attribute":
        if not course_filter.get("attributes"):
            return "attribute filter must have at least one attribute"
        attribute_type = course_filter.get("attribute_type")
        if attribute_type is not None and attribute_type not in ATTRIBUTE_TYPES:
            return f"attribute_type must be one of {sorted(ATTRIBUTE_TYPES)}"
        return None

    if filter_type == "course_list":
        if not course_filter.get("courses"):
            return "course_list filter must have at least one course"
        return None

    if filter_type == "course_number_suffix":
        if not course_filter.get("suffixes"):
            return "course_number_suffix filter must have at least one suffix"
        if course_filter.get("subjects") == []:
            return "course_number_suffix subjects, when given, must not be empty"
        return None

    if filter_type == "number_attribute":
        if not course_filter.get("numbers"):
            return "number_attribute filter must have at least one number constraint"
        if not course_filter.get("attributes"):
            return "number_attribute filter must have at least one attribute"
        if course_filter.get("subjects") == []:
            return "number_attribute subjects, when given, must not be empty"
        return _validate_number_constraints(course_filter["numbers"])

    if filter_type == "composite":
        if course_filter.get("operator") not in COMPOSITE_OPERATORS:
            return "composite filter operator must be AND or OR"
        sub_filters = course_filter.get("filters") or []
        if len(sub_filters) < 2:
            return "composite filter must have at least two sub-filters"
        for sub_filter in sub_filters:
            error = validate_filter(sub_filter)
            if error:
                return error
        return None

    return f"unknown filter type: {filter_type!r}"
