from course_filter import calculate_filter_specificity, evaluate_course_filter
from normalizer import course_matches_identifier

RULE_TYPES = ("take_courses", "take_from_list", "take_any_courses", "group")

# Explicitly named courses outrank any filter-based rule.
TAKE_COURSES_SCORE = 100
TAKE_FROM_LIST_SCORE = 80

_NO_MATCH = {"matches": False, "specificity_score": 0}


def _evaluate_take_courses(rule: dict, course: dict) -> dict:
    if any(course_matches_identifier(course, ident) for ident in rule.get("courses", [])):
        return {"matches": True, "specificity_score": TAKE_COURSES_SCORE}
    return dict(_NO_MATCH)


def _evaluate_take_from_list(rule: dict, course: dict) -> dict:
    if any(course_matches_identifier(course, ident) for ident in rule.get("courses", [])):
        return {"matches": True, "specificity_score": TAKE_FROM_LIST_SCORE}
    return dict(_NO_MATCH)


def take_any_filter(rule: dict) -> dict:
    """The filter of a take_any_courses rule. A rule without one cannot be evaluated."""
    course_filter = rule.get("filter")
    if not course_filter:
        raise ValueError("take_any_courses rule has no filter")
    return course_filter


def _evaluate_take_any_courses(rule: dict, course: dict) -> dict:
    course_filter = take_any_filter(rule)
    if evaluate_course_filter(course, course_filter):
        return {"matches": True, "specificity_score": calculate_filter_specificity(course_filter)}
    return dict(_NO_MATCH)


def _evaluate_group(rule: dict, course: dict) -> dict:
    # AND and OR both match on any sub-rule: different courses fill different parts.
    matched = [e for e in (evaluate_rule(r, course) for r in rule.get("rules", [])) if e["matches"]]
    if not matched:
        return dict(_NO_MATCH)
    return {"matches": True, "specificity_score": max(e["specificity_score"] for e in matched)}


_RULE_EVALUATORS = {
    "take_courses": _evaluate_take_courses,
    "take_from_list": _evaluate_take_from_list,
    "take_any_courses": _evaluate_take_any_courses,
    "group": _evaluate_group,
}


def evaluate_rule(rule: dict, course: dict) -> dict:
    """
    Decide whether a course can count toward a requirement rule.

    Returns {"matches": bool, "specificity_score": number}. Raises ValueError
    for rule or filter types the engine does not know.
    """
    rule_type = (rule or {}).get("type")
    evaluator = _RULE_EVALUATORS.get(rule_type)
    if evaluator is None:
        raise ValueError(f"Unknown rule type: {rule_type!r}")
    return evaluator(rule, course)
