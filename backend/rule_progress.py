from course_filter import evaluate_course_filter
from normalizer import course_code, course_matches_identifier
from rule_evaluator import take_any_filter

NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"


def progress_status(fulfilled, required) -> str:
    """Shared three-state rule: nothing yet, met, or somewhere in between."""
    if fulfilled == 0:
        return NOT_STARTED
    if fulfilled >= required:
        return COMPLETED
    return IN_PROGRESS


def _course_credits(course: dict):
    credits = course.get("credits")
    if credits is None:
        credits = course.get("credits_min") or 0
    return credits


def _course_summary(course: dict) -> dict:
    return {
        "course_id": course.get("course_id") or course_code(course),
        "title": course.get("title"),
        "credits": _course_credits(course),
    }


def _take_courses_progress(rule: dict, courses: list[dict]) -> dict:
    required = list(rule.get("courses", []))
    taken = [ident for ident in required if any(course_matches_identifier(c, ident) for c in courses)]
    missing = [ident for ident in required if ident not in taken]
    percentage = 100 if not required else len(taken) / len(required) * 100

    if percentage == 100:
        status = COMPLETED
    elif percentage == 0:
        status = NOT_STARTED
    else:
        status = IN_PROGRESS

    return {
        "type": "take_courses",
        "status": status,
        "percentage": percentage,
        "details": {
            "required_courses": required,
            "taken_courses": taken,
            "missing_courses": missing,
            "courses_required": len(required),
            "courses_taken": len(taken),
        },
    }


def _take_from_list_progress(rule: dict, courses: list[dict]) -> dict:
    available = list(rule.get("courses", []))
    matching = [c for c in courses if any(course_matches_identifier(c, ident) for ident in available)]
    count_type = rule.get("count_type", "courses")
    required = rule.get("count", 0)

    if count_type == "credits":
        fulfilled = sum(_course_credits(c) for c in matching)
    else:
        fulfilled = len(matching)

    return {
        "type": "take_from_list",
        "status": progress_status(fulfilled, required),
        "percentage": 100 if not required else min(100, fulfilled / required * 100),
        "details": {
            "count_type": count_type,
            "required": required,
            "fulfilled": fulfilled,
            "available_courses": available,
            "taken_courses": [_course_summary(c)["course_id"] for c in matching],
        },
    }


def _take_any_courses_progress(rule: dict, courses: list[dict], catalog_courses) -> dict:
    course_filter = take_any_filter(rule)
    matching = [c for c in courses if evaluate_course_filter(c, course_filter)]
    fulfilled = sum(_course_credits(c) for c in matching)
    required = rule.get("credits", 0)

    details = {
        "credits_required": required,
        "credits_fulfilled": fulfilled,
        "matching_courses": [_course_summary(c) for c in matching],
        "filter": course_filter,
    }
    if catalog_courses is not None:
        details["available_course_count"] = len(catalog_courses)

    return {
        "type": "take_any_courses",
        "status": progress_status(fulfilled, required),
        "percentage": 100 if not required else min(100, fulfilled / required * 100),
        "details": details,
    }


def _group_progress(rule: dict, courses: list[dict]) -> dict:
    sub_progress = [evaluate_rule_progress(r, courses) for r in rule.get("rules", [])]
    operator = rule.get("operator", "AND")
    any_started = any(p["status"] != NOT_STARTED for p in sub_progress)
    active_option_index = None

    if operator == "AND":
        done = all(p["status"] == COMPLETED for p in sub_progress)
        percentage = 100 if not sub_progress else sum(p["percentage"] for p in sub_progress) / len(sub_progress)
    else:
        done = any(p["status"] == COMPLETED for p in sub_progress)
        percentage = max((p["percentage"] for p in sub_progress), default=0)
        if sub_progress:
            active_option_index = next(i for i, p in enumerate(sub_progress) if p["percentage"] == percentage)

    if done:
        status = COMPLETED
    elif any_started:
        status = IN_PROGRESS
    else:
        status = NOT_STARTED

    return {
        "type": "group",
        "status": status,
        "percentage": percentage,
        "details": {
            "operator": operator,
            "sub_rule_progress": sub_progress,
            "active_option_index": active_option_index,
        },
    }


def evaluate_rule_progress(rule: dict, courses: list[dict], catalog_courses: list[dict] | None = None) -> dict:
    """
    Rule-level progress from the courses already fulfilling a requirement.

    courses carry a "credits" key with the credits the plan applies.
    catalog_courses is the full catalog-matching set for take_any_courses
    rules; it only feeds the details and never changes the status.
    Raises ValueError for unknown rule types.
    """
    rule_type = (rule or {}).get("type")
    if rule_type == "take_courses":
        return _take_courses_progress(rule, courses)
    if rule_type == "take_from_list":
        return _take_from_list_progress(rule, courses)
    if rule_type == "take_any_courses":
        return _take_any_courses_progress(rule, courses, catalog_courses)
    if rule_type == "group":
        return _group_progress(rule, courses)
    raise ValueError(f"Unknown rule type: {rule_type!r}")
