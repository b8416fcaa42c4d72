"""
Pure structural checks for program requirement trees.
No data-loader or store imports.
"""

from typing import Iterable, List, Optional, Set

from course_filter import COMPOSITE_OPERATORS, validate_filter
from normalizer import normalize_code
from requirements import (
    ENFORCEMENT_CONSTRAINT_TYPES,
    VALIDATION_CONSTRAINT_TYPES,
    full_requirement_id,
)
from rule_evaluator import RULE_TYPES

_COUNT_TYPES = {"courses", "credits"}
_RANGE_OPERATORS = {"above", "below", "between"}


def _validate_rule(rule: Optional[dict], where: str) -> List[str]:
    if not isinstance(rule, dict):
        return [f"{where}: rule is missing"]

    rule_type = rule.get("type")
    if rule_type not in RULE_TYPES:
        return [f"{where}: unknown rule type {rule_type!r}"]

    errors: List[str] = []
    if rule_type == "take_courses":
        if not rule.get("courses"):
            errors.append(f"{where}: take_courses rule lists no courses")
    elif rule_type == "take_from_list":
        if not rule.get("courses"):
            errors.append(f"{where}: take_from_list rule lists no courses")
        if rule.get("count_type", "courses") not in _COUNT_TYPES:
            errors.append(f"{where}: count_type must be 'courses' or 'credits'")
        if not rule.get("count") or rule["count"] <= 0:
            errors.append(f"{where}: take_from_list count must be positive")
    elif rule_type == "take_any_courses":
        if not rule.get("filter"):
            errors.append(f"{where}: take_any_courses rule has no filter")
        else:
            problem = validate_filter(rule["filter"])
            if problem:
                errors.append(f"{where}: {problem}")
    else:
        if rule.get("operator") not in COMPOSITE_OPERATORS:
            errors.append(f"{where}: group operator must be AND or OR")
        sub_rules = rule.get("rules") or []
        if not sub_rules:
            errors.append(f"{where}: group rule has no sub-rules")
        for i, sub_rule in enumerate(sub_rules):
            errors.extend(_validate_rule(sub_rule, f"{where}.rules[{i}]"))
    return errors


def _validate_constraint(
    constraint: dict,
    where: str,
    section_ids: Set[str],
    requirement_ids: Set[str],
) -> List[str]:
    kind = constraint.get("type")
    if kind not in ENFORCEMENT_CONSTRAINT_TYPES and kind not in VALIDATION_CONSTRAINT_TYPES:
        return [f"{where}: unknown constraint type {kind!r}"]

    errors: List[str] = []
    if kind == "allow_double_count":
        if not constraint.get("course_id"):
            errors.append(f"{where}: allow_double_count has no course_id")
        ids = constraint.get("requirement_ids") or []
        if len(ids) < 2:
            errors.append(f"{where}: allow_double_count needs at least two requirement_ids")
        unknown = sorted(set(ids) - requirement_ids)
        if unknown:
            errors.append(f"{where}: allow_double_count references unknown requirement(s) {unknown}")
    elif kind == "require_course_from_sections":
        allowed = constraint.get("allowed_section_ids") or []
        if not allowed:
            errors.append(f"{where}: require_course_from_sections lists no sections")
        unknown = sorted(set(allowed) - section_ids)
        if unknown:
            errors.append(f"{where}: require_course_from_sections references unknown section(s) {unknown}")
        if constraint.get("operator", "OR") not in COMPOSITE_OPERATORS:
            errors.append(f"{where}: operator must be AND or OR")
    elif kind in {"min_course_count", "max_course_count"}:
        problem = validate_filter(constraint.get("filter") or {})
        if problem:
            errors.append(f"{where}: {problem}")
    elif kind in {"min_credits_from_courses", "max_credits_from_courses"}:
        if not constraint.get("course_ids"):
            errors.append(f"{where}: {kind} lists no course_ids")
    elif kind == "course_number_range":
        if not constraint.get("subject_code"):
            errors.append(f"{where}: course_number_range has no subject_code")
        if constraint.get("operator", "between") not in _RANGE_OPERATORS:
            errors.append(f"{where}: operator must be one of {sorted(_RANGE_OPERATORS)}")
    return errors


def validate_program_requirements(program_requirements: dict) -> List[str]:
    """
    Return every structural problem in a program's requirement tree.

    Covers duplicate or missing ids, negative credit targets, rules and
    filters that cannot be evaluated, and constraints that point at sections
    or requirements the tree does not define. Empty list means valid.
    """
    if not isinstance(program_requirements, dict) or not isinstance(program_requirements.get("sections"), list):
        return ["requirements must be an object with a 'sections' list"]

    errors: List[str] = []
    sections = program_requirements["sections"]
    section_ids: Set[str] = set()
    requirement_ids: Set[str] = set()

    for s_idx, section in enumerate(sections):
        section_id = section.get("id")
        if not section_id:
            errors.append(f"sections[{s_idx}]: section has no id")
            continue
        if section_id in section_ids:
            errors.append(f"duplicate section id '{section_id}'")
        section_ids.add(section_id)
        if (section.get("credits_required") or 0) < 0:
            errors.append(f"{section_id}: credits_required is negative")

        seen: Set[str] = set()
        for r_idx, requirement in enumerate(section.get("requirements") or []):
            requirement_id = requirement.get("id")
            if not requirement_id:
                errors.append(f"{section_id}.requirements[{r_idx}]: requirement has no id")
                continue
            full_id = full_requirement_id(section_id, requirement_id)
            if requirement_id in seen:
                errors.append(f"duplicate requirement id '{full_id}'")
            seen.add(requirement_id)
            requirement_ids.add(full_id)
            if (requirement.get("credits_required") or 0) < 0:
                errors.append(f"{full_id}: credits_required is negative")
            errors.extend(_validate_rule(requirement.get("rule"), full_id))

    # Constraints are checked after the full id sets exist.
    levels = [("program", program_requirements.get("constraints_structured"))]
    for section in sections:
        if not section.get("id"):
            continue
        levels.append((section["id"], section.get("constraints_structured")))
        for requirement in section.get("requirements") or []:
            if requirement.get("id"):
                levels.append((
                    full_requirement_id(section["id"], requirement["id"]),
                    requirement.get("constraints_structured"),
                ))

    for where, constraints in levels:
        for c_idx, constraint in enumerate(constraints or []):
            errors.extend(_validate_constraint(
                constraint, f"{where}.constraints[{c_idx}]", section_ids, requirement_ids,
            ))
    return errors


def _referenced_courses(rule: Optional[dict]) -> Iterable[str]:
    if not isinstance(rule, dict):
        return
    rule_type = rule.get("type")
    if rule_type in {"take_courses", "take_from_list"}:
        yield from rule.get("courses") or []
    elif rule_type == "take_any_courses":
        course_filter = rule.get("filter") or {}
        if course_filter.get("type") == "course_list":
            yield from course_filter.get("courses") or []
    elif rule_type == "group":
        for sub_rule in rule.get("rules") or []:
            yield from _referenced_courses(sub_rule)


def find_unknown_course_references(program_requirements: dict, known_course_ids: Set[str]) -> List[str]:
    """Course ids named by rules that the catalog does not contain (sorted, deduplicated)."""
    known = {normalize_code(c) or c for c in known_course_ids}
    unknown: Set[str] = set()
    for section in program_requirements.get("sections") or []:
        for requirement in section.get("requirements") or []:
            for course_id in _referenced_courses(requirement.get("rule")):
                if (normalize_code(course_id) or course_id) not in known:
                    unknown.add(course_id)
    return sorted(unknown)
