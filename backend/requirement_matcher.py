import sys

from rule_evaluator import evaluate_rule


def find_matching_requirements(course: dict, program_requirements: dict) -> list[dict]:
    """
    Every (section, requirement) of a program this course could satisfy.

    Traversal follows program order; the result is stable-sorted by
    specificity score, highest first, so equal scores keep program order.
    """
    matches: list[dict] = []
    for section in program_requirements.get("sections", []):
        for requirement in section.get("requirements", []):
            try:
                evaluation = evaluate_rule(requirement.get("rule"), course)
            except ValueError as exc:
                print(
                    f"[WARN] Skipping requirement {section.get('id')}.{requirement.get('id')}: {exc}",
                    file=sys.stderr,
                )
                continue
            if evaluation["matches"]:
                matches.append({
                    "section_id": section["id"],
                    "requirement_id": requirement["id"],
                    "specificity_score": evaluation["specificity_score"],
                })

    matches.sort(key=lambda m: m["specificity_score"], reverse=True)
    return matches
