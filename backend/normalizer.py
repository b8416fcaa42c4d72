import re

# Matches: DEPT NNNN, DEPT-NNNN, DEPTNNN, CS 1101L, MATH 2410, etc.
CANONICAL = re.compile(r'^([A-Za-z]{2,6})\s*[-]?\s*(\d{3,4}[A-Za-z]{0,2})$')

# Leading integer of a course number ("1101L" -> "1101").
LEADING_INT = re.compile(r'^\s*([+-]?\d+)')


def normalize_code(raw: str) -> str | None:
    """
    Normalizes a course code to canonical 'DEPT NNNN' format.
    Handles: 'cs1101', 'CS-1101', 'CS 1101', 'math 2410l'
    Returns None if the string cannot be parsed as a course code.
    """
    if not raw or not str(raw).strip():
        return None
    m = CANONICAL.match(str(raw).strip())
    if m:
        dept = m.group(1).upper()
        num = m.group(2).upper()
        return f"{dept} {num}"
    return None


def parse_course_number(raw) -> int | None:
    """
    Integer value of a course number, read from its leading digits.

    '1101' -> 1101, '1101L' -> 1101, 'XL' -> None.
    """
    if raw is None:
        return None
    m = LEADING_INT.match(str(raw))
    if not m:
        return None
    return int(m.group(1))


def course_code(course: dict) -> str:
    """'SUBJ NUM' display code for a course or class record."""
    return f"{course.get('subject_code', '')} {course.get('course_number', '')}"


def course_identifiers(course: dict) -> list[str]:
    """All identifiers a course can be referenced by, most specific first."""
    ids = []
    for key in ("course_id", "class_id"):
        val = course.get(key)
        if val:
            ids.append(str(val))
    code = course_code(course)
    if code.strip() and code not in ids:
        ids.append(code)
    return ids


def course_matches_identifier(course: dict, identifier: str) -> bool:
    """True when identifier names this course by id, class id, or 'SUBJ NUM' code."""
    if not identifier:
        return False
    ident = str(identifier).strip()
    if ident in course_identifiers(course):
        return True
    normalized = normalize_code(ident)
    return normalized is not None and normalized == normalize_code(course_code(course))
