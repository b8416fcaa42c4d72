"""
Course filter tests.

Covers:
  1. Evaluation of every filter variant, including exclusions and numeric parsing.
  2. Specificity scores, including composite AND/OR aggregation.
  3. Structural validation.
"""

import pytest

from course_filter import (
    calculate_filter_specificity,
    evaluate_course_filter,
    get_course_attributes,
    matches_number_constraints,
    validate_filter,
)
from engine_utils import make_course


CS_1101 = make_course("CS 1101")
MATH_1101 = make_course("MATH 1101")
CS_3891 = make_course("CS 3891")
LAB = make_course("CHEM 1601L", credits=1)
ETHICS = make_course("PHIL 1003", axle=["HCA", "INT"], core=["CORE-ETH"])
PLAIN = make_course("ES 1401", credits=1)


# ── 1. Evaluation ────────────────────────────────────────────────────────────

class TestSubjectNumber:
    RANGE_1000S = {
        "type": "subject_number",
        "subjects": ["CS"],
        "numbers": [{"type": "range", "min": 1000, "max": 1999}],
    }

    def test_range_matches_cs_1101(self):
        assert evaluate_course_filter(CS_1101, self.RANGE_1000S)

    def test_range_rejects_other_subject(self):
        assert not evaluate_course_filter(MATH_1101, self.RANGE_1000S)

    def test_range_rejects_out_of_range(self):
        assert not evaluate_course_filter(CS_3891, self.RANGE_1000S)

    def test_open_ended_range(self):
        f = {"type": "subject_number", "subjects": ["CS"], "numbers": [{"type": "range", "min": 3000, "max": None}]}
        assert evaluate_course_filter(CS_3891, f)
        assert not evaluate_course_filter(CS_1101, f)

    def test_specific_is_exact_string_match(self):
        f = {"type": "subject_number", "subjects": ["CHEM"], "numbers": [{"type": "specific", "values": ["1601"]}]}
        assert not evaluate_course_filter(LAB, f)
        f["numbers"][0]["values"] = ["1601L"]
        assert evaluate_course_filter(LAB, f)

    def test_range_parses_leading_digits(self):
        f = {"type": "subject_number", "subjects": ["CHEM"], "numbers": [{"type": "range", "min": 1600, "max": 1699}]}
        assert evaluate_course_filter(LAB, f)

    def test_exclude_short_circuits(self):
        f = {"type": "subject_number", "subjects": ["CS"], "exclude": ["CS 1101"]}
        assert not evaluate_course_filter(CS_1101, f)
        assert evaluate_course_filter(CS_3891, f)

    def test_no_numbers_means_any_number(self):
        assert evaluate_course_filter(CS_3891, {"type": "subject_number", "subjects": ["CS"]})

    def test_empty_numbers_list_never_matches(self):
        assert not evaluate_course_filter(CS_1101, {"type": "subject_number", "subjects": ["CS"], "numbers": []})


class TestAttribute:
    def test_matches_any_listed_attribute(self):
        f = {"type": "attribute", "attributes": ["INT", "P"]}
        assert evaluate_course_filter(ETHICS, f)

    def test_attribute_type_scopes_lists(self):
        f = {"type": "attribute", "attributes": ["CORE-ETH"], "attribute_type": "axle"}
        assert not evaluate_course_filter(ETHICS, f)
        f["attribute_type"] = "core"
        assert evaluate_course_filter(ETHICS, f)

    def test_course_without_attributes_never_matches(self):
        assert not evaluate_course_filter(PLAIN, {"type": "attribute", "attributes": ["HCA"]})

    def test_subject_exclusion_checked_first(self):
        f = {"type": "attribute", "attributes": ["HCA"], "exclude": {"subjects": ["PHIL"]}}
        assert not evaluate_course_filter(ETHICS, f)

    def test_get_course_attributes(self):
        assert get_course_attributes(ETHICS) == ["HCA", "INT", "CORE-ETH"]
        assert get_course_attributes(ETHICS, "core") == ["CORE-ETH"]
        assert get_course_attributes({"attributes": None}) == []


class TestCourseListAndSuffix:
    def test_course_list_membership(self):
        f = {"type": "course_list", "courses": ["CS 1101", "CS 2201"]}
        assert evaluate_course_filter(CS_1101, f)
        assert not evaluate_course_filter(MATH_1101, f)

    def test_suffix_match(self):
        assert evaluate_course_filter(LAB, {"type": "course_number_suffix", "suffixes": ["L"]})
        assert not evaluate_course_filter(CS_1101, {"type": "course_number_suffix", "suffixes": ["L"]})

    def test_suffix_subject_scope(self):
        f = {"type": "course_number_suffix", "suffixes": ["L"], "subjects": ["BIO"]}
        assert not evaluate_course_filter(LAB, f)

    def test_suffix_exclusion(self):
        f = {"type": "course_number_suffix", "suffixes": ["L"], "exclude": ["CHEM 1601L"]}
        assert not evaluate_course_filter(LAB, f)

    def test_empty_suffix_subjects_match_nothing(self):
        f = {"type": "course_number_suffix", "suffixes": ["L"], "subjects": []}
        assert not evaluate_course_filter(LAB, f)


class TestNumberAttribute:
    BASE = {
        "type": "number_attribute",
        "numbers": [{"type": "range", "min": 1000, "max": 1999}],
        "attributes": ["HCA"],
    }

    def test_all_parts_pass(self):
        assert evaluate_course_filter(ETHICS, self.BASE)

    def test_number_must_match(self):
        f = {**self.BASE, "numbers": [{"type": "range", "min": 2000, "max": None}]}
        assert not evaluate_course_filter(ETHICS, f)

    def test_subject_scope(self):
        assert not evaluate_course_filter(ETHICS, {**self.BASE, "subjects": ["HIST"]})
        assert not evaluate_course_filter(ETHICS, {**self.BASE, "subjects": []})

    def test_dual_exclusion(self):
        assert not evaluate_course_filter(ETHICS, {**self.BASE, "exclude": {"subjects": ["PHIL"]}})
        assert not evaluate_course_filter(ETHICS, {**self.BASE, "exclude": {"courses": ["PHIL 1003"]}})


class TestComposite:
    CS = {"type": "subject_number", "subjects": ["CS"]}
    LOW = {"type": "subject_number", "subjects": ["CS", "MATH"], "numbers": [{"type": "range", "min": 1000, "max": 1999}]}

    def test_and(self):
        f = {"type": "composite", "operator": "AND", "filters": [self.CS, self.LOW]}
        assert evaluate_course_filter(CS_1101, f)
        assert not evaluate_course_filter(MATH_1101, f)
        assert not evaluate_course_filter(CS_3891, f)

    def test_or(self):
        f = {"type": "composite", "operator": "OR", "filters": [self.CS, self.LOW]}
        assert evaluate_course_filter(MATH_1101, f)
        assert evaluate_course_filter(CS_3891, f)
        assert not evaluate_course_filter(ETHICS, f)


def test_any_matches_everything():
    assert evaluate_course_filter(PLAIN, {"type": "any"})


def test_unknown_filter_type_raises():
    with pytest.raises(ValueError):
        evaluate_course_filter(CS_1101, {"type": "placeholder"})


def test_matches_number_constraints_any_of():
    constraints = [{"type": "specific", "values": ["2201"]}, {"type": "range", "min": 3000, "max": None}]
    assert matches_number_constraints("2201", constraints)
    assert matches_number_constraints("3891", constraints)
    assert not matches_number_constraints("1101", constraints)


# ── 2. Specificity ───────────────────────────────────────────────────────────

class TestSpecificity:
    def test_any(self):
        assert calculate_filter_specificity({"type": "any"}) == 10

    def test_attribute(self):
        assert calculate_filter_specificity({"type": "attribute", "attributes": ["HCA"]}) == 40
        assert calculate_filter_specificity(
            {"type": "attribute", "attributes": ["HCA", "INT", "P"], "exclude": {"subjects": ["ENGL"]}}
        ) == 44

    def test_attribute_exclusion_bonus_needs_only_the_key(self):
        f = {"type": "attribute", "attributes": ["HCA"], "exclude": {"subjects": []}}
        assert calculate_filter_specificity(f) == 50
        assert calculate_filter_specificity({**f, "exclude": {"courses": ["PHIL 1003"]}}) == 40

    def test_attribute_penalty_capped(self):
        f = {"type": "attribute", "attributes": [f"A{i}" for i in range(10)]}
        assert calculate_filter_specificity(f) == 25

    def test_subject_number(self):
        assert calculate_filter_specificity({"type": "subject_number", "subjects": ["CS"]}) == 55
        assert calculate_filter_specificity(TestSubjectNumber.RANGE_1000S) == 70
        assert calculate_filter_specificity(
            {"type": "subject_number", "subjects": ["A", "B", "C"], "numbers": [{"type": "specific", "values": ["1"]}]}
        ) == 75

    def test_subject_number_capped(self):
        f = {
            "type": "subject_number",
            "subjects": ["CS"],
            "numbers": [{"type": "specific", "values": ["2201"]}],
            "exclude": ["CS 1101"],
        }
        assert calculate_filter_specificity(f) == 85

    @pytest.mark.parametrize("size,expected", [(1, 90), (5, 90), (6, 88), (10, 88), (11, 85)])
    def test_course_list(self, size, expected):
        f = {"type": "course_list", "courses": [f"CS {1000 + i}" for i in range(size)]}
        assert calculate_filter_specificity(f) == expected

    def test_course_number_suffix(self):
        assert calculate_filter_specificity({"type": "course_number_suffix", "suffixes": ["L", "W"]}) == 45
        assert calculate_filter_specificity(
            {"type": "course_number_suffix", "suffixes": ["L"], "subjects": ["CHEM"]}
        ) == 55

    def test_number_attribute(self):
        f = {
            "type": "number_attribute",
            "numbers": [{"type": "specific", "values": ["1003"]}],
            "attributes": ["HCA", "INT"],
            "subjects": ["PHIL"],
        }
        assert calculate_filter_specificity(f) == 68

    def test_number_attribute_capped(self):
        f = {
            "type": "number_attribute",
            "numbers": [{"type": "specific", "values": ["1003"]}],
            "attributes": ["HCA"],
            "subjects": ["PHIL"],
        }
        assert calculate_filter_specificity(f) == 70

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            calculate_filter_specificity({"type": "placeholder"})


class TestCompositeSpecificity:
    SUBS = [
        {"type": "any"},                                           # 10
        {"type": "attribute", "attributes": ["HCA"]},              # 40
        {"type": "subject_number", "subjects": ["CS"]},            # 55
        {"type": "course_list", "courses": ["CS 1101"]},           # 90
    ]

    def test_or_is_minimum(self):
        for i in range(2, len(self.SUBS) + 1):
            subs = self.SUBS[:i]
            expected = min(calculate_filter_specificity(s) for s in subs)
            assert calculate_filter_specificity({"type": "composite", "operator": "OR", "filters": subs}) == expected

    def test_and_is_mean_of_top_two(self):
        f = {"type": "composite", "operator": "AND", "filters": self.SUBS}
        assert calculate_filter_specificity(f) == (90 + 55) / 2

    def test_and_top_two_order_independent(self):
        f = {"type": "composite", "operator": "AND", "filters": list(reversed(self.SUBS))}
        assert calculate_filter_specificity(f) == 72.5

    def test_and_single_sub_filter(self):
        f = {"type": "composite", "operator": "AND", "filters": [self.SUBS[1]]}
        assert calculate_filter_specificity(f) == 40

    def test_nested_composite(self):
        inner = {"type": "composite", "operator": "OR", "filters": self.SUBS[2:]}  # 55
        f = {"type": "composite", "operator": "AND", "filters": [inner, self.SUBS[1]]}
        assert calculate_filter_specificity(f) == (55 + 40) / 2


# ── 3. Validation ────────────────────────────────────────────────────────────

class TestValidateFilter:
    def test_valid_filters(self):
        assert validate_filter({"type": "any"}) is None
        assert validate_filter(TestSubjectNumber.RANGE_1000S) is None
        assert validate_filter({"type": "composite", "operator": "OR", "filters": [{"type": "any"}, {"type": "any"}]}) is None

    def test_empty_subjects(self):
        assert validate_filter({"type": "subject_number", "subjects": []}) is not None

    def test_negative_range_min(self):
        f = {"type": "subject_number", "subjects": ["CS"], "numbers": [{"type": "range", "min": -1}]}
        assert "non-negative" in validate_filter(f)

    def test_empty_attribute_list(self):
        assert validate_filter({"type": "attribute", "attributes": []}) is not None

    def test_bad_attribute_type(self):
        assert validate_filter({"type": "attribute", "attributes": ["HCA"], "attribute_type": "gened"}) is not None

    def test_empty_course_list(self):
        assert validate_filter({"type": "course_list", "courses": []}) is not None

    def test_empty_suffixes(self):
        assert validate_filter({"type": "course_number_suffix", "suffixes": []}) is not None

    def test_empty_subject_scope_rejected(self):
        assert "must not be empty" in validate_filter({"type": "course_number_suffix", "suffixes": ["L"], "subjects": []})
        assert "must not be empty" in validate_filter(
            {"type": "number_attribute", "numbers": [{"type": "range", "min": 0}], "attributes": ["HCA"], "subjects": []}
        )

    def test_number_attribute_needs_both_lists(self):
        assert validate_filter({"type": "number_attribute", "numbers": [], "attributes": ["HCA"]}) is not None
        assert validate_filter(
            {"type": "number_attribute", "numbers": [{"type": "range", "min": 0}], "attributes": []}
        ) is not None

    def test_composite_needs_two_filters(self):
        f = {"type": "composite", "operator": "AND", "filters": [{"type": "any"}]}
        assert "at least two" in validate_filter(f)

    def test_composite_recurses(self):
        f = {"type": "composite", "operator": "AND", "filters": [{"type": "any"}, {"type": "course_list", "courses": []}]}
        assert validate_filter(f) == "course_list filter must have at least one course"

    def test_unknown_type_reported(self):
        assert "unknown filter type" in validate_filter({"type": "placeholder"})
