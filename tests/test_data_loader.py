"""
Data loader tests.

Covers:
  1. Course frame normalization (codes, credits, attributes, booleans).
  2. CSV and workbook sources.
  3. Plans/programs wiring and startup integrity warnings.
"""

import json

import pandas as pd
import pytest

from data_loader import _normalize_courses_df, _safe_bool_col, _split_list, load_data


COURSES = pd.DataFrame([
    {"id": 1, "academic_year_id": 1, "subject_code": "cs", "course_number": "1101", "title": " Intro ",
     "credits_min": "3", "credits_max": None, "attributes_axle": "", "attributes_core": "", "is_catalog_course": "true"},
    {"id": 2, "academic_year_id": 1, "subject_code": "MATH", "course_number": "2410", "title": "Stats",
     "credits_min": 3, "credits_max": 4, "attributes_axle": "MNS; QR", "attributes_core": "", "is_catalog_course": "1"},
    {"id": 3, "academic_year_id": 1, "subject_code": "CS", "course_number": "3891", "title": "Topics",
     "credits_min": 1, "credits_max": 3, "attributes_axle": "", "attributes_core": "", "is_catalog_course": "no"},
])

PROGRAM = {
    "id": 1,
    "program_id": "CS-BS",
    "name": "CS Major",
    "type": "major",
    "total_credits": 6,
    "requirements": {"sections": [{
        "id": "core",
        "credits_required": 6,
        "requirements": [
            {"id": "intro", "credits_required": 3, "rule": {"type": "take_courses", "courses": ["CS 1101"]}},
            {"id": "free", "credits_required": 3, "rule": {"type": "take_any_courses", "filter": {"type": "any"}}},
        ],
    }]},
}

PLANS = {
    "academic_years": [{"id": 1, "start": 2025}],
    "plans": [{"id": 1, "name": "Plan", "academic_year_id": 1}],
    "planned_courses": [
        {"id": 1, "plan_id": 1, "semester_number": 1, "position": 0, "course_id": "CS 1101", "credits": 3},
        {"id": 2, "plan_id": 1, "semester_number": 1, "position": 1, "course_id": "MATH 2410", "credits": 3},
    ],
    "plan_programs": [{"id": 1, "plan_id": 1, "program_id": 1}],
    "fulfillments": [
        {"id": 1, "plan_program_id": 1, "requirement_id": "core.intro", "planned_course_id": 1, "credits_applied": 3},
    ],
}


def _write_dataset(path, courses=COURSES, programs=None, plans=None):
    courses.to_csv(path / "courses.csv", index=False)
    (path / "programs.json").write_text(json.dumps(programs if programs is not None else [PROGRAM]), encoding="utf-8")
    (path / "plans.json").write_text(json.dumps(plans if plans is not None else PLANS), encoding="utf-8")
    return str(path)


# ── 1. Normalization ─────────────────────────────────────────────────────────

class TestNormalization:
    def test_split_list(self):
        assert _split_list("A; B;;C ") == ["A", "B", "C"]
        assert _split_list(float("nan")) == []
        assert _split_list(None) == []

    def test_safe_bool_col(self):
        df = pd.DataFrame({"flag": [True, 0, 1.0, "YES", "n", None]})
        assert _safe_bool_col(df, "flag")["flag"].tolist() == [True, False, True, True, False, False]

    def test_safe_bool_col_missing_column(self):
        df = _safe_bool_col(pd.DataFrame({"x": [1, 2]}), "flag", default=True)
        assert df["flag"].tolist() == [True, True]

    def test_course_rows(self):
        df = _normalize_courses_df(COURSES)
        intro = df.iloc[0]
        assert intro["course_id"] == "CS 1101"
        assert intro["subject_code"] == "CS"
        assert intro["title"] == "Intro"
        assert intro["credits_min"] == 3
        assert intro["credits_max"] == 3
        assert df.iloc[1]["attributes"] == {"axle": ["MNS", "QR"], "core": []}
        assert df["is_catalog_course"].tolist() == [True, True, False]

    def test_missing_required_column(self):
        with pytest.raises(ValueError, match="course_number"):
            _normalize_courses_df(pd.DataFrame({"subject_code": ["CS"]}))

    def test_defaults_for_optional_columns(self):
        df = _normalize_courses_df(pd.DataFrame({"subject_code": ["CS", "CS"], "course_number": ["1101", "2201"]}))
        assert df["id"].tolist() == [1, 2]
        assert df["academic_year_id"].tolist() == [1, 1]
        assert df["is_catalog_course"].tolist() == [True, True]


# ── 2. Sources ───────────────────────────────────────────────────────────────

class TestSources:
    def test_csv_directory(self, tmp_path):
        store = load_data(_write_dataset(tmp_path))
        assert len(store.catalog.get_all_courses()) == 3
        # Non-catalog rows stay out of filter queries.
        ids = [c["course_id"] for c in store.catalog.get_courses_by_filter({"type": "any"}, 1)]
        assert ids == ["CS 1101", "MATH 2410"]

    def test_workbook(self, tmp_path):
        _write_dataset(tmp_path)
        with pd.ExcelWriter(tmp_path / "courses.xlsx", engine="openpyxl") as writer:
            COURSES.to_excel(writer, sheet_name="courses", index=False)
            pd.DataFrame([{
                "class_id": "CS1101-01", "subject_code": "CS", "course_number": "1101", "credits_min": 3,
            }]).to_excel(writer, sheet_name="classes", index=False)
        store = load_data(str(tmp_path / "courses.xlsx"))
        assert store.catalog.find_course("MATH 2410", 1)["attributes"]["axle"] == ["MNS", "QR"]
        assert store.classes["CS1101-01"]["course_id"] == "CS 1101"

    def test_classes_require_class_id(self, tmp_path):
        _write_dataset(tmp_path)
        pd.DataFrame([{"subject_code": "CS", "course_number": "1101"}]).to_csv(tmp_path / "classes.csv", index=False)
        with pytest.raises(ValueError, match="class_id"):
            load_data(str(tmp_path))

    def test_missing_courses_file(self, tmp_path):
        with pytest.raises(OSError):
            load_data(str(tmp_path))


# ── 3. Wiring and integrity warnings ─────────────────────────────────────────

class TestWiring:
    def test_plans_programs_and_fulfillments(self, tmp_path):
        store = load_data(_write_dataset(tmp_path))
        assert [pc["course"]["course_id"] for pc in store.get_planned_courses(1)] == ["CS 1101", "MATH 2410"]
        (pp,) = store.get_plan_programs(1)
        assert pp["program"]["name"] == "CS Major"
        assert [f["requirement_id"] for f in store.get_fulfillments(1)] == ["core.intro"]

    def test_orphans_warned_and_skipped(self, tmp_path, capsys):
        plans = {
            **PLANS,
            "planned_courses": PLANS["planned_courses"] + [
                {"id": 3, "plan_id": 9, "semester_number": 1, "position": 0, "course_id": "CS 1101"},
                {"id": 4, "plan_id": 1, "semester_number": 2, "position": 0, "course_id": "HIST 1000"},
            ],
            "plan_programs": PLANS["plan_programs"] + [
                {"id": 2, "plan_id": 1, "program_id": 7},
                {"id": 3, "plan_id": 1, "program_id": 1},
            ],
            "fulfillments": PLANS["fulfillments"] + [
                {"id": 2, "plan_program_id": 2, "requirement_id": "core.free", "planned_course_id": 2, "credits_applied": 3},
            ],
        }
        store = load_data(_write_dataset(tmp_path, plans=plans))
        out = capsys.readouterr().out

        assert "reference unknown plans" in out
        assert "HIST 1000" in out
        assert "links unknown plan or program" in out
        assert "already linked" in out
        assert len(store.get_planned_courses(1)) == 3
        assert list(store.plan_programs) == [1]
        assert len(store.fulfillments) == 1

    def test_program_problems_warned(self, tmp_path, capsys):
        bad = {**PROGRAM, "id": 2, "requirements": {"sections": [{
            "id": "core",
            "requirements": [{"id": "x", "rule": {"type": "take_courses", "courses": ["CS 9999"]}}],
        }]}}
        broken = {**PROGRAM, "id": 3, "requirements": {"sections": [{
            "id": "core",
            "requirements": [{"id": "x", "rule": {"type": "nope"}}],
        }]}}
        load_data(_write_dataset(tmp_path, programs=[PROGRAM, bad, broken]))
        out = capsys.readouterr().out
        assert "Program 2 names course(s) not in catalog: ['CS 9999']" in out
        assert "Program 3 has 1 requirement problem(s)" in out
        assert "[INFO] Loaded 3 course(s), 3 program(s), 1 plan(s)" in out
