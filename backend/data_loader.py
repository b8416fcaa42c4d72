import json
import os

import pandas as pd

from catalog import COURSE_COLUMNS, CourseCatalog, frame_records
from errors import ValidationError
from plan_store import PlanStore
from validators import find_unknown_course_references, validate_program_requirements


_BOOL_TRUTHY = {"true", "1", "yes", "y"}
_STR_COLUMNS = {"course_id": str, "class_id": str, "subject_code": str, "course_number": str}


def _safe_bool_col(df: pd.DataFrame, col: str, default: bool = False) -> pd.DataFrame:
    """Normalize a boolean column to Python bool regardless of CSV/Excel format.

    Handles: Python bool, Excel int/float (1/0), and string variants
    (TRUE/FALSE, true/false, 1/0, yes/no, y/n). NaN → default.
    """
    def _coerce(x):
        if pd.isna(x):
            return default
        if isinstance(x, bool):
            return x
        if isinstance(x, (int, float)):
            return bool(x)
        return str(x).strip().lower() in _BOOL_TRUTHY

    if col in df.columns:
        df[col] = df[col].apply(_coerce)
    else:
        df[col] = default
    return df


def _split_list(raw) -> list[str]:
    """'A; B;;C' -> ['A', 'B', 'C']. Blank or NaN -> []."""
    if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
        return []
    return [part.strip() for part in str(raw).split(";") if part.strip()]


def _normalize_courses_df(df: pd.DataFrame) -> pd.DataFrame:
    """Clean a raw courses/classes frame into catalog columns."""
    df = df.copy()

    for col in ("subject_code", "course_number"):
        if col not in df.columns:
            raise ValueError(f"courses data is missing required column '{col}'")
    df["subject_code"] = df["subject_code"].astype(str).str.strip().str.upper()
    df["course_number"] = df["course_number"].astype(str).str.strip().str.upper()

    if "course_id" not in df.columns:
        df["course_id"] = df["subject_code"] + " " + df["course_number"]
    else:
        df["course_id"] = df["course_id"].fillna("").astype(str).str.strip()
        missing = df["course_id"] == ""
        df.loc[missing, "course_id"] = df.loc[missing, "subject_code"] + " " + df.loc[missing, "course_number"]

    if "id" not in df.columns:
        df["id"] = range(1, len(df) + 1)
    if "academic_year_id" not in df.columns:
        df["academic_year_id"] = 1
    if "title" not in df.columns:
        df["title"] = ""
    df["title"] = df["title"].fillna("").astype(str).str.strip()

    if "credits_min" not in df.columns:
        df["credits_min"] = None
    df["credits_min"] = pd.to_numeric(df["credits_min"], errors="coerce")
    if "credits_max" in df.columns:
        df["credits_max"] = pd.to_numeric(df["credits_max"], errors="coerce").fillna(df["credits_min"])
    else:
        df["credits_max"] = df["credits_min"]

    axle = df["attributes_axle"] if "attributes_axle" in df.columns else pd.Series([None] * len(df), index=df.index)
    core = df["attributes_core"] if "attributes_core" in df.columns else pd.Series([None] * len(df), index=df.index)
    df["attributes"] = [
        {"axle": _split_list(a), "core": _split_list(c)} for a, c in zip(axle, core)
    ]

    df = _safe_bool_col(df, "is_catalog_course", default=True)
    return df


def _read_course_frames(data_path: str) -> tuple[pd.DataFrame, pd.DataFrame | None]:
    """Courses and optional classes, from a workbook or CSV files."""
    if os.path.isfile(data_path):
        workbook = data_path
    else:
        workbook = os.path.join(data_path, "courses.xlsx")

    if os.path.isfile(workbook):
        xl = pd.ExcelFile(workbook)
        courses_df = xl.parse("courses", dtype=_STR_COLUMNS)
        classes_df = xl.parse("classes", dtype=_STR_COLUMNS) if "classes" in xl.sheet_names else None
        print(f"[INFO] Course source: {os.path.basename(workbook)}")
        return courses_df, classes_df

    courses_csv = os.path.join(data_path, "courses.csv")
    courses_df = pd.read_csv(courses_csv, dtype=_STR_COLUMNS)
    classes_csv = os.path.join(data_path, "classes.csv")
    classes_df = pd.read_csv(classes_csv, dtype=_STR_COLUMNS) if os.path.isfile(classes_csv) else None
    print("[INFO] Course source: courses.csv")
    return courses_df, classes_df


def _read_json(path: str, default):
    if not os.path.isfile(path):
        return default
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_data(data_path: str) -> PlanStore:
    """Load catalog, programs and plans into a PlanStore. Raises on file/schema errors."""
    data_dir = os.path.dirname(data_path) if os.path.isfile(data_path) else data_path

    courses_df, classes_df = _read_course_frames(data_path)
    courses_df = _normalize_courses_df(courses_df)
    store = PlanStore(CourseCatalog(courses_df[COURSE_COLUMNS]))

    if classes_df is not None and len(classes_df) > 0:
        classes_df = _normalize_courses_df(classes_df)
        if "class_id" not in classes_df.columns:
            raise ValueError("classes data is missing required column 'class_id'")
        classes_df["class_id"] = classes_df["class_id"].astype(str).str.strip()
        for record in frame_records(classes_df[COURSE_COLUMNS + ["class_id"]]):
            store.add_class(record)

    programs = _read_json(os.path.join(data_dir, "programs.json"), [])
    for program in programs:
        store.add_program(program)

    plans_data = _read_json(os.path.join(data_dir, "plans.json"), {})
    for academic_year in plans_data.get("academic_years", []):
        store.add_academic_year(academic_year)
    for plan in plans_data.get("plans", []):
        store.add_plan(plan)

    # ── Startup data integrity checks ──────────────────────────────────────
    catalog_ids = set(courses_df["course_id"].tolist())

    orphan_plans = []
    orphan_courses = []
    for planned_course in plans_data.get("planned_courses", []):
        if planned_course.get("plan_id") not in store.plans:
            orphan_plans.append(planned_course.get("id"))
            continue
        course_id = planned_course.get("course_id")
        if course_id and course_id not in catalog_ids:
            orphan_courses.append(course_id)
        store.add_planned_course(planned_course)
    if orphan_plans:
        print(f"[WARN] {len(orphan_plans)} planned course(s) reference unknown plans and were skipped: {orphan_plans}")
    if orphan_courses:
        print(f"[WARN] {len(orphan_courses)} planned course(s) not found in course catalog: {sorted(set(orphan_courses))}")

    for plan_program in plans_data.get("plan_programs", []):
        if plan_program.get("plan_id") not in store.plans or plan_program.get("program_id") not in store.programs:
            print(
                f"[WARN] Plan program {plan_program.get('id')} links unknown plan or program "
                f"({plan_program.get('plan_id')}, {plan_program.get('program_id')}); skipped"
            )
            continue
        try:
            store.link_program(plan_program["plan_id"], plan_program["program_id"], plan_program.get("id"))
        except ValidationError as exc:
            print(f"[WARN] Plan program {plan_program.get('id')}: {exc.message}; skipped")

    fulfillments = [
        f for f in plans_data.get("fulfillments", []) if f.get("plan_program_id") in store.plan_programs
    ]
    store.bulk_insert_fulfillments(fulfillments)

    for program in programs:
        requirements = program.get("requirements") or {}
        problems = validate_program_requirements(requirements)
        if problems:
            print(f"[WARN] Program {program.get('id')} has {len(problems)} requirement problem(s): {problems}")
        unknown = find_unknown_course_references(requirements, catalog_ids) if not problems else []
        if unknown:
            print(f"[WARN] Program {program.get('id')} names course(s) not in catalog: {unknown}")

    print(
        f"[INFO] Loaded {len(courses_df)} course(s), {len(store.programs)} program(s), "
        f"{len(store.plans)} plan(s)"
    )
    return store
