import threading

import pandas as pd

from course_filter import evaluate_course_filter
from errors import CatalogUnavailableError

COURSE_COLUMNS = [
    "id",
    "course_id",
    "academic_year_id",
    "subject_code",
    "course_number",
    "title",
    "credits_min",
    "credits_max",
    "attributes",
    "is_catalog_course",
]

_ORDER_COLUMNS = ["subject_code", "course_number"]


def frame_records(df: pd.DataFrame) -> list[dict]:
    # Object dtype so None survives instead of being re-coerced to NaN.
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


class CourseCatalog:
    """
    Course catalog scoped by academic year, queried with course filters.

    Simple, index-friendly filter shapes become pandas masks over the catalog
    frame; everything else is evaluated row by row with the filter evaluator.
    """

    def __init__(self, courses_df: pd.DataFrame | None = None, loader=None):
        self._courses_df = courses_df
        self._loader = loader
        self._lock = threading.Lock()

    def _frame(self) -> pd.DataFrame:
        if self._courses_df is not None:
            return self._courses_df
        if self._loader is None:
            raise CatalogUnavailableError("Course catalog is not loaded.")
        with self._lock:
            if self._courses_df is None:
                try:
                    self._courses_df = self._loader()
                except (OSError, ValueError) as exc:
                    raise CatalogUnavailableError(f"Course catalog could not be loaded: {exc}") from exc
        return self._courses_df

    def _year_mask(self, df: pd.DataFrame, academic_year_id) -> pd.Series:
        mask = df["academic_year_id"] == academic_year_id
        if "is_catalog_course" in df.columns:
            mask &= df["is_catalog_course"].eq(True)
        return mask

    def _query(self, df: pd.DataFrame, mask: pd.Series) -> list[dict]:
        rows = df[mask].sort_values(_ORDER_COLUMNS, kind="stable")
        return frame_records(rows)

    def get_courses_by_filter(self, course_filter: dict, academic_year_id) -> list[dict]:
        """All catalog courses of the academic year that match the filter."""
        df = self._frame()
        if len(df) == 0:
            return []
        year_mask = self._year_mask(df, academic_year_id)
        filter_type = course_filter.get("type")

        if filter_type == "any":
            return self._query(df, year_mask)

        if filter_type == "course_list":
            return self._query(df, year_mask & df["course_id"].isin(course_filter.get("courses", [])))

        if (
            filter_type == "subject_number"
            and course_filter.get("numbers") is None
            and not course_filter.get("exclude")
        ):
            return self._query(df, year_mask & df["subject_code"].isin(course_filter.get("subjects", [])))

        if filter_type == "course_number_suffix" and not course_filter.get("exclude"):
            numbers = df["course_number"].astype(str)
            suffix_mask = pd.Series(False, index=df.index)
            for suffix in course_filter.get("suffixes", []):
                suffix_mask |= numbers.str.endswith(suffix)
            mask = year_mask & suffix_mask
            subjects = course_filter.get("subjects")
            if subjects is not None:
                mask &= df["subject_code"].isin(subjects)
            return self._query(df, mask)

        # Too expressive for a mask: evaluate every course of the year in memory.
        candidates = self._query(df, year_mask)
        return [course for course in candidates if evaluate_course_filter(course, course_filter)]

    def get_all_courses(self) -> list[dict]:
        """Every catalog row across academic years."""
        return frame_records(self._frame())

    def find_course(self, course_id: str, academic_year_id) -> dict | None:
        df = self._frame()
        if len(df) == 0:
            return None
        rows = df[(df["academic_year_id"] == academic_year_id) & (df["course_id"] == course_id)]
        if len(rows) == 0:
            return None
        return frame_records(rows.iloc[[0]])[0]
