"""
In-memory stand-in for the relational store behind plans and fulfillments.

Tables are plain dicts/lists of dicts; catalog courses are served by a
CourseCatalog. The engine only relies on the read/write methods below, so a
database-backed store can replace this one without touching the algorithm.
"""

import sys
import threading
from contextlib import contextmanager

from catalog import CourseCatalog
from errors import NotFoundError, ValidationError


class PlanStore:
    def __init__(self, catalog: CourseCatalog | None = None):
        self.catalog = catalog if catalog is not None else CourseCatalog()
        self.academic_years: dict = {}
        self.plans: dict = {}
        self.programs: dict = {}
        self.plan_programs: dict = {}
        self.classes: dict = {}
        self.planned_courses: list[dict] = []
        self.fulfillments: list[dict] = []
        self._next_fulfillment_id = 1
        self._next_planned_course_id = 1
        self._next_plan_program_id = 1
        self._locks_guard = threading.Lock()
        # Every read and rebind of the shared fulfillment table goes through this.
        self._table_lock = threading.Lock()
        self._plan_locks: dict = {}

    # ── Loading ───────────────────────────────────────────────────────────────

    def add_academic_year(self, academic_year: dict) -> None:
        self.academic_years[academic_year["id"]] = dict(academic_year)

    def add_plan(self, plan: dict) -> None:
        self.plans[plan["id"]] = dict(plan)

    def add_program(self, program: dict) -> None:
        self.programs[program["id"]] = dict(program)

    def add_class(self, class_record: dict) -> None:
        self.classes[class_record["class_id"]] = dict(class_record)

    # ── Reads ─────────────────────────────────────────────────────────────────

    def list_plans(self) -> list[dict]:
        return [self.plans[k] for k in sorted(self.plans)]

    def get_plan(self, plan_id) -> dict:
        plan = self.plans.get(plan_id)
        if plan is None:
            raise NotFoundError("Plan not found", {"plan_id": plan_id})
        return plan

    def get_academic_year(self, academic_year_id) -> dict | None:
        return self.academic_years.get(academic_year_id)

    def get_program(self, program_id) -> dict:
        program = self.programs.get(program_id)
        if program is None:
            raise NotFoundError("Program not found", {"program_id": program_id})
        return program

    def _join_program(self, plan_program: dict) -> dict:
        return {**plan_program, "program": self.get_program(plan_program["program_id"])}

    def get_plan_program(self, plan_program_id) -> dict:
        plan_program = self.plan_programs.get(plan_program_id)
        if plan_program is None:
            raise NotFoundError("Program association not found", {"plan_program_id": plan_program_id})
        return self._join_program(plan_program)

    def get_plan_programs(self, plan_id) -> list[dict]:
        rows = [pp for pp in self.plan_programs.values() if pp["plan_id"] == plan_id]
        rows.sort(key=lambda pp: pp["id"])
        return [self._join_program(pp) for pp in rows]

    def _resolve_course(self, planned_course: dict, academic_year_id) -> dict | None:
        if isinstance(planned_course.get("course"), dict):
            return planned_course["course"]
        course_id = planned_course.get("course_id")
        if not course_id:
            return None
        course = self.catalog.find_course(course_id, academic_year_id)
        if course is None:
            print(
                f"[WARN] Planned course {planned_course.get('id')} references unknown course {course_id}",
                file=sys.stderr,
            )
        return course

    def get_planned_courses(self, plan_id) -> list[dict]:
        """Planned courses of a plan, in plan order, with course/class records resolved."""
        plan = self.get_plan(plan_id)
        rows = [pc for pc in self.planned_courses if pc["plan_id"] == plan_id]
        rows.sort(key=lambda pc: (pc.get("semester_number", 0), pc.get("position", 0)))
        resolved = []
        for pc in rows:
            class_record = pc.get("class")
            if not isinstance(class_record, dict):
                class_record = self.classes.get(pc.get("class_id")) if pc.get("class_id") else None
            resolved.append({
                **pc,
                "course": self._resolve_course(pc, plan.get("academic_year_id")),
                "class": class_record,
            })
        return resolved

    def get_planned_course(self, planned_course_id) -> dict | None:
        for pc in self.planned_courses:
            if pc["id"] == planned_course_id:
                return pc
        return None

    def get_fulfillments(self, plan_program_id) -> list[dict]:
        with self._table_lock:
            return [dict(f) for f in self.fulfillments if f["plan_program_id"] == plan_program_id]

    # ── Writes ────────────────────────────────────────────────────────────────

    def delete_fulfillments(self, plan_program_ids) -> int:
        ids = set(plan_program_ids)
        with self._table_lock:
            before = len(self.fulfillments)
            self.fulfillments = [f for f in self.fulfillments if f["plan_program_id"] not in ids]
            return before - len(self.fulfillments)

    def bulk_insert_fulfillments(self, records: list[dict]) -> None:
        with self._table_lock:
            for record in records:
                self.fulfillments.append({
                    "id": self._next_fulfillment_id,
                    "plan_program_id": record["plan_program_id"],
                    "requirement_id": record["requirement_id"],
                    "planned_course_id": record["planned_course_id"],
                    "credits_applied": record["credits_applied"],
                })
                self._next_fulfillment_id += 1

    def add_planned_course(self, planned_course: dict) -> dict:
        self.get_plan(planned_course["plan_id"])
        row = dict(planned_course)
        if row.get("id") is None:
            row["id"] = self._next_planned_course_id
        self._next_planned_course_id = max(self._next_planned_course_id, row["id"]) + 1
        self.planned_courses.append(row)
        return row

    def remove_planned_course(self, planned_course_id) -> None:
        if self.get_planned_course(planned_course_id) is None:
            raise NotFoundError("Planned course not found", {"planned_course_id": planned_course_id})
        self.planned_courses = [pc for pc in self.planned_courses if pc["id"] != planned_course_id]
        with self._table_lock:
            self.fulfillments = [f for f in self.fulfillments if f["planned_course_id"] != planned_course_id]

    def link_program(self, plan_id, program_id, plan_program_id=None) -> dict:
        self.get_plan(plan_id)
        self.get_program(program_id)
        if any(pp["plan_id"] == plan_id and pp["program_id"] == program_id for pp in self.plan_programs.values()):
            raise ValidationError("Program is already linked to this plan", {"plan_id": plan_id, "program_id": program_id})
        if plan_program_id is None:
            plan_program_id = self._next_plan_program_id
        self._next_plan_program_id = max(self._next_plan_program_id, plan_program_id) + 1
        row = {"id": plan_program_id, "plan_id": plan_id, "program_id": program_id}
        self.plan_programs[plan_program_id] = row
        return row

    def unlink_program(self, plan_program_id) -> None:
        if plan_program_id not in self.plan_programs:
            raise NotFoundError("Program association not found", {"plan_program_id": plan_program_id})
        del self.plan_programs[plan_program_id]
        self.delete_fulfillments([plan_program_id])

    # ── Transactions ──────────────────────────────────────────────────────────

    def _plan_lock(self, plan_id) -> threading.Lock:
        with self._locks_guard:
            if plan_id not in self._plan_locks:
                self._plan_locks[plan_id] = threading.Lock()
            return self._plan_locks[plan_id]

    def _plan_program_ids(self, plan_id) -> set:
        return {pp["id"] for pp in self.plan_programs.values() if pp["plan_id"] == plan_id}

    @contextmanager
    def transaction(self, plan_id):
        """
        Serialize fulfillment rewrites per plan; all-or-nothing on error.

        Runs for other plans proceed concurrently. On any exception only this
        plan's fulfillment rows are put back as they were at entry; rows of
        other plans, including ones committed meanwhile, are left alone.
        """
        lock = self._plan_lock(plan_id)
        with lock:
            owned = self._plan_program_ids(plan_id)
            with self._table_lock:
                snapshot = [dict(f) for f in self.fulfillments if f["plan_program_id"] in owned]
            try:
                yield self
            except Exception:
                owned |= self._plan_program_ids(plan_id)
                with self._table_lock:
                    kept = [f for f in self.fulfillments if f["plan_program_id"] not in owned]
                    self.fulfillments = sorted(kept + snapshot, key=lambda f: f["id"])
                raise
