from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from academy.core.errors import AccessDeniedError, DomainError
from academy.models.assignments import Assignment
from academy.models.courses import Course
from academy.models.lessons import Lesson
from academy.models.modules import Module
from academy.models.submissions import Submission
from academy.repositories.CohortsRepository import NOT_ENROLLED, CohortsRepository
from academy.repositories.LessonAccessRepository import LessonAccessRepository
from academy.repositories.ProgressRepository import ProgressRepository
from academy.services.linear_access import (
    build_learning_path,
    is_assignment_unlocked,
    is_lesson_unlocked,
    is_module_unlocked,
)


class LearningPathRepository:
    """Server-side enforcement of the cohort window and linear access for trainees."""

    def __init__(self, db: Session):
        self.db = db
        self.progress = ProgressRepository(db)
        self.access = LessonAccessRepository(db)
        self.cohorts = CohortsRepository(db)

    def program_id_for_module(self, module: Module) -> int:
        course = self.db.get(Course, module.course_id)
        if course is None or course.program_id is None:
            raise DomainError("Content is not part of a program")
        return course.program_id

    def ensure_content_access(
        self, trainee_id: int, program_id: int, now: Optional[datetime] = None
    ) -> None:
        enrollment = self.cohorts.enrollment_for_program(trainee_id, program_id)
        if enrollment is None:
            raise AccessDeniedError(NOT_ENROLLED)
        allowed, reason = self.cohorts.can_access_cohort_content(
            trainee_id, enrollment.cohort_id, now
        )
        if not allowed:
            raise AccessDeniedError(reason or "Access not allowed")

    def _module_lesson_ids(self, module_id: int) -> List[int]:
        rows = (
            self.db.query(Lesson.id)
            .filter(Lesson.module_id == module_id)
            .order_by(Lesson.order_index, Lesson.id)
            .all()
        )
        return [row[0] for row in rows]

    def _ensure_module_unlocked(
        self, trainee_id: int, program_id: int, module: Module
    ) -> None:
        modules = self.progress.get_program_progress(trainee_id, program_id)["modules"]
        if not is_module_unlocked(modules, module.id):
            raise AccessDeniedError("Complete the previous module first")

    def ensure_lesson_unlocked(self, trainee_id: int, lesson: Lesson) -> None:
        module = self.db.get(Module, lesson.module_id)
        program_id = self.program_id_for_module(module)
        self.ensure_content_access(trainee_id, program_id)
        self._ensure_module_unlocked(trainee_id, program_id, module)
        lesson_ids = self._module_lesson_ids(module.id)
        accessed = self.access.accessed_lesson_ids(trainee_id, lesson_ids)
        if not is_lesson_unlocked(lesson.id, lesson_ids, accessed):
            raise AccessDeniedError("Open the previous lesson first")

    def ensure_assignment_unlocked(self, trainee_id: int, assignment: Assignment) -> None:
        module = self.db.get(Module, assignment.module_id)
        program_id = self.program_id_for_module(module)
        self.ensure_content_access(trainee_id, program_id)
        self._ensure_module_unlocked(trainee_id, program_id, module)
        lesson_ids = self._module_lesson_ids(module.id)
        accessed = self.access.accessed_lesson_ids(trainee_id, lesson_ids)
        if not is_assignment_unlocked(lesson_ids, accessed):
            raise AccessDeniedError("Open every lesson of the module before submitting")

    def record_lesson_access(self, trainee_id: int, lesson: Lesson) -> None:
        self.ensure_lesson_unlocked(trainee_id, lesson)
        self.access.record_access(trainee_id, lesson.id)
        self.progress.revalidate_progress(trainee_id, lesson.module_id)
        self.db.commit()

    def learning_path(self, trainee_id: int, program_id: int) -> Dict:
        summary = self.progress.get_program_progress(trainee_id, program_id)
        module_ids = [m["module_id"] for m in summary["modules"]]
        lessons: Dict[int, List[Lesson]] = {mid: [] for mid in module_ids}
        assignments: Dict[int, List[Assignment]] = {mid: [] for mid in module_ids}
        if module_ids:
            for lesson in (
                self.db.query(Lesson)
                .filter(Lesson.module_id.in_(module_ids))
                .order_by(Lesson.order_index, Lesson.id)
            ):
                lessons[lesson.module_id].append(lesson)
            for assignment in (
                self.db.query(Assignment)
                .filter(Assignment.module_id.in_(module_ids))
                .order_by(Assignment.order_index, Assignment.id)
            ):
                assignments[assignment.module_id].append(assignment)

        all_lesson_ids = [lesson.id for group in lessons.values() for lesson in group]
        accessed = self.access.accessed_lesson_ids(trainee_id, all_lesson_ids)

        statuses = {}
        assignment_ids = [a.id for group in assignments.values() for a in group]
        if assignment_ids:
            for sub in (
                self.db.query(Submission)
                .filter(
                    Submission.trainee_id == trainee_id,
                    Submission.assignment_id.in_(assignment_ids),
                )
                .order_by(Submission.submitted_at, Submission.id)
            ):
                statuses[sub.assignment_id] = sub.status

        return {
            "program_id": program_id,
            "overall_percent": summary["overall_percent"],
            "all_completed": summary["all_completed"],
            "modules": build_learning_path(
                summary["modules"], lessons, assignments, accessed, statuses
            ),
        }
