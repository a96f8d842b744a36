from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from academy.core.timeutils import utcnow
from academy.models.assignments import Assignment
from academy.models.cohorts import Cohort
from academy.models.courses import Course
from academy.models.enrollments import Enrollment
from academy.models.modules import Module
from academy.models.progress import Progress, ProgressStatus
from academy.models.submissions import AWAITING_REVIEW, Submission, SubmissionStatus
from academy.repositories.LessonAccessRepository import LessonAccessRepository


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ProgressRepository:
    """Module completion bookkeeping.

    A module is COMPLETED once it has at least one lesson, the trainee has
    opened every lesson, it has at least one mandatory assignment and each
    mandatory assignment has an APPROVED submission. Progress rows are
    recomputed from those facts and never edited by hand.
    """

    def __init__(self, db: Session):
        self.db = db

    def program_modules(self, program_id: int) -> List[Module]:
        return (
            self.db.query(Module)
            .join(Course, Course.id == Module.course_id)
            .filter(Course.program_id == program_id)
            .order_by(Course.id, Module.order_index, Module.id)
            .all()
        )

    def _assignment_ids_with_status(
        self,
        trainee_id: int,
        assignment_ids: Iterable[int],
        statuses: Iterable[SubmissionStatus],
    ) -> set[int]:
        ids = list(assignment_ids)
        if not ids:
            return set()
        rows = (
            self.db.query(Submission.assignment_id)
            .filter(
                Submission.trainee_id == trainee_id,
                Submission.assignment_id.in_(ids),
                Submission.status.in_(list(statuses)),
            )
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def get(self, trainee_id: int, module_id: int) -> Optional[Progress]:
        return (
            self.db.query(Progress)
            .filter(Progress.trainee_id == trainee_id, Progress.module_id == module_id)
            .first()
        )

    def revalidate_progress(self, trainee_id: int, module_id: int) -> Optional[Progress]:
        module = self.db.get(Module, module_id)
        if module is None:
            return None

        assignments: List[Assignment] = (
            self.db.query(Assignment).filter(Assignment.module_id == module_id).all()
        )
        all_ids = [a.id for a in assignments]
        mandatory_ids = [a.id for a in assignments if a.mandatory]

        approved = self._assignment_ids_with_status(
            trainee_id, all_ids, [SubmissionStatus.APPROVED]
        )
        percent = round_half_up(100 * len(approved) / len(all_ids)) if all_ids else 0

        lessons_done = LessonAccessRepository(self.db).has_accessed_all_lessons(
            trainee_id, module_id
        )
        mandatory_approved = bool(mandatory_ids) and all(
            aid in approved for aid in mandatory_ids
        )
        complete = lessons_done and mandatory_approved

        if complete:
            status = ProgressStatus.COMPLETED
        else:
            submitted = self._assignment_ids_with_status(
                trainee_id,
                mandatory_ids,
                [*AWAITING_REVIEW, SubmissionStatus.APPROVED],
            )
            awaiting = bool(mandatory_ids) and all(
                aid in submitted for aid in mandatory_ids
            )
            status = (
                ProgressStatus.PENDING_REVIEW
                if lessons_done and awaiting
                else ProgressStatus.ACTIVE
            )

        row = self.get(trainee_id, module_id)
        if row is None:
            row = Progress(trainee_id=trainee_id, module_id=module_id)
            self.db.add(row)
        row.percent_complete = percent
        if status == ProgressStatus.COMPLETED:
            if row.status != ProgressStatus.COMPLETED or row.completed_at is None:
                row.completed_at = utcnow()
        else:
            row.completed_at = None
        row.status = status
        self.db.flush()
        return row

    def revalidate_program(self, trainee_id: int, program_id: int) -> int:
        modules = self.program_modules(program_id)
        for module in modules:
            self.revalidate_progress(trainee_id, module.id)
        return len(modules)

    def get_program_progress(self, trainee_id: int, program_id: int) -> Dict[str, Any]:
        modules = self.program_modules(program_id)
        module_ids = [m.id for m in modules]
        rows = (
            self.db.query(Progress)
            .filter(Progress.trainee_id == trainee_id, Progress.module_id.in_(module_ids))
            .all()
            if module_ids
            else []
        )
        by_module = {row.module_id: row for row in rows}

        entries = []
        total = 0
        for module in modules:
            row = by_module.get(module.id)
            percent = row.percent_complete if row else 0
            total += percent
            entries.append(
                {
                    "module_id": module.id,
                    "course_id": module.course_id,
                    "title": module.title,
                    "status": row.status if row else ProgressStatus.ACTIVE,
                    "percent_complete": percent,
                    "completed_at": row.completed_at if row else None,
                }
            )

        overall = round_half_up(total / len(modules)) if modules else 0
        all_completed = bool(entries) and all(
            e["status"] == ProgressStatus.COMPLETED for e in entries
        )
        return {
            "program_id": program_id,
            "overall_percent": overall,
            "all_completed": all_completed,
            "modules": entries,
        }

    def initialize_for_enrollment(self, trainee_id: int, program_id: int) -> int:
        """Create ACTIVE 0% rows for every module of the program; returns rows added."""
        modules = self.program_modules(program_id)
        if not modules:
            return 0
        existing = {
            row[0]
            for row in self.db.query(Progress.module_id)
            .filter(
                Progress.trainee_id == trainee_id,
                Progress.module_id.in_([m.id for m in modules]),
            )
            .all()
        }
        created = 0
        for module in modules:
            if module.id in existing:
                continue
            self.db.add(
                Progress(
                    trainee_id=trainee_id,
                    module_id=module.id,
                    status=ProgressStatus.ACTIVE,
                    percent_complete=0,
                )
            )
            created += 1
        self.db.flush()
        return created

    def initialize_module_for_enrolled(self, module: Module) -> int:
        """Seed a new module's progress rows for trainees already enrolled."""
        course = module.course or self.db.get(Course, module.course_id)
        if course is None or course.program_id is None:
            return 0
        trainee_ids = {
            row[0]
            for row in self.db.query(Enrollment.trainee_id)
            .join(Cohort, Cohort.id == Enrollment.cohort_id)
            .filter(Cohort.program_id == course.program_id)
            .all()
        }
        created = 0
        for trainee_id in trainee_ids:
            if self.get(trainee_id, module.id) is None:
                self.db.add(
                    Progress(
                        trainee_id=trainee_id,
                        module_id=module.id,
                        status=ProgressStatus.ACTIVE,
                        percent_complete=0,
                    )
                )
                created += 1
        self.db.flush()
        return created
