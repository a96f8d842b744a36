from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from academy.core.timeutils import as_utc, isoformat
from academy.models.certificates import Certificate
from academy.models.cohorts import Cohort
from academy.models.courses import Course
from academy.models.enrollments import Enrollment
from academy.models.modules import Module
from academy.models.progress import Progress, ProgressStatus
from academy.repositories.ProgressRepository import round_half_up

COMPLETION_STATES = ("all", "in_progress", "completed")

REPORT_COLUMNS = (
    "trainee_id",
    "trainee_name",
    "trainee_email",
    "program_id",
    "program_name",
    "cohort_id",
    "cohort_name",
    "enrolled_at",
    "at_risk",
    "progress_percent",
    "completion_state",
    "certificate_id",
    "certificate_issued_at",
    "certificate_revoked",
)


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class ReportsRepository:
    def __init__(self, db: Session):
        self.db = db

    def _module_counts(self) -> Dict[int, int]:
        rows = (
            self.db.query(Course.program_id, func.count(Module.id))
            .join(Module, Module.course_id == Course.id)
            .filter(Course.program_id.isnot(None))
            .group_by(Course.program_id)
            .all()
        )
        return {program_id: count for program_id, count in rows}

    def _completed_count(self, trainee_id: int, program_id: int) -> int:
        return (
            self.db.query(func.count(Progress.id))
            .join(Module, Module.id == Progress.module_id)
            .join(Course, Course.id == Module.course_id)
            .filter(
                Progress.trainee_id == trainee_id,
                Course.program_id == program_id,
                Progress.status == ProgressStatus.COMPLETED,
            )
            .scalar()
            or 0
        )

    def rows(
        self,
        *,
        program_id: Optional[int] = None,
        cohort_id: Optional[int] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        completion_status: str = "all",
    ) -> List[Dict[str, Any]]:
        query = (
            self.db.query(Enrollment)
            .join(Cohort, Cohort.id == Enrollment.cohort_id)
            .options(
                joinedload(Enrollment.trainee),
                joinedload(Enrollment.cohort).joinedload(Cohort.program),
            )
            .filter(Cohort.program_id.isnot(None))
        )
        if program_id is not None:
            query = query.filter(Cohort.program_id == program_id)
        if cohort_id is not None:
            query = query.filter(Cohort.id == cohort_id)

        module_counts = self._module_counts()
        results = []
        for enrollment in query.order_by(Enrollment.enrolled_at, Enrollment.id):
            enrolled_at = as_utc(enrollment.enrolled_at)
            if from_date is not None and enrolled_at < as_utc(from_date):
                continue
            if to_date is not None and enrolled_at > as_utc(to_date):
                continue

            cohort = enrollment.cohort
            program = cohort.program
            modules = module_counts.get(program.id, 0)
            completed = self._completed_count(enrollment.trainee_id, program.id)
            percent = round_half_up(100 * completed / modules) if modules else 0
            state = "completed" if modules > 0 and completed >= modules else "in_progress"
            if completion_status not in ("all", None) and completion_status != state:
                continue

            cert = (
                self.db.query(Certificate)
                .filter(
                    Certificate.trainee_id == enrollment.trainee_id,
                    Certificate.program_id == program.id,
                )
                .first()
            )
            results.append(
                {
                    "trainee_id": enrollment.trainee.user_id,
                    "trainee_name": enrollment.trainee.name,
                    "trainee_email": enrollment.trainee.email,
                    "program_id": program.id,
                    "program_name": program.name,
                    "cohort_id": cohort.id,
                    "cohort_name": cohort.name,
                    "enrolled_at": isoformat(enrollment.enrolled_at),
                    "at_risk": enrollment.at_risk,
                    "progress_percent": percent,
                    "completion_state": state,
                    "certificate_id": cert.certificate_id if cert else None,
                    "certificate_issued_at": isoformat(cert.issued_at) if cert else None,
                    "certificate_revoked": bool(cert and cert.revoked_at),
                }
            )
        return results

    @staticmethod
    def to_csv(rows: List[Dict[str, Any]]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(REPORT_COLUMNS)
        for row in rows:
            writer.writerow([_csv_value(row.get(col)) for col in REPORT_COLUMNS])
        return buf.getvalue()
