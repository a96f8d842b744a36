from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from academy.core.errors import AccessDeniedError, DomainError, NotFoundError
from academy.core.timeutils import as_utc, utcnow
from academy.models.audit_logs import AuditAction
from academy.models.cohorts import Cohort
from academy.models.enrollments import Enrollment
from academy.models.programs import Program, ProgramStatus
from academy.models.roles import RolesEnum
from academy.models.users import User
from academy.repositories.AuditRepository import AuditRepository
from academy.repositories.ProgressRepository import ProgressRepository

logger = logging.getLogger(__name__)

NOT_ENROLLED = "Not enrolled"
NOT_STARTED = "Cohort has not started yet"
ENDED = "Cohort has ended"


class CohortsRepository:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditRepository(db)

    # ---------- Cohorts ----------
    def list_for_user(self, user: User) -> List[Cohort]:
        query = self.db.query(Cohort).options(joinedload(Cohort.program))
        if user.is_mentor:
            query = query.filter(Cohort.mentor_id == user.user_id)
        elif not user.is_admin:
            query = query.join(Enrollment, Enrollment.cohort_id == Cohort.id).filter(
                Enrollment.trainee_id == user.user_id
            )
        return query.order_by(Cohort.start_date.desc(), Cohort.id.desc()).all()

    def get(self, cohort_id: int) -> Cohort:
        cohort = self.db.get(Cohort, cohort_id)
        if cohort is None:
            raise NotFoundError("Cohort not found")
        return cohort

    def _check_mentor(self, mentor_id: Optional[int]) -> None:
        if mentor_id is None:
            return
        mentor = self.db.get(User, mentor_id)
        if mentor is None or not mentor.is_mentor:
            raise DomainError("Cohort mentor must be a user with the MENTOR role")

    def _attach_program(self, cohort: Cohort, program_id: Optional[int]) -> None:
        cohort.program_id = program_id
        if program_id is None:
            return
        program = self.db.get(Program, program_id)
        if program is None:
            raise NotFoundError("Program not found")
        program.status = ProgramStatus.ACTIVE

    def create(
        self,
        *,
        name: str,
        start_date: datetime,
        end_date: datetime,
        program_id: Optional[int] = None,
        mentor_id: Optional[int] = None,
        actor_id: int,
    ) -> Cohort:
        if as_utc(end_date) <= as_utc(start_date):
            raise DomainError("Cohort end date must be after its start date")
        self._check_mentor(mentor_id)
        cohort = Cohort(
            name=name, start_date=start_date, end_date=end_date, mentor_id=mentor_id
        )
        self._attach_program(cohort, program_id)
        self.db.add(cohort)
        self.db.flush()
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.COHORT_CREATE,
            entity_type="Cohort",
            entity_id=cohort.id,
            details={"name": name, "program_id": program_id},
        )
        self.db.commit()
        self.db.refresh(cohort)
        return cohort

    def update(self, cohort_id: int, *, actor_id: int, **fields) -> Cohort:
        cohort = self.get(cohort_id)
        if "name" in fields and fields["name"] is not None:
            cohort.name = fields["name"]
        if "start_date" in fields and fields["start_date"] is not None:
            cohort.start_date = fields["start_date"]
        if "end_date" in fields and fields["end_date"] is not None:
            cohort.end_date = fields["end_date"]
        if as_utc(cohort.end_date) <= as_utc(cohort.start_date):
            raise DomainError("Cohort end date must be after its start date")
        if "mentor_id" in fields:
            self._check_mentor(fields["mentor_id"])
            cohort.mentor_id = fields["mentor_id"]
        if "program_id" in fields and fields["program_id"] != cohort.program_id:
            self._attach_program(cohort, fields["program_id"])
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.COHORT_UPDATE,
            entity_type="Cohort",
            entity_id=cohort.id,
            details={"fields": sorted(fields)},
        )
        self.db.commit()
        self.db.refresh(cohort)
        return cohort

    def delete(self, cohort_id: int, *, actor_id: int) -> None:
        cohort = self.get(cohort_id)
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.COHORT_DELETE,
            entity_type="Cohort",
            entity_id=cohort.id,
            details={"name": cohort.name},
        )
        self.db.delete(cohort)
        self.db.commit()

    # ---------- Enrollments ----------
    def list_enrollments(self, cohort_id: int) -> List[Enrollment]:
        return (
            self.db.query(Enrollment)
            .options(joinedload(Enrollment.trainee))
            .filter(Enrollment.cohort_id == cohort_id)
            .order_by(Enrollment.enrolled_at, Enrollment.id)
            .all()
        )

    def get_enrollment(self, enrollment_id: int) -> Enrollment:
        enrollment = self.db.get(Enrollment, enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment not found")
        return enrollment

    def find_enrollment(self, trainee_id: int, cohort_id: int) -> Optional[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.trainee_id == trainee_id, Enrollment.cohort_id == cohort_id)
            .first()
        )

    def enrollment_for_program(
        self, trainee_id: int, program_id: int
    ) -> Optional[Enrollment]:
        return (
            self.db.query(Enrollment)
            .join(Cohort, Cohort.id == Enrollment.cohort_id)
            .filter(Enrollment.trainee_id == trainee_id, Cohort.program_id == program_id)
            .order_by(Cohort.start_date.desc(), Enrollment.id.desc())
            .first()
        )

    def enrolled_program_ids(self, trainee_id: int) -> List[int]:
        rows = (
            self.db.query(Cohort.program_id)
            .join(Enrollment, Enrollment.cohort_id == Cohort.id)
            .filter(Enrollment.trainee_id == trainee_id, Cohort.program_id.isnot(None))
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    def enroll_trainees(
        self, cohort_id: int, trainee_ids: Iterable[int], *, actor_id: int
    ) -> Dict[str, List[int]]:
        cohort = self.get(cohort_id)
        progress = ProgressRepository(self.db)
        enrolled: List[int] = []
        skipped: List[int] = []
        for trainee_id in sorted({int(tid) for tid in trainee_ids}):
            trainee = self.db.get(User, trainee_id)
            if trainee is None or trainee.role_code != RolesEnum.TRAINEE.value:
                skipped.append(trainee_id)
                continue
            if self.find_enrollment(trainee_id, cohort.id) is None:
                self.db.add(Enrollment(trainee_id=trainee_id, cohort_id=cohort.id))
                self.db.flush()
            if cohort.program_id is not None:
                progress.initialize_for_enrollment(trainee_id, cohort.program_id)
            enrolled.append(trainee_id)
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.TRAINEE_ENROLL,
            entity_type="Cohort",
            entity_id=cohort.id,
            details={"trainee_ids": enrolled, "skipped": skipped},
        )
        self.db.commit()
        return {"enrolled": enrolled, "skipped": skipped}

    def flag_at_risk(self, enrollment_id: int, at_risk: bool, *, actor_id: int) -> Enrollment:
        enrollment = self.get_enrollment(enrollment_id)
        enrollment.at_risk = at_risk
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.ENROLLMENT_AT_RISK,
            entity_type="Enrollment",
            entity_id=enrollment.id,
            details={"at_risk": at_risk},
        )
        self.db.commit()
        self.db.refresh(enrollment)
        return enrollment

    def extend_deadline(
        self, enrollment_id: int, new_end: datetime, *, actor_id: int
    ) -> Enrollment:
        enrollment = self.get_enrollment(enrollment_id)
        cohort = self.get(enrollment.cohort_id)
        if as_utc(new_end) < as_utc(cohort.end_date):
            raise DomainError("Extended deadline cannot be before the cohort end date")
        enrollment.extended_end_date = new_end
        self.audit.log(
            actor_id=actor_id,
            action=AuditAction.ENROLLMENT_EXTEND_DEADLINE,
            entity_type="Enrollment",
            entity_id=enrollment.id,
            details={"extended_end_date": new_end.isoformat()},
        )
        self.db.commit()
        self.db.refresh(enrollment)
        return enrollment

    def can_access_cohort_content(
        self, trainee_id: int, cohort_id: int, now: Optional[datetime] = None
    ) -> Tuple[bool, Optional[str]]:
        enrollment = self.find_enrollment(trainee_id, cohort_id)
        if enrollment is None:
            return False, NOT_ENROLLED
        cohort = self.get(cohort_id)
        now = as_utc(now) if now is not None else utcnow()
        if now < as_utc(cohort.start_date):
            return False, NOT_STARTED
        end = as_utc(enrollment.extended_end_date or cohort.end_date)
        if now > end:
            return False, ENDED
        return True, None

    # ---------- Mentor reminders ----------
    def reminder_candidates(self, user: User) -> List[Enrollment]:
        query = (
            self.db.query(Enrollment)
            .join(Cohort, Cohort.id == Enrollment.cohort_id)
            .options(joinedload(Enrollment.trainee), joinedload(Enrollment.cohort))
        )
        if user.is_admin:
            query = query.filter(Enrollment.at_risk.is_(True))
        else:
            query = query.filter(Cohort.mentor_id == user.user_id)
        return query.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc()).all()

    def record_reminder(self, enrollment_id: int, user: User) -> Enrollment:
        enrollment = self.get_enrollment(enrollment_id)
        if not user.is_admin and enrollment.cohort.mentor_id != user.user_id:
            raise AccessDeniedError("You do not mentor this trainee's cohort")
        enrollment.last_reminder_at = utcnow()
        self.db.commit()
        self.db.refresh(enrollment)
        logger.info(
            "Reminder recorded for enrollment %s by user %s", enrollment.id, user.user_id
        )
        return enrollment
