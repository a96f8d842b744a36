from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from academy.core.errors import DomainError, NotFoundError
from academy.core.timeutils import utcnow
from academy.models.cohorts import Cohort
from academy.models.courses import Course
from academy.models.enrollments import Enrollment
from academy.models.lessons import Lesson
from academy.models.modules import Module
from academy.models.schedule_events import (
    LOCATIONS,
    ScheduleEventType,
    ScheduleRequestStatus,
    TraineeScheduledEvent,
)
from academy.models.users import User


class ScheduleEventsRepository:
    def __init__(self, db: Session):
        self.db = db

    def _trainee_cohorts(self, trainee_id: int) -> List[Cohort]:
        return (
            self.db.query(Cohort)
            .join(Enrollment, Enrollment.cohort_id == Cohort.id)
            .filter(Enrollment.trainee_id == trainee_id)
            .order_by(Enrollment.enrolled_at, Enrollment.id)
            .all()
        )

    def planning_context(self, trainee_id: int) -> Dict[str, Any]:
        """Everything a trainee needs to fill in a scheduling request."""
        cohorts = self._trainee_cohorts(trainee_id)
        mentor = None
        if cohorts and cohorts[0].mentor_id is not None:
            mentor = self.db.get(User, cohorts[0].mentor_id)
        program_ids = sorted({c.program_id for c in cohorts if c.program_id is not None})
        modules: List[Module] = []
        if program_ids:
            modules = (
                self.db.query(Module)
                .join(Course, Course.id == Module.course_id)
                .options(joinedload(Module.lessons))
                .filter(Course.program_id.in_(program_ids))
                .order_by(Course.id, Module.order_index, Module.id)
                .all()
            )
        return {
            "locations": list(LOCATIONS),
            "event_types": [t.value for t in ScheduleEventType],
            "mentor": mentor,
            "modules": modules,
        }

    def create(
        self,
        trainee: User,
        *,
        event_date: date,
        event_type: ScheduleEventType,
        location: str,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        request_coffee: bool = False,
        mentor_id: Optional[int] = None,
        equipment_needed: Optional[str] = None,
        team_members: Optional[str] = None,
        description: Optional[str] = None,
        module_id: Optional[int] = None,
        lesson_id: Optional[int] = None,
        today: Optional[date] = None,
    ) -> TraineeScheduledEvent:
        today = today or utcnow().date()
        if event_date < today:
            raise DomainError("Cannot schedule an event in the past")
        if location not in LOCATIONS:
            raise DomainError("location must be one of the allowed locations")

        cohorts = self._trainee_cohorts(trainee.user_id)
        cohort_mentor_id = cohorts[0].mentor_id if cohorts else None
        program_ids = [c.program_id for c in cohorts if c.program_id is not None]

        resolved_mentor = None
        resolved_module = None
        resolved_lesson = None
        if event_type == ScheduleEventType.MENTOR_MEETING:
            if mentor_id is None:
                raise DomainError("Mentor is required for a mentor meeting")
            if cohort_mentor_id is None or cohort_mentor_id != mentor_id:
                raise DomainError("Selected mentor must be assigned to your cohort")
            resolved_mentor = mentor_id
        elif event_type == ScheduleEventType.COURSE_SCHEDULE:
            if not program_ids:
                raise DomainError(
                    "You must be enrolled in a program to schedule course content"
                )
            if module_id is None or lesson_id is None:
                raise DomainError("Module and lesson are required for a course schedule")
            module = (
                self.db.query(Module)
                .join(Course, Course.id == Module.course_id)
                .filter(Module.id == module_id, Course.program_id.in_(program_ids))
                .first()
            )
            if module is None:
                raise DomainError("Module must belong to your program")
            lesson = (
                self.db.query(Lesson)
                .filter(Lesson.id == lesson_id, Lesson.module_id == module_id)
                .first()
            )
            if lesson is None:
                raise DomainError("Lesson must belong to the selected module")
            resolved_module = module_id
            resolved_lesson = lesson_id
            resolved_mentor = cohort_mentor_id

        event = TraineeScheduledEvent(
            trainee_id=trainee.user_id,
            mentor_id=resolved_mentor,
            date=event_date,
            start_time=start_time,
            end_time=end_time,
            event_type=event_type,
            request_coffee=bool(request_coffee),
            location=location,
            equipment_needed=equipment_needed,
            team_members=team_members,
            description=description,
            module_id=resolved_module,
            lesson_id=resolved_lesson,
            status=ScheduleRequestStatus.PENDING,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def list_for_trainee(self, trainee_id: int) -> List[TraineeScheduledEvent]:
        return (
            self.db.query(TraineeScheduledEvent)
            .filter(TraineeScheduledEvent.trainee_id == trainee_id)
            .order_by(TraineeScheduledEvent.date, TraineeScheduledEvent.id)
            .all()
        )

    def list_all(
        self, *, status: Optional[ScheduleRequestStatus] = None
    ) -> List[TraineeScheduledEvent]:
        query = self.db.query(TraineeScheduledEvent).options(
            joinedload(TraineeScheduledEvent.trainee),
            joinedload(TraineeScheduledEvent.mentor),
        )
        if status is not None:
            query = query.filter(TraineeScheduledEvent.status == status)
        return query.order_by(
            TraineeScheduledEvent.date, TraineeScheduledEvent.id
        ).all()

    def decide(
        self, event_id: int, status: ScheduleRequestStatus
    ) -> TraineeScheduledEvent:
        if status not in (ScheduleRequestStatus.APPROVED, ScheduleRequestStatus.REJECTED):
            raise DomainError("status must be APPROVED or REJECTED")
        event = self.db.get(TraineeScheduledEvent, event_id)
        if event is None:
            raise NotFoundError("Schedule request not found")
        event.status = status
        self.db.commit()
        self.db.refresh(event)
        return event
