from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload

from academy.core.errors import AccessDeniedError, DomainError, NotFoundError
from academy.core.timeutils import utcnow
from academy.models.assignments import Assignment
from academy.models.audit_logs import AuditAction
from academy.models.feedback import Feedback
from academy.models.submissions import AWAITING_REVIEW, Submission, SubmissionStatus
from academy.models.users import User
from academy.repositories.AuditRepository import AuditRepository
from academy.repositories.LearningPathRepository import LearningPathRepository
from academy.repositories.ProgressRepository import ProgressRepository

logger = logging.getLogger(__name__)

REVIEW_VERDICTS = (
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
    SubmissionStatus.RESUBMIT_REQUESTED,
)


class SubmissionsRepository:
    """Trainee submissions and the mentor -> admin review workflow.

    A mentor approving a submission only moves it to PENDING_ADMIN_APPROVAL;
    the admin's approval makes it APPROVED, which is what counts for module
    completion.
    """

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self):
        return self.db.query(Submission).options(
            joinedload(Submission.assignment).joinedload(Assignment.module),
            joinedload(Submission.trainee),
            selectinload(Submission.feedback).joinedload(Feedback.mentor),
        )

    def get(self, submission_id: int) -> Submission:
        submission = (
            self._base_query().filter(Submission.id == submission_id).first()
        )
        if submission is None:
            raise NotFoundError("Submission not found")
        return submission

    def get_visible(self, submission_id: int, user: User) -> Submission:
        submission = self.get(submission_id)
        if user.is_trainee and submission.trainee_id != user.user_id:
            raise AccessDeniedError("You can only view your own submissions")
        if user.is_mentor and submission.assigned_reviewer_id not in (
            None,
            user.user_id,
        ):
            raise AccessDeniedError("This submission was reassigned to another mentor")
        return submission

    def list_for_user(
        self,
        user: User,
        *,
        assignment_id: Optional[int] = None,
        trainee_id: Optional[int] = None,
        status: Optional[SubmissionStatus] = None,
    ) -> List[Submission]:
        query = self._base_query()
        if assignment_id is not None:
            query = query.filter(Submission.assignment_id == assignment_id)
        if status is not None:
            query = query.filter(Submission.status == status)
        if user.is_trainee:
            query = query.filter(Submission.trainee_id == user.user_id)
        elif trainee_id is not None:
            query = query.filter(Submission.trainee_id == trainee_id)
        if user.is_mentor:
            query = query.filter(
                or_(
                    Submission.assigned_reviewer_id.is_(None),
                    Submission.assigned_reviewer_id == user.user_id,
                )
            )
        return query.order_by(Submission.submitted_at.desc(), Submission.id.desc()).all()

    def create(
        self,
        trainee: User,
        assignment_id: int,
        *,
        content: Optional[str] = None,
        file_url: Optional[str] = None,
        external_link: Optional[str] = None,
    ) -> Submission:
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        if not (content or file_url or external_link):
            raise DomainError("Provide content, a file or a link")
        LearningPathRepository(self.db).ensure_assignment_unlocked(
            trainee.user_id, assignment
        )
        open_statuses = [*AWAITING_REVIEW, SubmissionStatus.APPROVED]
        duplicate = (
            self.db.query(Submission.id)
            .filter(
                Submission.trainee_id == trainee.user_id,
                Submission.assignment_id == assignment.id,
                Submission.status.in_(open_statuses),
            )
            .first()
        )
        if duplicate:
            raise DomainError("You already have an active submission for this assignment")

        submission = Submission(
            assignment_id=assignment.id,
            trainee_id=trainee.user_id,
            content=content,
            file_url=file_url,
            external_link=external_link,
            status=SubmissionStatus.PENDING,
            submitted_at=utcnow(),
        )
        self.db.add(submission)
        self.db.flush()
        ProgressRepository(self.db).revalidate_progress(
            trainee.user_id, assignment.module_id
        )
        self.db.commit()
        return self.get(submission.id)

    def resubmit(
        self,
        submission_id: int,
        trainee: User,
        *,
        content: Optional[str] = None,
        file_url: Optional[str] = None,
        external_link: Optional[str] = None,
    ) -> Submission:
        submission = self.get(submission_id)
        if submission.trainee_id != trainee.user_id:
            raise AccessDeniedError("You can only update your own submissions")
        if submission.status != SubmissionStatus.RESUBMIT_REQUESTED:
            raise DomainError("Submission cannot be updated in current status")
        if content is not None:
            submission.content = content
        if file_url is not None:
            submission.file_url = file_url
        if external_link is not None:
            submission.external_link = external_link
        submission.status = SubmissionStatus.PENDING
        submission.submitted_at = utcnow()
        self.db.flush()
        ProgressRepository(self.db).revalidate_progress(
            trainee.user_id, submission.assignment.module_id
        )
        self.db.commit()
        return self.get(submission.id)

    def review(
        self,
        submission_id: int,
        reviewer: User,
        *,
        status: SubmissionStatus,
        comment: Optional[str] = None,
        score: Optional[int] = None,
        passed: Optional[bool] = None,
        grade: Optional[str] = None,
        admin_comment: Optional[str] = None,
    ) -> Submission:
        """Apply a mentor or admin verdict and return the updated submission.

        An admin sending ``admin_comment`` annotates the latest mentor feedback
        instead of writing a new entry.
        """

        if status not in REVIEW_VERDICTS:
            raise DomainError("Invalid review status")
        if not (reviewer.is_admin or reviewer.is_mentor):
            raise AccessDeniedError("Only mentors and admins can review submissions")
        submission = self.get(submission_id)
        if reviewer.is_mentor and submission.assigned_reviewer_id not in (
            None,
            reviewer.user_id,
        ):
            raise AccessDeniedError("This submission was reassigned to another mentor")

        now = utcnow()
        if reviewer.is_admin and admin_comment is not None:
            latest = (
                self.db.query(Feedback)
                .filter(Feedback.submission_id == submission.id)
                .order_by(Feedback.created_at.desc(), Feedback.id.desc())
                .first()
            )
            if latest is None:
                raise DomainError(
                    "No mentor feedback found. Admin can only review submissions "
                    "that have been evaluated by a mentor."
                )
            latest.admin_comment = admin_comment
            latest.admin_approved_at = now if status == SubmissionStatus.APPROVED else None
            new_status = status
        else:
            self.db.add(
                Feedback(
                    submission_id=submission.id,
                    mentor_id=reviewer.user_id,
                    comment=comment,
                    score=score,
                    passed=passed,
                    grade=grade,
                    created_at=now,
                )
            )
            if status == SubmissionStatus.APPROVED and reviewer.is_mentor:
                new_status = SubmissionStatus.PENDING_ADMIN_APPROVAL
            else:
                new_status = status

        submission.status = new_status
        submission.reviewed_at = now
        self.db.flush()
        ProgressRepository(self.db).revalidate_progress(
            submission.trainee_id, submission.assignment.module_id
        )
        self.db.commit()
        logger.info(
            "Submission %s reviewed by %s: %s",
            submission.id,
            reviewer.user_id,
            new_status.value,
        )
        self.db.expire(submission, ["feedback"])
        return self.get(submission.id)

    def reassign(self, submission_id: int, reviewer_id: int, *, actor_id: int) -> Submission:
        submission = self.get(submission_id)
        reviewer = self.db.get(User, reviewer_id)
        if reviewer is None or not reviewer.is_mentor:
            raise DomainError("Reviewer must be a user with the MENTOR role")
        previous = submission.assigned_reviewer_id
        submission.assigned_reviewer_id = reviewer.user_id
        AuditRepository(self.db).log(
            actor_id=actor_id,
            action=AuditAction.SUBMISSION_REASSIGN,
            entity_type="Submission",
            entity_id=submission.id,
            details={"from": previous, "to": reviewer.user_id},
        )
        self.db.commit()
        return self.get(submission.id)
