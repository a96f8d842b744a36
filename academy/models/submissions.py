from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .assignments import Assignment
    from .feedback import Feedback
    from .users import User


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_ADMIN_APPROVAL = "PENDING_ADMIN_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RESUBMIT_REQUESTED = "RESUBMIT_REQUESTED"


AWAITING_REVIEW = (SubmissionStatus.PENDING, SubmissionStatus.PENDING_ADMIN_APPROVAL)


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trainee_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    external_link: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    status: Mapped[SubmissionStatus] = mapped_column(
        SAEnum(SubmissionStatus, native_enum=False, length=32),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    assigned_reviewer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )

    assignment: Mapped["Assignment"] = relationship(back_populates="submissions")
    trainee: Mapped["User"] = relationship(foreign_keys=[trainee_id])
    assigned_reviewer: Mapped[Optional["User"]] = relationship(
        foreign_keys=[assigned_reviewer_id]
    )
    feedback: Mapped[List["Feedback"]] = relationship(
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="Feedback.id",
    )


# --------- Pydantic Schemas ---------
from pydantic import BaseModel  # noqa: E402

from .feedback import FeedbackOut  # noqa: E402
from .users import UserSummary  # noqa: E402


class SubmissionOut(BaseModel):
    id: int
    assignment_id: int
    assignment_title: Optional[str] = None
    module_id: Optional[int] = None
    trainee: Optional[UserSummary] = None
    content: Optional[str] = None
    file_url: Optional[str] = None
    external_link: Optional[str] = None
    status: SubmissionStatus
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    assigned_reviewer_id: Optional[int] = None
    feedback: List[FeedbackOut] = []

    @classmethod
    def from_orm_submission(cls, s: "Submission") -> "SubmissionOut":
        assignment = s.assignment
        return cls(
            id=s.id,
            assignment_id=s.assignment_id,
            assignment_title=assignment.title if assignment else None,
            module_id=assignment.module_id if assignment else None,
            trainee=UserSummary.from_orm_user(s.trainee),
            content=s.content,
            file_url=s.file_url,
            external_link=s.external_link,
            status=s.status,
            submitted_at=s.submitted_at,
            reviewed_at=s.reviewed_at,
            assigned_reviewer_id=s.assigned_reviewer_id,
            feedback=[FeedbackOut.from_orm_feedback(f) for f in s.feedback],
        )
