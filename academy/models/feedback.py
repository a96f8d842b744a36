from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .submissions import Submission
    from .users import User


class Feedback(Base):
    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    submission_id: Mapped[int] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mentor_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    passed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    grade: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    admin_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    submission: Mapped["Submission"] = relationship(back_populates="feedback")
    mentor: Mapped["User"] = relationship()


# --------- Pydantic Schemas ---------
from pydantic import BaseModel  # noqa: E402


class FeedbackOut(BaseModel):
    id: int
    mentor_id: int
    mentor_name: Optional[str] = None
    comment: Optional[str] = None
    score: Optional[int] = None
    passed: Optional[bool] = None
    grade: Optional[str] = None
    admin_comment: Optional[str] = None
    admin_approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_orm_feedback(cls, f: "Feedback") -> "FeedbackOut":
        return cls(
            id=f.id,
            mentor_id=f.mentor_id,
            mentor_name=f.mentor.name if f.mentor else None,
            comment=f.comment,
            score=f.score,
            passed=f.passed,
            grade=f.grade,
            admin_comment=f.admin_comment,
            admin_approved_at=f.admin_approved_at,
            created_at=f.created_at,
        )
