from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .cohorts import Cohort
    from .users import User


class Enrollment(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("trainee_id", "cohort_id", name="uq_enrollment_trainee_cohort"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trainee_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    cohort_id: Mapped[int] = mapped_column(
        ForeignKey("cohorts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    enrolled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    at_risk: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    extended_end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_reminder_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    trainee: Mapped["User"] = relationship()
    cohort: Mapped["Cohort"] = relationship(back_populates="enrollments")


# --------- Pydantic Schemas ---------
from pydantic import BaseModel  # noqa: E402

from .users import UserSummary  # noqa: E402


class EnrollmentOut(BaseModel):
    id: int
    cohort_id: int
    trainee: Optional[UserSummary] = None
    enrolled_at: Optional[datetime] = None
    at_risk: bool = False
    extended_end_date: Optional[datetime] = None
    last_reminder_at: Optional[datetime] = None

    @classmethod
    def from_orm_enrollment(cls, e: "Enrollment") -> "EnrollmentOut":
        return cls(
            id=e.id,
            cohort_id=e.cohort_id,
            trainee=UserSummary.from_orm_user(e.trainee),
            enrolled_at=e.enrolled_at,
            at_risk=bool(e.at_risk),
            extended_end_date=e.extended_end_date,
            last_reminder_at=e.last_reminder_at,
        )
