from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .enrollments import Enrollment
    from .programs import Program
    from .users import User


class Cohort(Base):
    __tablename__ = "cohorts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    program_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("programs.id", ondelete="SET NULL"), nullable=True, index=True
    )
    mentor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    program: Mapped[Optional["Program"]] = relationship(back_populates="cohorts")
    mentor: Mapped[Optional["User"]] = relationship()
    enrollments: Mapped[List["Enrollment"]] = relationship(
        back_populates="cohort", cascade="all, delete-orphan"
    )


# --------- Pydantic Schemas ---------
from pydantic import BaseModel, ConfigDict  # noqa: E402


class CohortOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    program_id: Optional[int] = None
    mentor_id: Optional[int] = None
    start_date: datetime
    end_date: datetime
    created_at: Optional[datetime] = None
