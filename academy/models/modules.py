from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .assignments import Assignment
    from .courses import Course
    from .lessons import Lesson


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    inspiring_quotes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    course: Mapped["Course"] = relationship(back_populates="modules")
    lessons: Mapped[List["Lesson"]] = relationship(
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="[Lesson.order_index, Lesson.id]",
    )
    assignments: Mapped[List["Assignment"]] = relationship(
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="[Assignment.order_index, Assignment.id]",
    )


# --------- Pydantic Schemas ---------
from pydantic import BaseModel, ConfigDict  # noqa: E402


class ModuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    description: Optional[str] = None
    inspiring_quotes: Optional[str] = None
    order_index: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
