from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .modules import Module
    from .programs import Program


class CourseStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    program_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("programs.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    duration: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    skill_outcomes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[CourseStatus] = mapped_column(
        SAEnum(CourseStatus, native_enum=False, length=16),
        nullable=False,
        default=CourseStatus.ACTIVE,
    )
    start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    program: Mapped[Optional["Program"]] = relationship(back_populates="courses")
    modules: Mapped[List["Module"]] = relationship(
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="[Module.order_index, Module.id]",
    )


# --------- Pydantic Schemas ---------
from pydantic import BaseModel, ConfigDict  # noqa: E402


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    program_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[str] = None
    skill_outcomes: Optional[str] = None
    status: CourseStatus
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
