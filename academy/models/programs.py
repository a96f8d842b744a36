from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .cohorts import Cohort
    from .courses import Course


class ProgramStatus(str, Enum):
    PENDING = "PENDING"
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"


class Program(Base):
    __tablename__ = "programs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    duration: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    skill_outcomes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ProgramStatus] = mapped_column(
        SAEnum(ProgramStatus, native_enum=False, length=16),
        nullable=False,
        default=ProgramStatus.INACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    courses: Mapped[List["Course"]] = relationship(
        back_populates="program", order_by="Course.id"
    )
    cohorts: Mapped[List["Cohort"]] = relationship(
        back_populates="program", order_by="Cohort.id"
    )


# --------- Pydantic Schemas ---------
from pydantic import BaseModel, ConfigDict  # noqa: E402


class ProgramOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[str] = None
    skill_outcomes: Optional[str] = None
    status: ProgramStatus
    created_at: Optional[datetime] = None
