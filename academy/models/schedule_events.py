from __future__ import annotations

from datetime import date as date_type, datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .users import User


class ScheduleEventType(str, Enum):
    LAB_WORKSHOP = "LAB_WORKSHOP"
    MENTOR_MEETING = "MENTOR_MEETING"
    COURSE_SCHEDULE = "COURSE_SCHEDULE"


class ScheduleRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


LOCATIONS: tuple[str, ...] = (
    "Green tech lab",
    "Design lab",
    "Rapid prototyping lab",
    "Textile lab",
    "VR and Gaming lab",
    "Electrical and Electronics lab",
    "Food and agri-tech lab",
    "Music and studio lab",
    "Wood workshop lab",
    "Metal workshop lab",
    "Pitching area",
    "Cafeteria",
)


class TraineeScheduledEvent(Base):
    __tablename__ = "trainee_scheduled_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trainee_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    mentor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    start_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    end_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    event_type: Mapped[ScheduleEventType] = mapped_column(
        SAEnum(ScheduleEventType, native_enum=False, length=32), nullable=False
    )
    request_coffee: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    location: Mapped[str] = mapped_column(String(64), nullable=False)
    equipment_needed: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    team_members: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    module_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("modules.id", ondelete="SET NULL"), nullable=True
    )
    lesson_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[ScheduleRequestStatus] = mapped_column(
        SAEnum(ScheduleRequestStatus, native_enum=False, length=16),
        nullable=False,
        default=ScheduleRequestStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    trainee: Mapped["User"] = relationship(foreign_keys=[trainee_id])
    mentor: Mapped[Optional["User"]] = relationship(foreign_keys=[mentor_id])


# --------- Pydantic Schemas ---------
from pydantic import BaseModel, ConfigDict  # noqa: E402


class ScheduledEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trainee_id: int
    mentor_id: Optional[int] = None
    date: date_type
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    event_type: ScheduleEventType
    request_coffee: bool = False
    location: str
    equipment_needed: Optional[str] = None
    team_members: Optional[str] = None
    description: Optional[str] = None
    module_id: Optional[int] = None
    lesson_id: Optional[int] = None
    status: ScheduleRequestStatus
    created_at: Optional[datetime] = None
