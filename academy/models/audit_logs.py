from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .users import User


class AuditAction(str, Enum):
    PROGRAM_CREATE = "PROGRAM_CREATE"
    PROGRAM_UPDATE = "PROGRAM_UPDATE"
    PROGRAM_ACTIVATE = "PROGRAM_ACTIVATE"
    PROGRAM_DELETE = "PROGRAM_DELETE"
    COURSE_DELETE = "COURSE_DELETE"
    COHORT_CREATE = "COHORT_CREATE"
    COHORT_UPDATE = "COHORT_UPDATE"
    COHORT_DELETE = "COHORT_DELETE"
    USER_DEACTIVATE = "USER_DEACTIVATE"
    USER_ACTIVATE = "USER_ACTIVATE"
    USER_REGISTER = "USER_REGISTER"
    ENROLLMENT_AT_RISK = "ENROLLMENT_AT_RISK"
    ENROLLMENT_EXTEND_DEADLINE = "ENROLLMENT_EXTEND_DEADLINE"
    SUBMISSION_REASSIGN = "SUBMISSION_REASSIGN"
    CERTIFICATE_APPROVE = "CERTIFICATE_APPROVE"
    CERTIFICATE_REVOKE = "CERTIFICATE_REVOKE"
    TRAINEE_ENROLL = "TRAINEE_ENROLL"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )

    actor: Mapped[Optional["User"]] = relationship()


# --------- Pydantic Schemas ---------
from pydantic import BaseModel  # noqa: E402


class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Optional[dict] = None
    created_at: Optional[datetime] = None
