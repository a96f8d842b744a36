from __future__ import annotations

from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .programs import Program
    from .users import User


class Certificate(Base):
    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint("trainee_id", "program_id", name="uq_certificate_trainee_program"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trainee_id: Mapped[int] = mapped_column(
        ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    program_id: Mapped[int] = mapped_column(
        ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    certificate_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    pdf_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    approved_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    auto_issued: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    revoked_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    trainee: Mapped["User"] = relationship(foreign_keys=[trainee_id])
    approved_by: Mapped[Optional["User"]] = relationship(foreign_keys=[approved_by_id])
    program: Mapped["Program"] = relationship()

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


# --------- Pydantic Schemas ---------
from pydantic import BaseModel  # noqa: E402


class CertificateOut(BaseModel):
    certificate_id: str
    trainee_id: int
    trainee_name: Optional[str] = None
    program_id: int
    program_name: Optional[str] = None
    pdf_url: Optional[str] = None
    issued_at: Optional[datetime] = None
    approved_by_id: Optional[int] = None
    auto_issued: bool = True
    revoked: bool = False
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None

    @classmethod
    def from_orm_certificate(cls, c: "Certificate") -> "CertificateOut":
        return cls(
            certificate_id=c.certificate_id,
            trainee_id=c.trainee_id,
            trainee_name=c.trainee.name if c.trainee else None,
            program_id=c.program_id,
            program_name=c.program.name if c.program else None,
            pdf_url=c.pdf_url,
            issued_at=c.issued_at,
            approved_by_id=c.approved_by_id,
            auto_issued=bool(c.auto_issued),
            revoked=c.is_revoked,
            revoked_at=c.revoked_at,
            revoked_reason=c.revoked_reason,
        )
