# academy/models/users.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.models.base import Base
from academy.models.lookups import LkRole
from academy.models.roles import RolesEnum


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    role_id: Mapped[int] = mapped_column(ForeignKey("lk_role.id"), nullable=False)
    role: Mapped[LkRole] = relationship(lazy="joined")

    @property
    def role_code(self) -> str:
        return self.role.code if self.role else RolesEnum.TRAINEE.value

    @property
    def is_admin(self) -> bool:
        return self.role_code == RolesEnum.ADMIN.value

    @property
    def is_mentor(self) -> bool:
        return self.role_code == RolesEnum.MENTOR.value

    @property
    def is_trainee(self) -> bool:
        return self.role_code == RolesEnum.TRAINEE.value


# --------- Pydantic Schemas ---------
from pydantic import BaseModel, EmailStr, Field, field_validator  # noqa: E402


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1)
    role: RolesEnum = RolesEnum.TRAINEE
    phone: Optional[str] = None
    remember: bool = False

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Name is required.")
        return cleaned


class LoginIn(BaseModel):
    email: EmailStr
    password: str
    remember: bool = False


class UserOut(BaseModel):
    user_id: int
    email: EmailStr
    name: str
    phone: Optional[str] = None
    image_url: Optional[str] = None
    role: RolesEnum
    active: bool = True

    @classmethod
    def from_orm_user(cls, u: "User") -> "UserOut":
        return cls(
            user_id=u.user_id,
            email=u.email,
            name=u.name,
            phone=u.phone,
            image_url=u.image_url,
            role=RolesEnum(u.role_code),
            active=bool(u.active),
        )


class UserSummary(BaseModel):
    user_id: int
    name: str
    email: str

    @classmethod
    def from_orm_user(cls, u: "User | None") -> "UserSummary | None":
        if u is None:
            return None
        return cls(user_id=u.user_id, name=u.name, email=u.email)
