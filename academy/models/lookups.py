from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from academy.models.base import Base


class LkRole(Base):
    __tablename__ = "lk_role"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
