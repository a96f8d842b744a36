# academy/repositories/UsersRepository.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from academy.core.errors import AccessDeniedError, NotFoundError
from academy.models.audit_logs import AuditAction
from academy.models.lookups import LkRole
from academy.models.roles import RolesEnum
from academy.models.users import User
from academy.repositories.AuditRepository import AuditRepository


class UsersRepository:
    def __init__(self, db: Session):
        self.db = db

    # ---------- Lookup helpers (code -> id) ----------
    def _role_id(self, role: RolesEnum) -> int:
        rid = self.db.scalars(
            select(LkRole.id).where(LkRole.code == role.value)
        ).first()
        if rid is None:
            raise ValueError(f"lk_role has no code '{role.value}'")
        return rid

    # ---------- Queries ----------
    def GetUserByEmail(self, email: str) -> Optional[User]:
        return (
            self.db.query(User)
            .options(selectinload(User.role))
            .filter(User.email == email.strip().lower())
            .first()
        )

    def GetUserById(self, user_id: int) -> Optional[User]:
        return (
            self.db.query(User)
            .options(selectinload(User.role))
            .filter(User.user_id == user_id)
            .first()
        )

    def ExistsEmail(self, email: str) -> bool:
        return (
            self.db.query(User.user_id)
            .filter(User.email == email.strip().lower())
            .first()
            is not None
        )

    def ListUsers(self, role: Optional[RolesEnum] = None) -> List[User]:
        query = self.db.query(User).join(LkRole, LkRole.id == User.role_id)
        if role is not None:
            query = query.filter(LkRole.code == role.value)
        return query.order_by(User.name, User.user_id).all()

    # ---------- Create / update ----------
    def CreateUser(
        self,
        *,
        email: str,
        password_hash: str,
        name: str,
        role: RolesEnum,
        phone: Optional[str] = None,
        image_url: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            name=name,
            phone=phone,
            image_url=image_url,
            role_id=self._role_id(role),
            active=True,
        )
        self.db.add(user)
        self.db.flush()
        if created_by is not None:
            AuditRepository(self.db).log(
                actor_id=created_by,
                action=AuditAction.USER_REGISTER,
                entity_type="User",
                entity_id=user.user_id,
                details={"email": user.email, "role": role.value},
            )
        self.db.commit()
        self.db.refresh(user)
        # relationship loaded for immediate serialization
        self.db.refresh(user, attribute_names=["role"])
        return user

    def UpdateProfile(
        self,
        user: User,
        *,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> User:
        if name is not None:
            user.name = name
        if phone is not None:
            user.phone = phone or None
        if image_url is not None:
            user.image_url = image_url or None
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def UpdatePassword(self, user: User, new_password_hash: str) -> User:
        user.password_hash = new_password_hash
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def SetActive(self, user_id: int, active: bool, *, actor_id: int) -> User:
        user = self.GetUserById(user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not active and user.user_id == actor_id:
            raise AccessDeniedError("You cannot deactivate your own account")
        user.active = active
        AuditRepository(self.db).log(
            actor_id=actor_id,
            action=AuditAction.USER_ACTIVATE if active else AuditAction.USER_DEACTIVATE,
            entity_type="User",
            entity_id=user.user_id,
            details={"email": user.email},
        )
        self.db.commit()
        self.db.refresh(user)
        return user
