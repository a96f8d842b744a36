from __future__ import annotations

from typing import Optional

from flask import Blueprint, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.core.settings import settings
from academy.models.users import UserOut
from academy.repositories.UsersRepository import UsersRepository
from academy.routes import validate_payload
from academy.services.security import enforce_csrf, get_current_user


bp = Blueprint("me", __name__)


class ProfileUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    image_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if not value.strip():
            raise ValueError("Name cannot be empty.")
        return value.strip()

    @field_validator("phone", "image_url")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip()


def _with_csrf_header(response):
    csrf_token = request.cookies.get(settings.CSRF_COOKIE_NAME)
    if csrf_token:
        response.headers["X-CSRF-Token"] = csrf_token
    return response


@bp.get("/me")
def me():
    user = get_current_user()
    user_out = UserOut.from_orm_user(user).model_dump(mode="json")
    return _with_csrf_header(jsonify({"user": user_out}))


@bp.patch("/me")
def update_me():
    user = get_current_user()
    enforce_csrf()
    payload = validate_payload(ProfileUpdateIn)

    updated = UsersRepository(get_db()).UpdateProfile(
        user,
        name=payload.name,
        phone=payload.phone,
        image_url=payload.image_url,
    )
    return jsonify({"user": UserOut.from_orm_user(updated).model_dump(mode="json")})
