from __future__ import annotations

import math

from flask import Blueprint, jsonify, request, abort
from werkzeug.exceptions import Unauthorized

from academy.core.db import get_db
from academy.models.roles import RolesEnum
from academy.models.users import RegisterIn, LoginIn, UserOut, User
from academy.services.security import (
    hash_password,
    verify_password,
    start_session,
    end_session,
    enforce_csrf,
    get_current_user,
)
from academy.repositories.UsersRepository import UsersRepository
from academy.services.rate_limiter import check_auth_rate_limit
from academy.services.email import send_welcome_email
from academy.routes import client_identifier, validate_payload


bp = Blueprint("auth", __name__, url_prefix="/auth")


def _rate_limited_response(scope: str, *, identifier: str | None = None):
    parts = [scope]
    if identifier:
        parts.append(identifier.lower())
    parts.append(client_identifier())
    retry_after = check_auth_rate_limit(":".join(parts))
    if retry_after is None:
        return None
    wait_seconds = max(1, math.ceil(retry_after))
    payload = {"detail": "Too many attempts. Please wait before trying again."}
    response = jsonify(payload)
    response.status_code = 429
    response.headers["Retry-After"] = str(wait_seconds)
    return response


def _optional_current_user() -> User | None:
    try:
        return get_current_user()
    except Unauthorized:
        return None


@bp.post("/register")
def register():
    payload: RegisterIn = validate_payload(RegisterIn)

    limited = _rate_limited_response("register", identifier=payload.email)
    if limited:
        return limited

    creator = _optional_current_user()
    if creator is not None and creator.is_admin:
        enforce_csrf()
    else:
        creator = None
        if payload.role != RolesEnum.TRAINEE:
            abort(403, description="Only admins can create mentor or admin accounts")

    db = get_db()
    repo = UsersRepository(db)

    if repo.ExistsEmail(payload.email):
        abort(409, description="Email already registered")

    user = repo.CreateUser(
        email=payload.email,
        password_hash=hash_password(payload.password),
        name=payload.name,
        role=payload.role,
        phone=payload.phone,
        created_by=creator.user_id if creator else None,
    )

    user_out = UserOut.from_orm_user(user).model_dump(mode="json")
    send_welcome_email(email=user.email, name=user.name)
    if creator is not None:
        return jsonify({"user": user_out}), 201

    response = jsonify({"user": user_out})
    response.status_code = 201
    start_session(response, user, remember=payload.remember)
    return response


@bp.post("/login")
def login():
    payload: LoginIn = validate_payload(LoginIn)

    limited = _rate_limited_response("login", identifier=payload.email)
    if limited:
        return limited

    db = get_db()
    repo = UsersRepository(db)
    user: User | None = repo.GetUserByEmail(payload.email)

    if not user or not verify_password(payload.password, user.password_hash):
        abort(401, description="Invalid credentials")
    if not user.active:
        abort(403, description="Account is deactivated")

    user_out = UserOut.from_orm_user(user).model_dump(mode="json")
    response = jsonify({"user": user_out})
    start_session(response, user, remember=payload.remember)
    return response


@bp.post("/logout")
def logout():
    response = jsonify({"ok": True})
    end_session(response)
    return response
