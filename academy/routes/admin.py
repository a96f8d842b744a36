from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

from flask import Blueprint, Response, abort, g, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.audit_logs import AuditLogOut
from academy.models.enrollments import EnrollmentOut
from academy.models.roles import RolesEnum
from academy.models.users import UserOut
from academy.repositories.AuditRepository import AuditRepository
from academy.repositories.CohortsRepository import CohortsRepository
from academy.repositories.ReportsRepository import COMPLETION_STATES, ReportsRepository
from academy.repositories.UsersRepository import UsersRepository
from academy.routes import domain_errors, validate_args, validate_payload
from academy.services.security import enforce_csrf, require_roles


bp = Blueprint("admin", __name__, url_prefix="/admin")


class ReportQuery(BaseModel):
    program_id: Optional[int] = None
    cohort_id: Optional[int] = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    completion_status: str = "all"
    format: str = "json"

    @field_validator("completion_status")
    @classmethod
    def check_completion(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in COMPLETION_STATES:
            raise ValueError(
                "completion_status must be one of: " + ", ".join(COMPLETION_STATES)
            )
        return normalized

    @field_validator("format")
    @classmethod
    def check_format(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ("json", "csv"):
            raise ValueError("format must be json or csv")
        return normalized


class AtRiskIn(BaseModel):
    at_risk: bool


class ExtendDeadlineIn(BaseModel):
    extended_end_date: datetime


class AuditQuery(BaseModel):
    entity_type: Optional[str] = Field(default=None, max_length=64)
    limit: Optional[int] = None


@bp.before_request
def ensure_admin():
    if request.method == "OPTIONS":
        return None
    g.current_admin = require_roles(RolesEnum.ADMIN)
    if request.method not in ("GET", "HEAD"):
        enforce_csrf()


# ---------- Users ----------
@bp.get("/users")
def list_users():
    role = request.args.get("role")
    try:
        role_filter = RolesEnum(role.upper()) if role else None
    except ValueError:
        abort(400, description="Unknown role")
    users = UsersRepository(get_db()).ListUsers(role_filter)
    return jsonify(
        {"users": [UserOut.from_orm_user(u).model_dump(mode="json") for u in users]}
    )


def _set_active(user_id: int, active: bool):
    db = get_db()
    with domain_errors(db):
        user = UsersRepository(db).SetActive(
            user_id, active, actor_id=g.current_admin.user_id
        )
    return jsonify({"user": UserOut.from_orm_user(user).model_dump(mode="json")})


@bp.post("/users/<int:user_id>/activate")
def activate_user(user_id: int):
    return _set_active(user_id, True)


@bp.post("/users/<int:user_id>/deactivate")
def deactivate_user(user_id: int):
    return _set_active(user_id, False)


# ---------- Audit ----------
@bp.get("/audit")
def audit_log():
    query = validate_args(AuditQuery)
    entries = AuditRepository(get_db()).list(
        entity_type=query.entity_type, limit=query.limit
    )
    return jsonify(
        {
            "entries": [
                AuditLogOut(
                    id=e.id,
                    actor_id=e.actor_id,
                    action=e.action,
                    entity_type=e.entity_type,
                    entity_id=e.entity_id,
                    details=AuditRepository.parse_details(e),
                    created_at=e.created_at,
                ).model_dump(mode="json")
                for e in entries
            ]
        }
    )


# ---------- Reports ----------
@bp.get("/reports")
def reports():
    query = validate_args(ReportQuery)
    from_dt = (
        datetime.combine(query.from_date, time.min, tzinfo=timezone.utc)
        if query.from_date
        else None
    )
    to_dt = (
        datetime.combine(query.to_date, time.max, tzinfo=timezone.utc)
        if query.to_date
        else None
    )
    repo = ReportsRepository(get_db())
    rows = repo.rows(
        program_id=query.program_id,
        cohort_id=query.cohort_id,
        from_date=from_dt,
        to_date=to_dt,
        completion_status=query.completion_status,
    )
    if query.format == "csv":
        return Response(
            repo.to_csv(rows),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=report.csv"},
        )
    return jsonify({"rows": rows, "count": len(rows)})


# ---------- Enrollments ----------
def _enrollment_out(enrollment) -> dict:
    return EnrollmentOut.from_orm_enrollment(enrollment).model_dump(mode="json")


@bp.patch("/enrollments/<int:enrollment_id>/at-risk")
def flag_at_risk(enrollment_id: int):
    payload = validate_payload(AtRiskIn)
    db = get_db()
    with domain_errors(db):
        enrollment = CohortsRepository(db).flag_at_risk(
            enrollment_id, payload.at_risk, actor_id=g.current_admin.user_id
        )
    return jsonify({"enrollment": _enrollment_out(enrollment)})


@bp.patch("/enrollments/<int:enrollment_id>/deadline")
def extend_deadline(enrollment_id: int):
    payload = validate_payload(ExtendDeadlineIn)
    db = get_db()
    with domain_errors(db):
        enrollment = CohortsRepository(db).extend_deadline(
            enrollment_id, payload.extended_end_date, actor_id=g.current_admin.user_id
        )
    return jsonify({"enrollment": _enrollment_out(enrollment)})
