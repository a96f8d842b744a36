from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import Blueprint, abort, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.courses import CourseOut, CourseStatus
from academy.models.roles import RolesEnum, STAFF_ROLES
from academy.repositories.CurriculumRepository import CurriculumRepository
from academy.routes import domain_errors, parse_optional_int, validate_payload
from academy.services.sanitizer import sanitize_optional_html
from academy.services.security import enforce_csrf, get_current_user, require_roles


bp = Blueprint("courses", __name__, url_prefix="/courses")


class CourseUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[str] = Field(default=None, max_length=64)
    skill_outcomes: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    program_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Course name cannot be empty.")
        return cleaned

    @field_validator("description", "skill_outcomes")
    @classmethod
    def clean_html(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)


class CourseIn(CourseUpdateIn):
    name: str = Field(..., min_length=1, max_length=255)


class CourseApproveIn(BaseModel):
    program_id: Optional[int] = None


def _course_out(course) -> dict:
    return CourseOut.model_validate(course).model_dump(mode="json")


@bp.get("")
def list_courses():
    user = get_current_user()
    program_id = parse_optional_int(request.args.get("program_id"))
    courses = CurriculumRepository(get_db()).list_courses(user, program_id=program_id)
    return jsonify({"courses": [_course_out(c) for c in courses]})


@bp.get("/<int:course_id>")
def get_course(course_id: int):
    user = get_current_user()
    db = get_db()
    with domain_errors(db):
        course = CurriculumRepository(db).get_course(course_id)
    if not user.is_admin and course.status != CourseStatus.ACTIVE:
        abort(404, description="Course not found")
    return jsonify({"course": _course_out(course)})


@bp.post("")
def create_course():
    user = require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(CourseIn)
    db = get_db()
    with domain_errors(db):
        course = CurriculumRepository(db).create_course(user, **payload.model_dump())
    return jsonify({"course": _course_out(course)}), 201


@bp.patch("/<int:course_id>")
def update_course(course_id: int):
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(CourseUpdateIn)
    db = get_db()
    with domain_errors(db):
        course = CurriculumRepository(db).update_course(
            course_id, **payload.model_dump(exclude_unset=True)
        )
    return jsonify({"course": _course_out(course)})


@bp.post("/<int:course_id>/approve")
def approve_course(course_id: int):
    require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(CourseApproveIn)
    db = get_db()
    with domain_errors(db):
        course = CurriculumRepository(db).approve_course(
            course_id, program_id=payload.program_id
        )
    return jsonify({"course": _course_out(course)})


@bp.delete("/<int:course_id>")
def delete_course(course_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        CurriculumRepository(db).delete_course(course_id, actor_id=admin.user_id)
    return jsonify({"ok": True})
