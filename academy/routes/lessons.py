from __future__ import annotations

from typing import Optional

from flask import Blueprint, abort, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.lessons import LessonOut
from academy.models.roles import RolesEnum, STAFF_ROLES
from academy.repositories.CurriculumRepository import CurriculumRepository
from academy.repositories.LearningPathRepository import LearningPathRepository
from academy.routes import domain_errors, parse_optional_int, validate_payload
from academy.services.sanitizer import sanitize_optional_html
from academy.services.security import enforce_csrf, get_current_user, require_roles


bp = Blueprint("lessons", __name__, url_prefix="/lessons")


class LessonUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    content: Optional[str] = None
    video_url: Optional[str] = None
    resource_url: Optional[str] = None
    order_index: Optional[int] = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Lesson title cannot be empty.")
        return cleaned

    @field_validator("content")
    @classmethod
    def clean_content(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)


class LessonIn(LessonUpdateIn):
    module_id: int
    title: str = Field(..., min_length=1, max_length=255)


def _lesson_out(lesson) -> dict:
    return LessonOut.model_validate(lesson).model_dump(mode="json")


@bp.get("")
def list_lessons():
    get_current_user()
    module_id = parse_optional_int(request.args.get("module_id"))
    if module_id is None:
        abort(400, description="module_id is required")
    lessons = CurriculumRepository(get_db()).list_lessons(module_id)
    return jsonify({"lessons": [_lesson_out(lesson) for lesson in lessons]})


@bp.get("/<int:lesson_id>")
def get_lesson(lesson_id: int):
    user = get_current_user()
    db = get_db()
    with domain_errors(db):
        lesson = CurriculumRepository(db).get_lesson(lesson_id)
        if user.is_trainee:
            LearningPathRepository(db).ensure_lesson_unlocked(user.user_id, lesson)
    return jsonify({"lesson": _lesson_out(lesson)})


@bp.post("/<int:lesson_id>/access")
def record_access(lesson_id: int):
    trainee = require_roles(RolesEnum.TRAINEE)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        lesson = CurriculumRepository(db).get_lesson(lesson_id)
        LearningPathRepository(db).record_lesson_access(trainee.user_id, lesson)
    return jsonify({"ok": True, "lesson_id": lesson.id})


@bp.post("")
def create_lesson():
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(LessonIn)
    fields = payload.model_dump(exclude={"module_id"})
    db = get_db()
    with domain_errors(db):
        lesson = CurriculumRepository(db).create_lesson(payload.module_id, **fields)
    return jsonify({"lesson": _lesson_out(lesson)}), 201


@bp.patch("/<int:lesson_id>")
def update_lesson(lesson_id: int):
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(LessonUpdateIn)
    db = get_db()
    with domain_errors(db):
        lesson = CurriculumRepository(db).update_lesson(
            lesson_id, **payload.model_dump(exclude_unset=True)
        )
    return jsonify({"lesson": _lesson_out(lesson)})


@bp.delete("/<int:lesson_id>")
def delete_lesson(lesson_id: int):
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        CurriculumRepository(db).delete_lesson(lesson_id)
    return jsonify({"ok": True})
