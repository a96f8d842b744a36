from __future__ import annotations

from typing import List, Optional

from flask import Blueprint, abort, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.programs import ProgramOut, ProgramStatus
from academy.models.roles import RolesEnum, STAFF_ROLES
from academy.models.users import User
from academy.repositories.CohortsRepository import CohortsRepository
from academy.repositories.CurriculumRepository import CurriculumRepository
from academy.repositories.LearningPathRepository import LearningPathRepository
from academy.repositories.ProgramsRepository import ProgramsRepository
from academy.repositories.ProgressRepository import ProgressRepository
from academy.routes import (
    domain_errors,
    parse_optional_int,
    to_json,
    validate_payload,
)
from academy.services.sanitizer import sanitize_optional_html
from academy.services.security import enforce_csrf, get_current_user, require_roles


bp = Blueprint("programs", __name__, url_prefix="/programs")


class ProgramIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    image_url: Optional[str] = None
    duration: Optional[str] = Field(default=None, max_length=64)
    skill_outcomes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Program name is required.")
        return cleaned

    @field_validator("description", "skill_outcomes")
    @classmethod
    def clean_html(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)


class ProgramUpdateIn(ProgramIn):
    name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Program name cannot be empty.")
        return cleaned


class AssignCohortsIn(BaseModel):
    cohort_ids: List[int] = Field(default_factory=list)


def _program_out(program) -> dict:
    return ProgramOut.model_validate(program).model_dump(mode="json")


def _target_trainee_id(user: User) -> int:
    """Trainees read their own progress; staff may pass ``trainee_id``."""
    requested = parse_optional_int(request.args.get("trainee_id"))
    if user.is_trainee:
        if requested is not None and requested != user.user_id:
            abort(403, description="You can only view your own progress")
        return user.user_id
    if requested is None:
        abort(400, description="trainee_id is required")
    return requested


@bp.get("")
def list_programs():
    user = get_current_user()
    status = request.args.get("status")
    db = get_db()
    repo = ProgramsRepository(db)
    try:
        status_filter = ProgramStatus(status.upper()) if status else None
    except ValueError:
        abort(400, description="Unknown program status")
    if user.is_trainee:
        enrolled = set(CohortsRepository(db).enrolled_program_ids(user.user_id))
        programs = [p for p in repo.list(status=status_filter) if p.id in enrolled]
    else:
        programs = repo.list(status=status_filter)
    return jsonify({"programs": [_program_out(p) for p in programs]})


@bp.get("/<int:program_id>")
def get_program(program_id: int):
    get_current_user()
    db = get_db()
    with domain_errors(db):
        program = ProgramsRepository(db).get(program_id)
    return jsonify({"program": _program_out(program)})


@bp.post("")
def create_program():
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(ProgramIn)
    db = get_db()
    with domain_errors(db):
        program = ProgramsRepository(db).create(
            actor_id=admin.user_id, **payload.model_dump()
        )
    return jsonify({"program": _program_out(program)}), 201


@bp.patch("/<int:program_id>")
def update_program(program_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(ProgramUpdateIn)
    db = get_db()
    with domain_errors(db):
        program = ProgramsRepository(db).update(
            program_id,
            actor_id=admin.user_id,
            **payload.model_dump(exclude_unset=True),
        )
    return jsonify({"program": _program_out(program)})


@bp.delete("/<int:program_id>")
def delete_program(program_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        ProgramsRepository(db).delete(program_id, actor_id=admin.user_id)
    return jsonify({"ok": True})


@bp.put("/<int:program_id>/cohorts")
def assign_cohorts(program_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(AssignCohortsIn)
    db = get_db()
    with domain_errors(db):
        program = ProgramsRepository(db).assign_to_cohorts(
            program_id, payload.cohort_ids, actor_id=admin.user_id
        )
    return jsonify({"program": _program_out(program)})


@bp.post("/<int:program_id>/activate")
def activate_program(program_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        program = ProgramsRepository(db).activate(program_id, actor_id=admin.user_id)
    return jsonify({"program": _program_out(program)})


@bp.get("/<int:program_id>/progress")
def program_progress(program_id: int):
    user = get_current_user()
    trainee_id = _target_trainee_id(user)
    db = get_db()
    with domain_errors(db):
        ProgramsRepository(db).get(program_id)
        summary = ProgressRepository(db).get_program_progress(trainee_id, program_id)
    return jsonify({"progress": to_json(summary)})


@bp.get("/<int:program_id>/learning-path")
def learning_path(program_id: int):
    user = get_current_user()
    trainee_id = _target_trainee_id(user)
    db = get_db()
    with domain_errors(db):
        ProgramsRepository(db).get(program_id)
        path = LearningPathRepository(db).learning_path(trainee_id, program_id)
    return jsonify({"learning_path": to_json(path)})


@bp.get("/<int:program_id>/structure")
def program_structure(program_id: int):
    require_roles(*STAFF_ROLES)
    db = get_db()
    with domain_errors(db):
        report = CurriculumRepository(db).validate_program_structure(program_id)
    return jsonify(report)
