from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import Blueprint, abort, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.assignments import AssignmentOut
from academy.models.roles import STAFF_ROLES
from academy.repositories.CurriculumRepository import CurriculumRepository
from academy.routes import domain_errors, parse_optional_int, validate_payload
from academy.services.sanitizer import sanitize_optional_html
from academy.services.security import enforce_csrf, get_current_user, require_roles


bp = Blueprint("assignments", __name__, url_prefix="/assignments")


class AssignmentUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    due_date: Optional[datetime] = None
    order_index: Optional[int] = Field(default=None, ge=0)
    mandatory: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Assignment title cannot be empty.")
        return cleaned

    @field_validator("description", "instructions")
    @classmethod
    def clean_html(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)


class AssignmentIn(AssignmentUpdateIn):
    module_id: int
    title: str = Field(..., min_length=1, max_length=255)


def _assignment_out(assignment) -> dict:
    return AssignmentOut.model_validate(assignment).model_dump(mode="json")


@bp.get("")
def list_assignments():
    get_current_user()
    module_id = parse_optional_int(request.args.get("module_id"))
    if module_id is None:
        abort(400, description="module_id is required")
    assignments = CurriculumRepository(get_db()).list_assignments(module_id)
    return jsonify({"assignments": [_assignment_out(a) for a in assignments]})


@bp.get("/<int:assignment_id>")
def get_assignment(assignment_id: int):
    get_current_user()
    db = get_db()
    with domain_errors(db):
        assignment = CurriculumRepository(db).get_assignment(assignment_id)
    return jsonify({"assignment": _assignment_out(assignment)})


@bp.post("")
def create_assignment():
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(AssignmentIn)
    fields = payload.model_dump(exclude={"module_id", "mandatory"})
    db = get_db()
    with domain_errors(db):
        assignment = CurriculumRepository(db).create_assignment(
            payload.module_id, mandatory=payload.mandatory, **fields
        )
    return jsonify({"assignment": _assignment_out(assignment)}), 201


@bp.patch("/<int:assignment_id>")
def update_assignment(assignment_id: int):
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(AssignmentUpdateIn)
    fields = payload.model_dump(exclude_unset=True, exclude={"mandatory"})
    db = get_db()
    with domain_errors(db):
        assignment = CurriculumRepository(db).update_assignment(
            assignment_id, mandatory=payload.mandatory, **fields
        )
    return jsonify({"assignment": _assignment_out(assignment)})


@bp.delete("/<int:assignment_id>")
def delete_assignment(assignment_id: int):
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        CurriculumRepository(db).delete_assignment(assignment_id)
    return jsonify({"ok": True})
