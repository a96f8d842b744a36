from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import Blueprint, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.modules import ModuleOut
from academy.models.roles import STAFF_ROLES
from academy.repositories.CurriculumRepository import CurriculumRepository
from academy.routes import domain_errors, parse_optional_int, validate_payload
from academy.services.sanitizer import sanitize_optional_html
from academy.services.security import enforce_csrf, get_current_user, require_roles


bp = Blueprint("modules", __name__, url_prefix="/modules")


class ModuleUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    inspiring_quotes: Optional[str] = None
    order_index: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Module title cannot be empty.")
        return cleaned

    @field_validator("description", "inspiring_quotes")
    @classmethod
    def clean_html(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)


class ModuleIn(ModuleUpdateIn):
    course_id: int
    title: str = Field(..., min_length=1, max_length=255)


def _module_out(module) -> dict:
    return ModuleOut.model_validate(module).model_dump(mode="json")


@bp.get("")
def list_modules():
    get_current_user()
    course_id = parse_optional_int(request.args.get("course_id"))
    program_id = parse_optional_int(request.args.get("program_id"))
    modules = CurriculumRepository(get_db()).list_modules(
        course_id=course_id, program_id=program_id
    )
    return jsonify({"modules": [_module_out(m) for m in modules]})


@bp.get("/<int:module_id>")
def get_module(module_id: int):
    get_current_user()
    db = get_db()
    with domain_errors(db):
        module = CurriculumRepository(db).get_module(module_id)
    return jsonify({"module": _module_out(module)})


@bp.post("")
def create_module():
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(ModuleIn)
    fields = payload.model_dump(exclude={"course_id"})
    db = get_db()
    with domain_errors(db):
        module = CurriculumRepository(db).create_module(payload.course_id, **fields)
    return jsonify({"module": _module_out(module)}), 201


@bp.patch("/<int:module_id>")
def update_module(module_id: int):
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    payload = validate_payload(ModuleUpdateIn)
    db = get_db()
    with domain_errors(db):
        module = CurriculumRepository(db).update_module(
            module_id, **payload.model_dump(exclude_unset=True)
        )
    return jsonify({"module": _module_out(module)})


@bp.delete("/<int:module_id>")
def delete_module(module_id: int):
    require_roles(*STAFF_ROLES)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        CurriculumRepository(db).delete_module(module_id)
    return jsonify({"ok": True})


@bp.get("/<int:module_id>/validation")
def validate_module(module_id: int):
    require_roles(*STAFF_ROLES)
    return jsonify(CurriculumRepository(get_db()).validate_module(module_id))
