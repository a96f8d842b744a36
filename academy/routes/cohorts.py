from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from flask import Blueprint, abort, jsonify
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.cohorts import CohortOut
from academy.models.enrollments import EnrollmentOut
from academy.models.roles import RolesEnum
from academy.repositories.CohortsRepository import CohortsRepository
from academy.routes import domain_errors, validate_payload
from academy.services.security import enforce_csrf, get_current_user, require_roles


bp = Blueprint("cohorts", __name__, url_prefix="/cohorts")


class CohortIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    start_date: datetime
    end_date: datetime
    program_id: Optional[int] = None
    mentor_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Cohort name is required.")
        return cleaned


class CohortUpdateIn(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    program_id: Optional[int] = None
    mentor_id: Optional[int] = None


class EnrollIn(BaseModel):
    trainee_ids: List[int] = Field(..., min_length=1)


def _cohort_out(cohort) -> dict:
    return CohortOut.model_validate(cohort).model_dump(mode="json")


@bp.get("")
def list_cohorts():
    user = get_current_user()
    cohorts = CohortsRepository(get_db()).list_for_user(user)
    return jsonify({"cohorts": [_cohort_out(c) for c in cohorts]})


@bp.get("/<int:cohort_id>")
def get_cohort(cohort_id: int):
    user = get_current_user()
    db = get_db()
    repo = CohortsRepository(db)
    with domain_errors(db):
        cohort = repo.get(cohort_id)
    if user.is_mentor and cohort.mentor_id != user.user_id:
        abort(403, description="You do not mentor this cohort")
    if user.is_trainee and repo.find_enrollment(user.user_id, cohort.id) is None:
        abort(403, description="Not enrolled")
    return jsonify({"cohort": _cohort_out(cohort)})


@bp.post("")
def create_cohort():
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(CohortIn)
    db = get_db()
    with domain_errors(db):
        cohort = CohortsRepository(db).create(actor_id=admin.user_id, **payload.model_dump())
    return jsonify({"cohort": _cohort_out(cohort)}), 201


@bp.patch("/<int:cohort_id>")
def update_cohort(cohort_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(CohortUpdateIn)
    db = get_db()
    with domain_errors(db):
        cohort = CohortsRepository(db).update(
            cohort_id, actor_id=admin.user_id, **payload.model_dump(exclude_unset=True)
        )
    return jsonify({"cohort": _cohort_out(cohort)})


@bp.delete("/<int:cohort_id>")
def delete_cohort(cohort_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        CohortsRepository(db).delete(cohort_id, actor_id=admin.user_id)
    return jsonify({"ok": True})


@bp.get("/<int:cohort_id>/enrollments")
def list_enrollments(cohort_id: int):
    user = require_roles(RolesEnum.ADMIN, RolesEnum.MENTOR)
    db = get_db()
    repo = CohortsRepository(db)
    with domain_errors(db):
        cohort = repo.get(cohort_id)
    if user.is_mentor and cohort.mentor_id != user.user_id:
        abort(403, description="You do not mentor this cohort")
    enrollments = repo.list_enrollments(cohort.id)
    return jsonify(
        {
            "enrollments": [
                EnrollmentOut.from_orm_enrollment(e).model_dump(mode="json")
                for e in enrollments
            ]
        }
    )


@bp.post("/<int:cohort_id>/enrollments")
def enroll_trainees(cohort_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(EnrollIn)
    db = get_db()
    with domain_errors(db):
        result = CohortsRepository(db).enroll_trainees(
            cohort_id, payload.trainee_ids, actor_id=admin.user_id
        )
    return jsonify(result), 201
