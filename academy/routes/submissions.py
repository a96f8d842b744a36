from __future__ import annotations

from typing import Optional

from flask import Blueprint, abort, jsonify, request
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.models.roles import RolesEnum
from academy.models.submissions import SubmissionOut, SubmissionStatus
from academy.repositories.SubmissionsRepository import SubmissionsRepository
from academy.routes import domain_errors, parse_optional_int, validate_payload
from academy.services.email import send_submission_reviewed_email
from academy.services.sanitizer import sanitize_optional_html
from academy.services.security import enforce_csrf, get_current_user, require_roles


bp = Blueprint("submissions", __name__, url_prefix="/submissions")


class SubmissionUpdateIn(BaseModel):
    content: Optional[str] = None
    file_url: Optional[str] = None
    external_link: Optional[str] = None

    @field_validator("content")
    @classmethod
    def clean_content(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)

    @field_validator("file_url", "external_link")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class SubmissionIn(SubmissionUpdateIn):
    assignment_id: int


class ReviewIn(BaseModel):
    status: SubmissionStatus
    comment: Optional[str] = None
    score: Optional[int] = Field(default=None, ge=0, le=100)
    passed: Optional[bool] = None
    grade: Optional[str] = Field(default=None, max_length=16)
    admin_comment: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("comment", "admin_comment")
    @classmethod
    def clean_comment(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)


class ReassignIn(BaseModel):
    reviewer_id: int


def _submission_out(submission) -> dict:
    return SubmissionOut.from_orm_submission(submission).model_dump(mode="json")


@bp.get("")
def list_submissions():
    user = get_current_user()
    status = request.args.get("status")
    try:
        status_filter = SubmissionStatus(status.upper()) if status else None
    except ValueError:
        abort(400, description="Unknown submission status")
    submissions = SubmissionsRepository(get_db()).list_for_user(
        user,
        assignment_id=parse_optional_int(request.args.get("assignment_id")),
        trainee_id=parse_optional_int(request.args.get("trainee_id")),
        status=status_filter,
    )
    return jsonify({"submissions": [_submission_out(s) for s in submissions]})


@bp.get("/<int:submission_id>")
def get_submission(submission_id: int):
    user = get_current_user()
    db = get_db()
    with domain_errors(db):
        submission = SubmissionsRepository(db).get_visible(submission_id, user)
    return jsonify({"submission": _submission_out(submission)})


@bp.post("")
def create_submission():
    trainee = require_roles(RolesEnum.TRAINEE)
    enforce_csrf()
    payload = validate_payload(SubmissionIn)
    db = get_db()
    with domain_errors(db):
        submission = SubmissionsRepository(db).create(
            trainee,
            payload.assignment_id,
            content=payload.content,
            file_url=payload.file_url,
            external_link=payload.external_link,
        )
    return jsonify({"submission": _submission_out(submission)}), 201


@bp.patch("/<int:submission_id>")
def resubmit(submission_id: int):
    trainee = require_roles(RolesEnum.TRAINEE)
    enforce_csrf()
    payload = validate_payload(SubmissionUpdateIn)
    db = get_db()
    with domain_errors(db):
        submission = SubmissionsRepository(db).resubmit(
            submission_id,
            trainee,
            content=payload.content,
            file_url=payload.file_url,
            external_link=payload.external_link,
        )
    return jsonify({"submission": _submission_out(submission)})


@bp.post("/<int:submission_id>/feedback")
def review_submission(submission_id: int):
    reviewer = require_roles(RolesEnum.ADMIN, RolesEnum.MENTOR)
    enforce_csrf()
    payload = validate_payload(ReviewIn)
    db = get_db()
    with domain_errors(db):
        submission = SubmissionsRepository(db).review(
            submission_id,
            reviewer,
            status=payload.status,
            comment=payload.comment,
            score=payload.score,
            passed=payload.passed,
            grade=payload.grade,
            admin_comment=payload.admin_comment,
        )
    send_submission_reviewed_email(
        email=submission.trainee.email,
        name=submission.trainee.name,
        assignment_title=submission.assignment.title,
        status=submission.status.value,
    )
    return jsonify({"submission": _submission_out(submission)})


@bp.post("/<int:submission_id>/reassign")
def reassign_submission(submission_id: int):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(ReassignIn)
    db = get_db()
    with domain_errors(db):
        submission = SubmissionsRepository(db).reassign(
            submission_id, payload.reviewer_id, actor_id=admin.user_id
        )
    return jsonify({"submission": _submission_out(submission)})
