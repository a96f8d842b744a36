from __future__ import annotations

from flask import Blueprint, jsonify

from academy.core.db import get_db
from academy.models.enrollments import EnrollmentOut
from academy.models.roles import STAFF_ROLES
from academy.repositories.CohortsRepository import CohortsRepository
from academy.routes import domain_errors
from academy.services.email import send_progress_reminder_email
from academy.services.security import enforce_csrf, require_roles


bp = Blueprint("mentor", __name__, url_prefix="/mentor")


def _reminder_out(enrollment) -> dict:
    data = EnrollmentOut.from_orm_enrollment(enrollment).model_dump(mode="json")
    data["cohort_name"] = enrollment.cohort.name if enrollment.cohort else None
    return data


@bp.get("/reminders")
def reminder_candidates():
    user = require_roles(*STAFF_ROLES)
    enrollments = CohortsRepository(get_db()).reminder_candidates(user)
    return jsonify({"enrollments": [_reminder_out(e) for e in enrollments]})


@bp.post("/reminders/<int:enrollment_id>")
def send_reminder(enrollment_id: int):
    user = require_roles(*STAFF_ROLES)
    enforce_csrf()
    db = get_db()
    with domain_errors(db):
        enrollment = CohortsRepository(db).record_reminder(enrollment_id, user)
    program = enrollment.cohort.program if enrollment.cohort else None
    sent = send_progress_reminder_email(
        email=enrollment.trainee.email,
        name=enrollment.trainee.name,
        program_name=program.name if program else None,
    )
    return jsonify({"enrollment": _reminder_out(enrollment), "email_sent": sent})
