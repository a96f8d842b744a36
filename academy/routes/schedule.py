from __future__ import annotations

import re
from datetime import date as date_type
from typing import Optional

from flask import Blueprint, abort, jsonify, request
from pydantic import BaseModel, Field, field_validator, model_validator

from academy.core.db import get_db
from academy.models.roles import RolesEnum
from academy.models.schedule_events import (
    ScheduledEventOut,
    ScheduleEventType,
    ScheduleRequestStatus,
)
from academy.models.users import UserSummary
from academy.repositories.ScheduleEventsRepository import ScheduleEventsRepository
from academy.routes import domain_errors, validate_payload
from academy.services.sanitizer import sanitize_optional_html
from academy.services.security import enforce_csrf, require_roles


bp = Blueprint("schedule", __name__, url_prefix="/schedule")

_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ScheduleEventIn(BaseModel):
    date: date_type
    event_type: ScheduleEventType
    location: str = Field(..., min_length=1)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    request_coffee: bool = False
    mentor_id: Optional[int] = None
    equipment_needed: Optional[str] = None
    team_members: Optional[str] = None
    description: Optional[str] = None
    module_id: Optional[int] = None
    lesson_id: Optional[int] = None

    @field_validator("event_type", mode="before")
    @classmethod
    def normalize_type(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not _TIME.match(value):
            raise ValueError("Time must use the HH:MM format.")
        return value

    @field_validator("equipment_needed", "team_members", "description")
    @classmethod
    def clean_text(cls, value: Optional[str]) -> Optional[str]:
        return sanitize_optional_html(value)

    @model_validator(mode="after")
    def check_range(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("End time must be after start time.")
        return self


class DecisionIn(BaseModel):
    status: ScheduleRequestStatus

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


def _event_out(event) -> dict:
    return ScheduledEventOut.model_validate(event).model_dump(mode="json")


@bp.get("/context")
def planning_context():
    trainee = require_roles(RolesEnum.TRAINEE)
    ctx = ScheduleEventsRepository(get_db()).planning_context(trainee.user_id)
    mentor = UserSummary.from_orm_user(ctx["mentor"])
    return jsonify(
        {
            "locations": ctx["locations"],
            "event_types": ctx["event_types"],
            "mentor": mentor.model_dump(mode="json") if mentor else None,
            "modules": [
                {
                    "id": module.id,
                    "title": module.title,
                    "lessons": [
                        {"id": lesson.id, "title": lesson.title}
                        for lesson in module.lessons
                    ],
                }
                for module in ctx["modules"]
            ],
        }
    )


@bp.post("")
def create_event():
    trainee = require_roles(RolesEnum.TRAINEE)
    enforce_csrf()
    payload = validate_payload(ScheduleEventIn)
    fields = payload.model_dump(exclude={"date"})
    db = get_db()
    with domain_errors(db):
        event = ScheduleEventsRepository(db).create(
            trainee, event_date=payload.date, **fields
        )
    return jsonify({"event": _event_out(event)}), 201


@bp.get("/mine")
def my_events():
    trainee = require_roles(RolesEnum.TRAINEE)
    events = ScheduleEventsRepository(get_db()).list_for_trainee(trainee.user_id)
    return jsonify({"events": [_event_out(e) for e in events]})


@bp.get("")
def list_events():
    require_roles(RolesEnum.ADMIN)
    status = request.args.get("status")
    try:
        status_filter = ScheduleRequestStatus(status.upper()) if status else None
    except ValueError:
        abort(400, description="Unknown request status")
    events = ScheduleEventsRepository(get_db()).list_all(status=status_filter)
    return jsonify({"events": [_event_out(e) for e in events]})


@bp.patch("/<int:event_id>")
def decide_event(event_id: int):
    require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(DecisionIn)
    db = get_db()
    with domain_errors(db):
        event = ScheduleEventsRepository(db).decide(event_id, payload.status)
    return jsonify({"event": _event_out(event)})
