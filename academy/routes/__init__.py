from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from flask import abort, request
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from academy.core.errors import AccessDeniedError, DomainError, NotFoundError

_any_adapter = TypeAdapter(Any)


def format_validation_error(exc: ValidationError) -> list[dict]:
    """Return JSON-serializable validation errors."""
    return json.loads(exc.json(include_url=False))


def validate_payload(model_cls):
    data = request.get_json(silent=True) or {}
    return model_cls.model_validate(data)


def validate_args(model_cls):
    return model_cls.model_validate(request.args.to_dict())


def to_json(data: Any) -> Any:
    """Dump plain dicts holding enums and datetimes into JSON-ready values."""
    return _any_adapter.dump_python(data, mode="json")


def parse_optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description="Expected an integer")


@contextmanager
def domain_errors(db: Session) -> Iterator[None]:
    """Roll back and translate repository errors into HTTP errors."""
    try:
        yield
    except NotFoundError as exc:
        db.rollback()
        abort(404, description=str(exc))
    except AccessDeniedError as exc:
        db.rollback()
        abort(403, description=str(exc))
    except DomainError as exc:
        db.rollback()
        abort(400, description=str(exc))


def client_identifier() -> str:
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    ip = forwarded_for.split(",", 1)[0].strip() if forwarded_for else ""
    if not ip:
        ip = request.remote_addr or "unknown"
    return ip
