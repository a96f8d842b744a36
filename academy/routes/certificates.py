from __future__ import annotations

import math
import os

from flask import Blueprint, abort, jsonify, request, send_from_directory
from pydantic import BaseModel, Field, field_validator

from academy.core.db import get_db
from academy.core.timeutils import isoformat
from academy.models.certificates import CertificateOut
from academy.models.roles import RolesEnum
from academy.repositories.CertificatesRepository import CertificatesRepository
from academy.routes import (
    client_identifier,
    domain_errors,
    parse_optional_int,
    to_json,
    validate_payload,
)
from academy.services.certificate_pdf import certificate_dir, verification_url
from academy.services.email import send_certificate_issued_email
from academy.services.qrcodes import qr_data_uri
from academy.services.rate_limiter import check_rate_limit
from academy.services.security import enforce_csrf, get_current_user, require_roles
from academy.services.uploads import PDF_FILENAME


bp = Blueprint("certificates", __name__, url_prefix="/certificates")


class IssueIn(BaseModel):
    program_id: int


class ApproveIn(BaseModel):
    trainee_id: int
    program_id: int


class RevokeIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("A revocation reason is required.")
        return cleaned


def _certificate_out(cert) -> dict:
    return CertificateOut.from_orm_certificate(cert).model_dump(mode="json")


@bp.get("")
def list_certificates():
    user = get_current_user()
    program_id = parse_optional_int(request.args.get("program_id"))
    if user.is_trainee:
        trainee_id = user.user_id
    else:
        trainee_id = parse_optional_int(request.args.get("trainee_id"))
    certs = CertificatesRepository(get_db()).list(
        trainee_id=trainee_id, program_id=program_id
    )
    return jsonify({"certificates": [_certificate_out(c) for c in certs]})


@bp.post("")
def issue_certificate():
    trainee = require_roles(RolesEnum.TRAINEE)
    enforce_csrf()
    payload = validate_payload(IssueIn)
    db = get_db()
    repo = CertificatesRepository(db)
    already_issued = repo.get_for_trainee_program(trainee.user_id, payload.program_id)
    with domain_errors(db):
        cert = repo.get_or_create(trainee.user_id, payload.program_id)
    if already_issued is None:
        send_certificate_issued_email(
            email=trainee.email,
            name=trainee.name,
            program_name=cert.program.name,
            certificate_id=cert.certificate_id,
        )
    return jsonify({"certificate": _certificate_out(cert)}), (
        200 if already_issued else 201
    )


@bp.get("/eligibility")
def eligibility():
    user = get_current_user()
    program_id = parse_optional_int(request.args.get("program_id"))
    if program_id is None:
        abort(400, description="program_id is required")
    if user.is_trainee:
        trainee_id = user.user_id
    else:
        trainee_id = parse_optional_int(request.args.get("trainee_id"))
        if trainee_id is None:
            abort(400, description="trainee_id is required")
    status = CertificatesRepository(get_db()).eligibility(trainee_id, program_id)
    return jsonify(to_json(status))


@bp.post("/approve")
def approve_certificate():
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(ApproveIn)
    db = get_db()
    with domain_errors(db):
        cert = CertificatesRepository(db).approve(
            payload.trainee_id, payload.program_id, admin_id=admin.user_id
        )
    return jsonify({"certificate": _certificate_out(cert)})


@bp.post("/<string:certificate_id>/revoke")
def revoke_certificate(certificate_id: str):
    admin = require_roles(RolesEnum.ADMIN)
    enforce_csrf()
    payload = validate_payload(RevokeIn)
    db = get_db()
    with domain_errors(db):
        cert = CertificatesRepository(db).revoke(
            certificate_id, payload.reason, admin_id=admin.user_id
        )
    return jsonify({"certificate": _certificate_out(cert)})


@bp.get("/file/<string:filename>")
def download_certificate(filename: str):
    user = get_current_user()
    if not PDF_FILENAME.match(filename):
        abort(400, description="Invalid file name")
    cert = CertificatesRepository(get_db()).get_by_certificate_id(filename[: -len(".pdf")])
    if user.is_trainee and (cert is None or cert.trainee_id != user.user_id):
        abort(403, description="You can only download your own certificates")
    directory = os.path.abspath(certificate_dir())
    if not os.path.isfile(os.path.join(directory, filename)):
        abort(404, description="Certificate file not found")
    return send_from_directory(
        directory, filename, mimetype="application/pdf", as_attachment=True
    )


@bp.get("/verify/<string:certificate_id>")
def verify_certificate(certificate_id: str):
    retry_after = check_rate_limit("verify", client_identifier())
    if retry_after is not None:
        response = jsonify({"detail": "Too many verification requests."})
        response.status_code = 429
        response.headers["Retry-After"] = str(max(1, math.ceil(retry_after)))
        return response

    cert = CertificatesRepository(get_db()).get_by_certificate_id(certificate_id)
    if cert is None:
        abort(404, description="Certificate not found")

    if cert.is_revoked:
        return jsonify(
            {
                "valid": False,
                "certificate_id": cert.certificate_id,
                "revoked_at": isoformat(cert.revoked_at),
                "revoked_reason": cert.revoked_reason,
            }
        )

    url = verification_url(cert.certificate_id)
    return jsonify(
        {
            "valid": True,
            "certificate_id": cert.certificate_id,
            "trainee_name": cert.trainee.name,
            "program_name": cert.program.name,
            "issued_at": isoformat(cert.issued_at),
            "verification_url": url,
            "qr_code_data_uri": qr_data_uri(url),
        }
    )
