from __future__ import annotations

from flask import Blueprint, jsonify, request, send_from_directory

from academy.core.db import get_db
from academy.routes import domain_errors
from academy.services.security import enforce_csrf, get_current_user
from academy.services.uploads import resolve_upload, save_upload


bp = Blueprint("uploads", __name__, url_prefix="/uploads")


@bp.post("/<string:subdir>")
def upload_file(subdir: str):
    get_current_user()
    enforce_csrf()
    with domain_errors(get_db()):
        stored = save_upload(request.files.get("file"), subdir)
    return jsonify(stored), 201


@bp.get("/<string:subdir>/<string:filename>")
def get_file(subdir: str, filename: str):
    get_current_user()
    with domain_errors(get_db()):
        directory = resolve_upload(subdir, filename)
    return send_from_directory(directory, filename)
