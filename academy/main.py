import logging

from flask import Flask, jsonify, request
from flask_cors import CORS as FlaskCORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from academy.core.db import close_db
from academy.core.settings import settings
from academy.routes import format_validation_error
from academy.routes.admin import bp as admin_bp
from academy.routes.assignments import bp as assignments_bp
from academy.routes.auth import bp as auth_bp
from academy.routes.certificates import bp as certificates_bp
from academy.routes.cohorts import bp as cohorts_bp
from academy.routes.courses import bp as courses_bp
from academy.routes.lessons import bp as lessons_bp
from academy.routes.me import bp as me_bp
from academy.routes.mentor import bp as mentor_bp
from academy.routes.modules import bp as modules_bp
from academy.routes.programs import bp as programs_bp
from academy.routes.schedule import bp as schedule_bp
from academy.routes.submissions import bp as submissions_bp
from academy.routes.uploads import bp as uploads_bp


def create_app() -> Flask:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes

    allowed_origins = settings.cors_allowed_origins_list() or [settings.API_ORIGIN]

    FlaskCORS(
        app,
        origins=allowed_origins,
        supports_credentials=True,
        expose_headers=settings.cors_expose_headers_list(),
        allow_headers=settings.cors_allow_headers_list(),
    )

    if settings.is_production:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            SESSION_COOKIE_SAMESITE="None",
        )

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in settings.cors_origin_set:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = (
                settings.cors_allow_headers_string()
            )
            response.headers["Access-Control-Allow-Methods"] = (
                "GET,POST,PUT,DELETE,OPTIONS,PATCH"
            )
        return response

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"detail": format_validation_error(exc)}), 422

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        response = jsonify({"detail": exc.description})
        response.status_code = exc.code or 500
        return response

    for blueprint in (
        auth_bp,
        me_bp,
        programs_bp,
        cohorts_bp,
        courses_bp,
        modules_bp,
        lessons_bp,
        assignments_bp,
        submissions_bp,
        certificates_bp,
        schedule_bp,
        mentor_bp,
        uploads_bp,
        admin_bp,
    ):
        app.register_blueprint(blueprint)

    app.teardown_appcontext(close_db)

    @app.route("/healthz", methods=["GET", "HEAD"])
    def healthz():
        return ("", 200)

    return app


app = create_app()
