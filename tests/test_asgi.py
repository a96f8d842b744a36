from flask import Flask
from uvicorn.middleware.wsgi import WSGIMiddleware

from academy.asgi import app, build_asgi_app


def test_asgi_app_wraps_flask_app():
    assert isinstance(app, WSGIMiddleware)
    assert isinstance(app.app, Flask)
    assert "healthz" in app.app.view_functions


def test_build_asgi_app_returns_fresh_wrapper():
    other = build_asgi_app()
    assert other is not app
    assert other.app is not app.app
