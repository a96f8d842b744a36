"""ASGI entrypoint for the Academy API.

    uvicorn academy.asgi:app
"""

from uvicorn.middleware.wsgi import WSGIMiddleware

from academy.main import create_app


def build_asgi_app() -> WSGIMiddleware:
    """Wrap a fresh Academy Flask app so Uvicorn can serve it."""
    return WSGIMiddleware(create_app())


app = build_asgi_app()
