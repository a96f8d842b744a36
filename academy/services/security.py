import hmac
import hashlib
import jwt
import secrets
import time
from datetime import datetime, timedelta, timezone
from passlib.hash import bcrypt
from flask import Response, request, has_request_context
from werkzeug.exceptions import Unauthorized, Forbidden

from academy.core.db import get_db
from academy.core.settings import settings
from academy.models.users import User

JWT_ALG = "HS256"
CSRF_TTL_SECONDS = 12 * 60 * 60  # 12 hours
REMEMBER_MAX_AGE = 1 * 24 * 60 * 60


def _secure_cookie_flag() -> bool:
    if settings.ENV != "dev":
        return True

    if not has_request_context():
        return False

    if request.is_secure:
        return True

    forwarded_proto = request.headers.get("X-Forwarded-Proto", "")
    if forwarded_proto.lower().split(",", 1)[0].strip() == "https":
        return True

    return False


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str | bytes) -> bool:
    return bcrypt.verify(password, password_hash)


def sign_session(payload: dict, expires_in: timedelta = timedelta(days=1)) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "iat": now,
        "exp": now + expires_in,
        **payload,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=JWT_ALG)


def session_payload(user: User) -> dict:
    return {"id": user.user_id, "email": user.email, "role": user.role_code}


def _cookie_options(*, httponly: bool) -> dict:
    secure = _secure_cookie_flag()
    return {
        "httponly": httponly,
        "secure": secure,
        "samesite": "none" if secure else "lax",
        "path": "/",
    }


def _csrf_secret() -> bytes:
    secret = settings.CSRF_SECRET or settings.JWT_SECRET
    return secret.encode("utf-8")


def _sign_csrf_payload(payload: str) -> str:
    secret = _csrf_secret()
    return hmac.new(secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()


def generate_csrf_token(user_id: str) -> str:
    issued_at = int(time.time())
    nonce = secrets.token_urlsafe(16)
    payload = f"{user_id}:{issued_at}:{nonce}"
    signature = _sign_csrf_payload(payload)
    return f"{issued_at}:{nonce}:{signature}"


def start_session(res: Response, user: User, remember: bool) -> str:
    """Attach session and CSRF cookies for ``user``; returns the CSRF token."""
    # remember -> 1 day; otherwise browser-session cookies
    max_age = REMEMBER_MAX_AGE if remember else None
    csrf_token = generate_csrf_token(str(user.user_id))
    res.set_cookie(
        settings.COOKIE_NAME,
        sign_session(session_payload(user)),
        max_age=max_age,
        **_cookie_options(httponly=True),
    )
    # the frontend reads this one and echoes it back in X-CSRF-Token
    res.set_cookie(
        settings.CSRF_COOKIE_NAME,
        csrf_token,
        max_age=max_age,
        **_cookie_options(httponly=False),
    )
    res.headers["X-CSRF-Token"] = csrf_token
    return csrf_token


def end_session(res: Response) -> None:
    res.delete_cookie(settings.COOKIE_NAME, **_cookie_options(httponly=True))
    res.delete_cookie(settings.CSRF_COOKIE_NAME, **_cookie_options(httponly=False))


def _is_valid_csrf_token(user_id: str, token: str) -> bool:
    try:
        issued_raw, nonce, signature = token.split(":", 2)
        issued_at = int(issued_raw)
    except (ValueError, AttributeError):
        return False

    if (time.time() - issued_at) > CSRF_TTL_SECONDS:
        return False

    payload = f"{user_id}:{issued_at}:{nonce}"
    expected_signature = _sign_csrf_payload(payload)
    return hmac.compare_digest(signature, expected_signature)


def enforce_csrf(request_obj=None):
    req = request_obj or request
    header_token = None
    # Accept common header spellings so different clients can reuse the same token value
    normalized_headers = {k.lower(): v for k, v in req.headers.items()}
    header_candidates = (
        "x-csrf-token",
        "x-csrftoken",
        "x-xsrf-token",
        "x-xsrftoken",
        settings.CSRF_COOKIE_NAME.lower(),
    )
    for header_name in header_candidates:
        header_token = normalized_headers.get(header_name)
        if header_token:
            break
    cookie_token = req.cookies.get(settings.CSRF_COOKIE_NAME)

    if not header_token or not cookie_token:
        raise Forbidden(description="Missing CSRF token")

    if not hmac.compare_digest(header_token, cookie_token):
        raise Forbidden(description="Invalid CSRF token")

    user_id = get_current_user_id(req)
    if not _is_valid_csrf_token(str(user_id), header_token):
        raise Forbidden(description="Expired or invalid CSRF token")


def get_current_user_id(req=None) -> int:
    req = req or request
    token = req.cookies.get(settings.COOKIE_NAME)
    if not token:
        raise Unauthorized(description="Not authenticated")
    try:
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[JWT_ALG],
            options={"require": ["exp"]},
        )
        return int(decoded["id"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError):
        raise Unauthorized(description="Invalid session")


def get_current_user() -> User:
    user_id = get_current_user_id()
    db = get_db()
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise Unauthorized(description="Not authenticated")
    if not user.active:
        raise Unauthorized(description="Account is deactivated")
    return user


FORBID = Forbidden(description="Insufficient permissions")


def require_roles(*roles) -> User:
    user = get_current_user()
    allowed = {getattr(role, "value", role) for role in roles}
    if user.role_code not in allowed:
        raise FORBID
    return user
