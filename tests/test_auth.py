# tests/test_auth.py
import uuid
from http.cookies import SimpleCookie

from sqlalchemy import select

from academy.core.settings import settings
from academy.models.audit_logs import AuditLog
from academy.models.roles import RolesEnum
from academy.models.users import User
from academy.repositories.UsersRepository import UsersRepository

# ---------- helpers ----------


def unique_email(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}@example.com"


def get_cookie_from_response(resp, name=None):
    name = name or settings.COOKIE_NAME
    for header in resp.headers.getlist("Set-Cookie"):
        cookies = SimpleCookie()
        cookies.load(header)
        if name in cookies:
            return cookies[name]
    return None


def register_payload(email: str, **overrides) -> dict:
    payload = {
        "email": email,
        "password": "Testpass123",
        "name": "Test User",
    }
    payload.update(overrides)
    return payload


# ---------- tests: register ----------


def test_register_success(client, db_session):
    email = unique_email("register")

    r = client.post("/auth/register", json=register_payload(email))
    assert r.status_code == 201, r.get_data(as_text=True)
    data = r.get_json()["user"]
    assert data["email"] == email
    assert isinstance(data["user_id"], int)
    assert data["role"] == RolesEnum.TRAINEE.value
    # hash must never leak
    assert "password_hash" not in r.get_data(as_text=True)
    assert r.headers.get("X-CSRF-Token")
    assert get_cookie_from_response(r) is not None


def test_register_conflict_on_duplicate_email(client, db_session):
    email = unique_email("dup")

    r1 = client.post("/auth/register", json=register_payload(email))
    assert r1.status_code == 201, r1.get_data(as_text=True)

    r2 = client.post("/auth/register", json=register_payload(email.upper()))
    assert r2.status_code == 409, r2.get_data(as_text=True)


def test_register_rejects_staff_role_without_admin(client, db_session):
    r = client.post(
        "/auth/register", json=register_payload(unique_email("mentor"), role="mentor")
    )
    assert r.status_code == 403, r.get_data(as_text=True)


def test_admin_registers_mentor_without_switching_session(
    client, db_session, admin, login_as
):
    headers = login_as(admin)
    email = unique_email("newmentor")

    r = client.post(
        "/auth/register",
        json=register_payload(email, role="MENTOR", name="New Mentor"),
        headers=headers,
    )
    assert r.status_code == 201, r.get_data(as_text=True)
    assert r.get_json()["user"]["role"] == RolesEnum.MENTOR.value
    assert get_cookie_from_response(r) is None

    me = client.get("/me")
    assert me.get_json()["user"]["user_id"] == admin.user_id

    entry = db_session.execute(
        select(AuditLog).where(AuditLog.action == "USER_REGISTER")
    ).scalar_one()
    assert entry.actor_id == admin.user_id


def test_register_fails_with_short_password(client, db_session):
    r = client.post(
        "/auth/register",
        json=register_payload(unique_email("short"), password="short"),
    )
    assert r.status_code == 422
    assert isinstance(r.get_json()["detail"], list)


def test_register_fails_with_missing_fields(client, db_session):
    r = client.post("/auth/register", json={"email": unique_email("missing")})
    assert r.status_code == 422


def test_register_fails_with_invalid_role(client, db_session):
    r = client.post(
        "/auth/register",
        json=register_payload(unique_email("badrole"), role="NotARole"),
    )
    assert r.status_code == 422


# ---------- tests: login ----------


def test_login_success_and_cookie_flags(client, db_session):
    email = unique_email("login_ok")
    reg = client.post("/auth/register", json=register_payload(email))
    assert reg.status_code == 201, reg.get_data(as_text=True)

    r1 = client.post(
        "/auth/login",
        json={"email": email, "password": "Testpass123", "remember": False},
    )
    assert r1.status_code == 200, r1.get_data(as_text=True)
    ck1 = get_cookie_from_response(r1)
    assert ck1 is not None
    assert "httponly" in ck1.output().lower()
    assert r1.headers.get("X-CSRF-Token")
    assert r1.get_json()["user"]["email"] == email

    r2 = client.post(
        "/auth/login",
        json={"email": email, "password": "Testpass123", "remember": True},
    )
    assert r2.status_code == 200, r2.get_data(as_text=True)
    ck2 = get_cookie_from_response(r2)
    assert ck2 is not None
    assert ("max-age" in ck2.output().lower()) or ("expires=" in ck2.output().lower())


def test_login_fails_with_wrong_password(client, db_session, trainee):
    r = client.post(
        "/auth/login",
        json={"email": trainee.email, "password": "WRONG-pass", "remember": False},
    )
    assert r.status_code == 401, r.get_data(as_text=True)


def test_login_fails_with_unknown_email(client, db_session):
    r = client.post(
        "/auth/login",
        json={"email": unique_email("nope"), "password": "x", "remember": False},
    )
    assert r.status_code == 401, r.get_data(as_text=True)


def test_login_rejects_deactivated_account(
    client, db_session, admin, trainee, default_password
):
    UsersRepository(db_session).SetActive(trainee.user_id, False, actor_id=admin.user_id)

    r = client.post(
        "/auth/login",
        json={"email": trainee.email, "password": default_password},
    )
    assert r.status_code == 403, r.get_data(as_text=True)


def test_login_is_rate_limited(client, db_session, trainee):
    body = {"email": trainee.email, "password": "WRONG-pass"}
    statuses = [
        client.post("/auth/login", json=body).status_code
        for _ in range(settings.auth_rate_limit_max_attempts + 1)
    ]
    assert statuses[-1] == 429
    assert set(statuses[:-1]) == {401}


# ---------- tests: logout ----------


def test_logout_clears_cookie(client, db_session):
    r = client.post("/auth/logout")
    assert r.status_code == 200, r.get_data(as_text=True)
    ck = get_cookie_from_response(r)
    assert ck is not None
    out = ck.output().lower()
    assert ("max-age=0" in out) or ("expires=" in out)
    assert get_cookie_from_response(r, settings.CSRF_COOKIE_NAME) is not None


# ---------- tests: storage ----------


def test_password_is_hashed_in_db(client, db_session):
    email = unique_email("hash")
    client.post("/auth/register", json=register_payload(email))

    user = db_session.execute(select(User).where(User.email == email)).scalar_one()
    assert user.password_hash != "Testpass123"
    assert isinstance(user.password_hash, str) and len(user.password_hash) > 20
