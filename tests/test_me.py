import uuid


def unique_email(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}@example.com"


def register_and_login(client, db_session):  # noqa: ARG001 - fixture triggers DB seeding
    _ = db_session
    email = unique_email("me")
    payload = {"email": email, "password": "TestPass!123", "name": "Me Route"}
    register_resp = client.post("/auth/register", json=payload)
    assert register_resp.status_code == 201, register_resp.get_data(as_text=True)
    login_resp = client.post(
        "/auth/login",
        json={"email": email, "password": payload["password"], "remember": False},
    )
    assert login_resp.status_code == 200, login_resp.get_data(as_text=True)
    return login_resp


def test_me_requires_authentication(client, db_session):
    resp = client.get("/me")
    assert resp.status_code == 401
    assert resp.get_json()["detail"]


def test_me_returns_profile_and_csrf_header(client, db_session):
    login_resp = register_and_login(client, db_session)
    csrf_header = login_resp.headers.get("X-CSRF-Token")
    assert csrf_header, "login should return CSRF header"

    me_resp = client.get("/me")
    assert me_resp.status_code == 200, me_resp.get_data(as_text=True)
    payload = me_resp.get_json()
    assert payload["user"]["email"].endswith("@example.com")
    assert payload["user"]["name"] == "Me Route"
    assert payload["user"]["role"] == "TRAINEE"

    returned_csrf = me_resp.headers.get("X-CSRF-Token")
    assert returned_csrf == csrf_header


def test_update_profile_requires_csrf(client, db_session):
    register_and_login(client, db_session)
    resp = client.patch("/me", json={"name": "Renamed"})
    assert resp.status_code == 403


def test_update_profile(client, db_session):
    login_resp = register_and_login(client, db_session)
    headers = {"X-CSRF-Token": login_resp.headers["X-CSRF-Token"]}

    resp = client.patch(
        "/me", json={"name": "  Renamed  ", "phone": "+1 555 0100"}, headers=headers
    )
    assert resp.status_code == 200, resp.get_data(as_text=True)
    user = resp.get_json()["user"]
    assert user["name"] == "Renamed"
    assert user["phone"] == "+1 555 0100"


def test_update_profile_rejects_blank_name(client, db_session):
    login_resp = register_and_login(client, db_session)
    headers = {"X-CSRF-Token": login_resp.headers["X-CSRF-Token"]}
    resp = client.patch("/me", json={"name": "   "}, headers=headers)
    assert resp.status_code == 422
