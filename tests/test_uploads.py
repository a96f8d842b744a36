import io


def _upload(client, headers, subdir="submissions", content=b"%PDF-1.4 test", name="report.pdf"):
    return client.post(
        f"/uploads/{subdir}",
        data={"file": (io.BytesIO(content), name)},
        content_type="multipart/form-data",
        headers=headers,
    )


def test_upload_and_download(client, db_session, trainee, login_as):
    headers = login_as(trainee)
    resp = _upload(client, headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body["original_name"] == "report.pdf"
    assert body["size"] == len(b"%PDF-1.4 test")
    assert body["url"].startswith("/uploads/submissions/")

    fetched = client.get(body["url"])
    assert fetched.status_code == 200
    assert fetched.data == b"%PDF-1.4 test"


def test_upload_rejects_bad_extension(client, db_session, trainee, login_as):
    headers = login_as(trainee)
    resp = _upload(client, headers, name="payload.exe")
    assert resp.status_code == 400
    assert "not allowed" in resp.get_json()["detail"]


def test_upload_rejects_empty_file(client, db_session, trainee, login_as):
    headers = login_as(trainee)
    resp = _upload(client, headers, content=b"")
    assert resp.status_code == 400
    assert resp.get_json()["detail"] == "File is empty"


def test_upload_unknown_folder(client, db_session, trainee, login_as):
    headers = login_as(trainee)
    resp = _upload(client, headers, subdir="secrets")
    assert resp.status_code == 404


def test_upload_requires_csrf(client, db_session, trainee, login_as):
    login_as(trainee)
    resp = _upload(client, {})
    assert resp.status_code == 403


def test_upload_requires_login(client, db_session):
    resp = _upload(client, {})
    assert resp.status_code == 401


def test_download_unknown_file(client, db_session, trainee, login_as):
    login_as(trainee)
    resp = client.get("/uploads/submissions/missing.pdf")
    assert resp.status_code == 404
