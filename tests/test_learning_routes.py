from academy.models.roles import RolesEnum


def _lessons(built, index=0):
    return built.lessons[built.modules[index].id]


def _assignment(built, index=0):
    return built.assignments[built.modules[index].id]


def open_lessons(client, headers, lessons):
    for lesson in lessons:
        r = client.post(f"/lessons/{lesson.id}/access", headers=headers)
        assert r.status_code == 200, r.get_data(as_text=True)


def test_trainee_lists_only_enrolled_programs(
    client, db_session, build_program, trainee, login_as
):
    mine = build_program(trainees=[trainee], name="Mine")
    build_program(name="Someone else's")
    login_as(trainee)

    r = client.get("/programs")
    assert r.status_code == 200, r.get_data(as_text=True)
    assert [p["id"] for p in r.get_json()["programs"]] == [mine.program.id]


def test_learning_path_marks_locks(client, db_session, build_program, trainee, login_as):
    built = build_program(modules=2, trainees=[trainee])
    login_as(trainee)

    r = client.get(f"/programs/{built.program.id}/learning-path")
    assert r.status_code == 200, r.get_data(as_text=True)
    path = r.get_json()["learning_path"]
    first, second = path["modules"]
    assert first["locked"] is False
    assert [lesson["locked"] for lesson in first["lessons"]] == [False, True]
    assert first["assignments"][0]["locked"] is True
    assert second["locked"] is True
    assert first["status"] == "ACTIVE"


def test_lesson_gating_over_http(client, db_session, build_program, trainee, login_as):
    built = build_program(trainees=[trainee])
    first, second = _lessons(built)
    headers = login_as(trainee)

    assert client.get(f"/lessons/{second.id}").status_code == 403
    assert client.post(f"/lessons/{second.id}/access", headers=headers).status_code == 403

    open_lessons(client, headers, [first])
    r = client.get(f"/lessons/{second.id}")
    assert r.status_code == 200, r.get_data(as_text=True)
    assert r.get_json()["lesson"]["title"] == second.title


def test_lesson_access_requires_csrf(client, db_session, build_program, trainee, login_as):
    built = build_program(trainees=[trainee])
    login_as(trainee)
    r = client.post(f"/lessons/{_lessons(built)[0].id}/access")
    assert r.status_code == 403


def test_staff_reads_lessons_without_gating(
    client, db_session, build_program, mentor, login_as
):
    built = build_program()
    login_as(mentor)
    r = client.get(f"/lessons/{_lessons(built)[1].id}")
    assert r.status_code == 200, r.get_data(as_text=True)


def test_submission_before_lessons_is_forbidden(
    client, db_session, build_program, trainee, login_as
):
    built = build_program(trainees=[trainee])
    headers = login_as(trainee)
    r = client.post(
        "/submissions",
        json={"assignment_id": _assignment(built).id, "content": "early"},
        headers=headers,
    )
    assert r.status_code == 403, r.get_data(as_text=True)


def test_empty_submission_is_rejected(client, db_session, build_program, trainee, login_as):
    built = build_program(trainees=[trainee])
    headers = login_as(trainee)
    open_lessons(client, headers, _lessons(built))
    r = client.post(
        "/submissions", json={"assignment_id": _assignment(built).id}, headers=headers
    )
    assert r.status_code == 400, r.get_data(as_text=True)


def test_full_review_flow_completes_module(
    client, db_session, build_program, trainee, mentor, admin, login_as
):
    built = build_program(modules=2, trainees=[trainee])
    headers = login_as(trainee)
    open_lessons(client, headers, _lessons(built))

    r = client.post(
        "/submissions",
        json={"assignment_id": _assignment(built).id, "content": "<p>Prototype</p>"},
        headers=headers,
    )
    assert r.status_code == 201, r.get_data(as_text=True)
    submission = r.get_json()["submission"]
    assert submission["status"] == "PENDING"

    r = client.get(f"/programs/{built.program.id}/progress")
    assert r.get_json()["progress"]["modules"][0]["status"] == "PENDING_REVIEW"

    mentor_headers = login_as(mentor)
    r = client.post(
        f"/submissions/{submission['id']}/feedback",
        json={"status": "approved", "comment": "Great", "score": 95},
        headers=mentor_headers,
    )
    assert r.status_code == 200, r.get_data(as_text=True)
    body = r.get_json()["submission"]
    assert body["status"] == "PENDING_ADMIN_APPROVAL"
    assert body["feedback"][0]["score"] == 95

    admin_headers = login_as(admin)
    r = client.post(
        f"/submissions/{submission['id']}/feedback",
        json={"status": "APPROVED", "admin_comment": "Confirmed"},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.get_data(as_text=True)
    body = r.get_json()["submission"]
    assert body["status"] == "APPROVED"
    assert len(body["feedback"]) == 1
    assert body["feedback"][0]["mentor_id"] == mentor.user_id
    assert body["feedback"][0]["admin_comment"] == "Confirmed"
    assert body["feedback"][0]["admin_approved_at"] is not None

    r = client.get(
        f"/programs/{built.program.id}/progress?trainee_id={trainee.user_id}"
    )
    assert r.status_code == 200, r.get_data(as_text=True)
    progress = r.get_json()["progress"]
    assert progress["modules"][0]["status"] == "COMPLETED"
    assert progress["modules"][0]["percent_complete"] == 100
    assert progress["overall_percent"] == 50

    login_as(trainee)
    r = client.get(f"/lessons/{_lessons(built, 1)[0].id}")
    assert r.status_code == 200, r.get_data(as_text=True)


def test_admin_comment_without_mentor_feedback_is_rejected(
    client, db_session, build_program, trainee, admin, login_as
):
    built = build_program(trainees=[trainee])
    headers = login_as(trainee)
    open_lessons(client, headers, _lessons(built))
    r = client.post(
        "/submissions",
        json={"assignment_id": _assignment(built).id, "content": "work"},
        headers=headers,
    )
    submission_id = r.get_json()["submission"]["id"]

    admin_headers = login_as(admin)
    r = client.post(
        f"/submissions/{submission_id}/feedback",
        json={"status": "APPROVED", "admin_comment": "Looks fine"},
        headers=admin_headers,
    )
    assert r.status_code == 400, r.get_data(as_text=True)
    assert "No mentor feedback found" in r.get_json()["detail"]

    r = client.get(f"/submissions/{submission_id}")
    body = r.get_json()["submission"]
    assert body["status"] == "PENDING"
    assert body["feedback"] == []


def test_trainee_cannot_review(client, db_session, build_program, trainee, login_as):
    built = build_program(trainees=[trainee])
    headers = login_as(trainee)
    open_lessons(client, headers, _lessons(built))
    r = client.post(
        "/submissions",
        json={"assignment_id": _assignment(built).id, "content": "work"},
        headers=headers,
    )
    submission_id = r.get_json()["submission"]["id"]

    r = client.post(
        f"/submissions/{submission_id}/feedback",
        json={"status": "APPROVED"},
        headers=headers,
    )
    assert r.status_code == 403


def test_trainee_sees_only_own_submissions(
    client, db_session, build_program, make_user, login_as
):
    first = make_user(RolesEnum.TRAINEE, name="First")
    second = make_user(RolesEnum.TRAINEE, name="Second")
    built = build_program(trainees=[first, second])

    headers = login_as(first)
    open_lessons(client, headers, _lessons(built))
    r = client.post(
        "/submissions",
        json={"assignment_id": _assignment(built).id, "external_link": "https://x.test"},
        headers=headers,
    )
    submission_id = r.get_json()["submission"]["id"]

    login_as(second)
    assert client.get("/submissions").get_json()["submissions"] == []
    assert client.get(f"/submissions/{submission_id}").status_code == 403


def test_progress_requires_trainee_id_for_staff(
    client, db_session, build_program, mentor, login_as
):
    built = build_program()
    login_as(mentor)
    r = client.get(f"/programs/{built.program.id}/progress")
    assert r.status_code == 400


def test_trainee_cannot_read_other_progress(
    client, db_session, build_program, trainee, make_user, login_as
):
    other = make_user()
    built = build_program(trainees=[trainee, other])
    login_as(trainee)
    r = client.get(f"/programs/{built.program.id}/progress?trainee_id={other.user_id}")
    assert r.status_code == 403


def test_validation_error_shape(client, db_session, trainee, login_as):
    headers = login_as(trainee)
    r = client.post("/submissions", json={"content": "no assignment"}, headers=headers)
    assert r.status_code == 422
    detail = r.get_json()["detail"]
    assert detail[0]["loc"] == ["assignment_id"]
