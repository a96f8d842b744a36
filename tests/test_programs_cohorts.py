from datetime import timedelta

from academy.core.timeutils import utcnow
from academy.models.progress import Progress
from academy.models.roles import RolesEnum


def _window(days_before=1, days_after=30):
    now = utcnow()
    return {
        "start_date": (now - timedelta(days=days_before)).isoformat(),
        "end_date": (now + timedelta(days=days_after)).isoformat(),
    }


def test_admin_creates_program_inactive_and_sanitized(client, db_session, admin, login_as):
    headers = login_as(admin)
    r = client.post(
        "/programs",
        json={
            "name": "  Robotics  ",
            "description": "<p>Build</p><script>alert(1)</script>",
        },
        headers=headers,
    )
    assert r.status_code == 201, r.get_data(as_text=True)
    program = r.get_json()["program"]
    assert program["name"] == "Robotics"
    assert program["status"] == "INACTIVE"
    assert "<script" not in program["description"]
    assert program["description"].startswith("<p>Build</p>")


def test_mentor_cannot_create_program(client, db_session, mentor, login_as):
    headers = login_as(mentor)
    r = client.post("/programs", json={"name": "Nope"}, headers=headers)
    assert r.status_code == 403


def test_program_activation_needs_a_cohort(client, db_session, admin, login_as):
    headers = login_as(admin)
    program_id = client.post(
        "/programs", json={"name": "Lonely"}, headers=headers
    ).get_json()["program"]["id"]

    r = client.post(f"/programs/{program_id}/activate", headers=headers)
    assert r.status_code == 400

    r = client.post(
        "/cohorts",
        json={"name": "Spring", "program_id": program_id, **_window()},
        headers=headers,
    )
    assert r.status_code == 201, r.get_data(as_text=True)
    assert client.get(f"/programs/{program_id}").get_json()["program"]["status"] == "ACTIVE"


def test_assigning_no_cohorts_deactivates_program(
    client, db_session, build_program, admin, login_as
):
    built = build_program()
    headers = login_as(admin)
    r = client.put(
        f"/programs/{built.program.id}/cohorts", json={"cohort_ids": []}, headers=headers
    )
    assert r.status_code == 200, r.get_data(as_text=True)
    assert r.get_json()["program"]["status"] == "INACTIVE"

    r = client.put(
        f"/programs/{built.program.id}/cohorts",
        json={"cohort_ids": [built.cohort.id]},
        headers=headers,
    )
    assert r.get_json()["program"]["status"] == "ACTIVE"

    r = client.put(
        f"/programs/{built.program.id}/cohorts", json={"cohort_ids": [9999]}, headers=headers
    )
    assert r.status_code == 404


def test_cohort_dates_and_mentor_are_validated(
    client, db_session, admin, trainee, login_as
):
    headers = login_as(admin)
    now = utcnow()
    r = client.post(
        "/cohorts",
        json={
            "name": "Backwards",
            "start_date": now.isoformat(),
            "end_date": (now - timedelta(days=1)).isoformat(),
        },
        headers=headers,
    )
    assert r.status_code == 400

    r = client.post(
        "/cohorts",
        json={"name": "Bad mentor", "mentor_id": trainee.user_id, **_window()},
        headers=headers,
    )
    assert r.status_code == 400


def test_enrollment_skips_non_trainees_and_seeds_progress(
    client, db_session, build_program, admin, mentor, trainee, login_as
):
    built = build_program(modules=3)
    headers = login_as(admin)
    r = client.post(
        f"/cohorts/{built.cohort.id}/enrollments",
        json={"trainee_ids": [trainee.user_id, mentor.user_id]},
        headers=headers,
    )
    assert r.status_code == 201, r.get_data(as_text=True)
    assert r.get_json() == {"enrolled": [trainee.user_id], "skipped": [mentor.user_id]}

    rows = db_session.query(Progress).filter(Progress.trainee_id == trainee.user_id).all()
    assert len(rows) == 3

    again = client.post(
        f"/cohorts/{built.cohort.id}/enrollments",
        json={"trainee_ids": [trainee.user_id]},
        headers=headers,
    )
    assert again.status_code == 201
    listing = client.get(f"/cohorts/{built.cohort.id}/enrollments").get_json()
    assert len(listing["enrollments"]) == 1


def test_cohort_visibility(
    client, db_session, build_program, trainee, mentor, make_user, login_as
):
    built = build_program(trainees=[trainee])
    outsider = make_user()
    other_mentor = make_user(RolesEnum.MENTOR)

    login_as(mentor)
    assert client.get(f"/cohorts/{built.cohort.id}/enrollments").status_code == 200
    assert [c["id"] for c in client.get("/cohorts").get_json()["cohorts"]] == [
        built.cohort.id
    ]

    login_as(other_mentor)
    assert client.get(f"/cohorts/{built.cohort.id}").status_code == 403
    assert client.get(f"/cohorts/{built.cohort.id}/enrollments").status_code == 403

    login_as(trainee)
    assert client.get(f"/cohorts/{built.cohort.id}").status_code == 200

    login_as(outsider)
    assert client.get(f"/cohorts/{built.cohort.id}").status_code == 403
    assert client.get("/cohorts").get_json()["cohorts"] == []


def test_mentor_course_waits_for_admin_approval(
    client, db_session, build_program, mentor, admin, trainee, login_as
):
    built = build_program(trainees=[trainee])
    headers = login_as(mentor)
    r = client.post("/courses", json={"name": "Advanced CAD"}, headers=headers)
    assert r.status_code == 201, r.get_data(as_text=True)
    course = r.get_json()["course"]
    assert course["status"] == "PENDING"

    login_as(trainee)
    assert client.get(f"/courses/{course['id']}").status_code == 404
    assert course["id"] not in [c["id"] for c in client.get("/courses").get_json()["courses"]]

    admin_headers = login_as(admin)
    r = client.post(
        f"/courses/{course['id']}/approve",
        json={"program_id": built.program.id},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.get_data(as_text=True)
    approved = r.get_json()["course"]
    assert approved["status"] == "ACTIVE"
    assert approved["program_id"] == built.program.id


def test_second_mandatory_assignment_rejected(
    client, db_session, build_program, mentor, login_as
):
    built = build_program(modules=1)
    headers = login_as(mentor)
    module_id = built.modules[0].id

    r = client.post(
        "/assignments",
        json={"module_id": module_id, "title": "Stretch goal"},
        headers=headers,
    )
    assert r.status_code == 201, r.get_data(as_text=True)
    assert r.get_json()["assignment"]["mandatory"] is False

    r = client.post(
        "/assignments",
        json={"module_id": module_id, "title": "Second core", "mandatory": True},
        headers=headers,
    )
    assert r.status_code == 400


def test_structure_and_module_validation_routes(
    client, db_session, build_program, admin, login_as
):
    built = build_program(modules=1)
    headers = login_as(admin)
    r = client.post(
        "/modules", json={"course_id": built.course.id, "title": "Draft"}, headers=headers
    )
    assert r.status_code == 201, r.get_data(as_text=True)
    draft_id = r.get_json()["module"]["id"]

    report = client.get(f"/modules/{draft_id}/validation").get_json()
    assert report["status"] == "incomplete"

    structure = client.get(f"/programs/{built.program.id}/structure").get_json()
    assert structure["valid"] is False
    assert [m["module_id"] for m in structure["modules"]] == [built.modules[0].id, draft_id]


def test_deleting_program_detaches_cohorts(
    client, db_session, build_program, admin, login_as
):
    built = build_program()
    headers = login_as(admin)
    r = client.delete(f"/programs/{built.program.id}", headers=headers)
    assert r.status_code == 200, r.get_data(as_text=True)

    assert client.get(f"/programs/{built.program.id}").status_code == 404
    cohort = client.get(f"/cohorts/{built.cohort.id}").get_json()["cohort"]
    assert cohort["program_id"] is None
