from datetime import timedelta

import pytest

from academy.core.errors import AccessDeniedError, DomainError
from academy.core.timeutils import utcnow
from academy.models.progress import ProgressStatus
from academy.models.roles import RolesEnum
from academy.models.submissions import SubmissionStatus
from academy.repositories.CohortsRepository import CohortsRepository
from academy.repositories.CurriculumRepository import CurriculumRepository
from academy.repositories.LearningPathRepository import LearningPathRepository
from academy.repositories.ProgressRepository import ProgressRepository, round_half_up
from academy.repositories.SubmissionsRepository import SubmissionsRepository


def open_all_lessons(db_session, trainee, lessons):
    path = LearningPathRepository(db_session)
    for lesson in lessons:
        path.record_lesson_access(trainee.user_id, lesson)


def complete_module(db_session, built, module, trainee, mentor, admin):
    open_all_lessons(db_session, trainee, built.lessons[module.id])
    repo = SubmissionsRepository(db_session)
    submission = repo.create(
        trainee, built.assignments[module.id].id, content="My work"
    )
    repo.review(submission.id, mentor, status=SubmissionStatus.APPROVED, comment="Nice")
    return repo.review(submission.id, admin, status=SubmissionStatus.APPROVED)


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(33.3) == 33


def test_enrollment_initializes_progress_rows(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])

    summary = ProgressRepository(db_session).get_program_progress(
        trainee.user_id, built.program.id
    )
    assert [m["module_id"] for m in summary["modules"]] == [m.id for m in built.modules]
    assert all(m["status"] == ProgressStatus.ACTIVE for m in summary["modules"])
    assert summary["overall_percent"] == 0
    assert summary["all_completed"] is False


def test_opening_lessons_alone_keeps_module_active(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])

    row = ProgressRepository(db_session).get(trainee.user_id, module.id)
    assert row.status == ProgressStatus.ACTIVE
    assert row.percent_complete == 0


def test_submission_moves_module_to_pending_review(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])

    SubmissionsRepository(db_session).create(
        trainee, built.assignments[module.id].id, external_link="https://example.com/x"
    )

    row = ProgressRepository(db_session).get(trainee.user_id, module.id)
    assert row.status == ProgressStatus.PENDING_REVIEW


def test_mentor_approval_needs_admin_confirmation(
    db_session, build_program, trainee, mentor, admin
):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])
    repo = SubmissionsRepository(db_session)
    submission = repo.create(trainee, built.assignments[module.id].id, content="Done")

    reviewed = repo.review(
        submission.id, mentor, status=SubmissionStatus.APPROVED, score=90
    )
    assert reviewed.status == SubmissionStatus.PENDING_ADMIN_APPROVAL
    progress = ProgressRepository(db_session)
    assert progress.get(trainee.user_id, module.id).status == ProgressStatus.PENDING_REVIEW

    approved = repo.review(submission.id, admin, status=SubmissionStatus.APPROVED)
    assert approved.status == SubmissionStatus.APPROVED
    row = progress.get(trainee.user_id, module.id)
    assert row.status == ProgressStatus.COMPLETED
    assert row.percent_complete == 100
    assert row.completed_at is not None


def test_completed_at_survives_revalidation(
    db_session, build_program, trainee, mentor, admin
):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    complete_module(db_session, built, module, trainee, mentor, admin)

    progress = ProgressRepository(db_session)
    first = progress.get(trainee.user_id, module.id).completed_at
    progress.revalidate_progress(trainee.user_id, module.id)
    assert progress.get(trainee.user_id, module.id).completed_at == first


def test_rejection_after_approval_falls_back_to_active(
    db_session, build_program, trainee, mentor, admin
):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    submission = complete_module(db_session, built, module, trainee, mentor, admin)

    SubmissionsRepository(db_session).review(
        submission.id, admin, status=SubmissionStatus.REJECTED, comment="Plagiarised"
    )

    row = ProgressRepository(db_session).get(trainee.user_id, module.id)
    assert row.status == ProgressStatus.ACTIVE
    assert row.completed_at is None
    assert row.percent_complete == 0


def test_overall_percent_averages_modules(
    db_session, build_program, trainee, mentor, admin
):
    built = build_program(modules=2, trainees=[trainee])
    complete_module(db_session, built, built.modules[0], trainee, mentor, admin)

    summary = ProgressRepository(db_session).get_program_progress(
        trainee.user_id, built.program.id
    )
    assert summary["overall_percent"] == 50
    assert summary["all_completed"] is False


def test_program_without_modules_is_never_complete(db_session, build_program, trainee):
    built = build_program(modules=0, trainees=[trainee])
    summary = ProgressRepository(db_session).get_program_progress(
        trainee.user_id, built.program.id
    )
    assert summary["modules"] == []
    assert summary["all_completed"] is False
    assert summary["overall_percent"] == 0


def test_module_without_lessons_is_never_complete(
    db_session, build_program, trainee, complete_program
):
    built = build_program(modules=1, lessons=0, trainees=[trainee])
    complete_program(built, trainee)

    summary = ProgressRepository(db_session).get_program_progress(
        trainee.user_id, built.program.id
    )
    module = summary["modules"][0]
    assert module["status"] == ProgressStatus.ACTIVE
    assert module["percent_complete"] == 100
    assert module["completed_at"] is None
    assert summary["all_completed"] is False


def test_module_without_mandatory_assignment_cannot_complete(
    db_session, build_program, trainee
):
    built = build_program(modules=1, trainees=[trainee])
    module = built.modules[0]
    CurriculumRepository(db_session).update_assignment(
        built.assignments[module.id].id, mandatory=False
    )
    open_all_lessons(db_session, trainee, built.lessons[module.id])

    row = ProgressRepository(db_session).revalidate_progress(trainee.user_id, module.id)
    assert row.status == ProgressStatus.ACTIVE


# ---------- gating ----------


def test_lessons_must_be_opened_in_order(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])
    first, second = built.lessons[built.modules[0].id]
    path = LearningPathRepository(db_session)

    with pytest.raises(AccessDeniedError):
        path.ensure_lesson_unlocked(trainee.user_id, second)

    path.record_lesson_access(trainee.user_id, first)
    path.ensure_lesson_unlocked(trainee.user_id, second)


def test_next_module_locked_until_previous_completed(
    db_session, build_program, trainee, mentor, admin
):
    built = build_program(modules=2, trainees=[trainee])
    later_lesson = built.lessons[built.modules[1].id][0]
    path = LearningPathRepository(db_session)

    with pytest.raises(AccessDeniedError):
        path.ensure_lesson_unlocked(trainee.user_id, later_lesson)

    complete_module(db_session, built, built.modules[0], trainee, mentor, admin)
    path.ensure_lesson_unlocked(trainee.user_id, later_lesson)


def test_assignment_locked_until_all_lessons_opened(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id][:1])

    with pytest.raises(AccessDeniedError):
        SubmissionsRepository(db_session).create(
            trainee, built.assignments[module.id].id, content="Too early"
        )


def test_not_enrolled_trainee_is_denied(db_session, build_program, make_user):
    built = build_program()
    outsider = make_user()
    lesson = built.lessons[built.modules[0].id][0]

    with pytest.raises(AccessDeniedError, match="Not enrolled"):
        LearningPathRepository(db_session).ensure_lesson_unlocked(outsider.user_id, lesson)


def test_cohort_window_and_deadline_extension(db_session, build_program, trainee, admin):
    built = build_program(trainees=[trainee])
    cohorts = CohortsRepository(db_session)
    path = LearningPathRepository(db_session)
    after_end = utcnow() + timedelta(days=45)

    with pytest.raises(AccessDeniedError, match="ended"):
        path.ensure_content_access(trainee.user_id, built.program.id, now=after_end)

    enrollment = cohorts.find_enrollment(trainee.user_id, built.cohort.id)
    cohorts.extend_deadline(
        enrollment.id, utcnow() + timedelta(days=60), actor_id=admin.user_id
    )
    path.ensure_content_access(trainee.user_id, built.program.id, now=after_end)


def test_cohort_not_started(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])
    allowed, reason = CohortsRepository(db_session).can_access_cohort_content(
        trainee.user_id, built.cohort.id, now=utcnow() - timedelta(days=5)
    )
    assert allowed is False
    assert reason == "Cohort has not started yet"


def test_extended_deadline_cannot_precede_cohort_end(
    db_session, build_program, trainee, admin
):
    built = build_program(trainees=[trainee])
    cohorts = CohortsRepository(db_session)
    enrollment = cohorts.find_enrollment(trainee.user_id, built.cohort.id)
    with pytest.raises(DomainError):
        cohorts.extend_deadline(
            enrollment.id, utcnow() + timedelta(days=2), actor_id=admin.user_id
        )


# ---------- submissions ----------


def test_duplicate_active_submission_rejected(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])
    repo = SubmissionsRepository(db_session)
    repo.create(trainee, built.assignments[module.id].id, content="v1")

    with pytest.raises(DomainError):
        repo.create(trainee, built.assignments[module.id].id, content="v2")


def test_empty_submission_rejected(db_session, build_program, trainee):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])
    with pytest.raises(DomainError):
        SubmissionsRepository(db_session).create(
            trainee, built.assignments[module.id].id
        )


def test_resubmit_only_after_request(db_session, build_program, trainee, mentor):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])
    repo = SubmissionsRepository(db_session)
    submission = repo.create(trainee, built.assignments[module.id].id, content="v1")

    with pytest.raises(DomainError):
        repo.resubmit(submission.id, trainee, content="v2")

    repo.review(
        submission.id, mentor, status=SubmissionStatus.RESUBMIT_REQUESTED, comment="More"
    )
    updated = repo.resubmit(submission.id, trainee, content="v2")
    assert updated.status == SubmissionStatus.PENDING
    assert updated.content == "v2"
    assert len(updated.feedback) == 1


def test_admin_review_requires_mentor_feedback(
    db_session, build_program, trainee, admin
):
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])
    repo = SubmissionsRepository(db_session)
    submission = repo.create(trainee, built.assignments[module.id].id, content="v1")

    with pytest.raises(DomainError):
        repo.review(
            submission.id,
            admin,
            status=SubmissionStatus.APPROVED,
            admin_comment="ok",
        )


def test_reassigned_submission_hidden_from_other_mentors(
    db_session, build_program, trainee, mentor, admin, make_user
):
    other = make_user(RolesEnum.MENTOR, name="Other Mentor")
    built = build_program(trainees=[trainee])
    module = built.modules[0]
    open_all_lessons(db_session, trainee, built.lessons[module.id])
    repo = SubmissionsRepository(db_session)
    submission = repo.create(trainee, built.assignments[module.id].id, content="v1")

    repo.reassign(submission.id, other.user_id, actor_id=admin.user_id)

    assert repo.list_for_user(mentor) == []
    assert [s.id for s in repo.list_for_user(other)] == [submission.id]
    with pytest.raises(AccessDeniedError):
        repo.review(submission.id, mentor, status=SubmissionStatus.APPROVED)


# ---------- curriculum rules ----------


def test_only_one_mandatory_assignment_per_module(db_session, build_program):
    built = build_program(modules=1)
    module = built.modules[0]
    curriculum = CurriculumRepository(db_session)

    extra = curriculum.create_assignment(module.id, title="Bonus")
    assert extra.mandatory is False
    with pytest.raises(DomainError):
        curriculum.create_assignment(module.id, title="Second", mandatory=True)


def test_module_validation_reports_missing_parts(db_session, build_program):
    built = build_program(modules=1)
    curriculum = CurriculumRepository(db_session)
    empty = curriculum.create_module(built.course.id, title="Empty")

    result = curriculum.validate_module(empty.id)
    assert result["status"] == "incomplete"
    assert len(result["errors"]) == 2

    structure = curriculum.validate_program_structure(built.program.id)
    assert structure["valid"] is False
    assert [m["status"] for m in structure["modules"]] == ["complete", "incomplete"]


def test_new_module_seeds_progress_for_enrolled(db_session, build_program, trainee):
    built = build_program(modules=1, trainees=[trainee])
    module = CurriculumRepository(db_session).create_module(built.course.id, title="Late")

    row = ProgressRepository(db_session).get(trainee.user_id, module.id)
    assert row is not None
    assert row.status == ProgressStatus.ACTIVE
