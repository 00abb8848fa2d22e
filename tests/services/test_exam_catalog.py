import pytest
from datetime import datetime, timedelta, timezone

from app.core import exceptions
from app.db import models
from app.schemas import ExamCreate, ExamUpdate
from app.services import exam_catalog, attempt_lifecycle
from tests.conftest import NOW, COURSE_ID, OTHER_COURSE_ID, FACULTY_ID, OTHER_FACULTY_ID, two_mcq_exam

START = NOW - timedelta(hours=1)
END = NOW + timedelta(hours=1)


def minimal_exam(**overrides) -> ExamCreate:
    payload = {"title": "Minimal", "course_id": COURSE_ID, "start_time": START, "end_time": END}
    payload.update(overrides)
    return ExamCreate(**payload)


# --- create ---

async def test_create_applies_defaults(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, minimal_exam())

    assert exam.status == models.ExamStatusEnum.scheduled
    assert exam.faculty_id == FACULTY_ID
    assert exam.exam_type == models.ExamTypeEnum.quiz
    assert exam.duration_minutes == 60
    assert exam.total_marks == 100
    assert exam.passing_marks == 40
    assert exam.instructions == ""
    assert exam.questions == []
    assert exam.settings == {
        "shuffle_questions": False,
        "shuffle_options": False,
        "allow_review": True,
        "show_results": True,
        "prevent_copy_paste": True,
        "full_screen_mode": True,
        "max_attempts": 1,
    }


async def test_create_totals_follow_question_marks(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    assert exam.total_marks == 15
    assert exam.passing_marks == 6
    assert [q.order_index for q in exam.questions] == [0, 1]


async def test_create_explicit_marks_win(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END, total_marks=50, passing_marks=0))

    assert exam.total_marks == 50
    assert exam.passing_marks == 0


async def test_create_normalises_questions(db, faculty):
    exam_in = minimal_exam(questions=[
        {"question_text": "  ", "question_type": "essay"},
        {"question_text": "Is a heap a tree?", "question_type": "true_false", "options": ["x"], "marks": "0"},
        {"question_text": "Define O(n).", "question_type": "short_answer", "correct_answer": 42, "marks": 3},
        {"question_text": "Pick", "question_type": "mcq", "correct_answer": True, "marks": -2},
    ])

    exam = await exam_catalog.create_exam(db, faculty, exam_in)

    untitled, true_false, short, mcq = exam.questions
    assert untitled.question_text == "Untitled question"
    assert untitled.question_type == models.QuestionTypeEnum.mcq
    assert untitled.options == ["Option 1", "Option 2", "Option 3", "Option 4"]
    assert untitled.correct_answer == ""
    assert true_false.options is None
    assert true_false.correct_answer == "true"
    assert true_false.marks == 1
    assert short.correct_answer == "42"
    assert mcq.correct_answer == "true"
    assert mcq.marks == 1
    assert exam.total_marks == 6


async def test_create_coerces_duration(db, faculty):
    zero = await exam_catalog.create_exam(db, faculty, minimal_exam(duration=0))
    text = await exam_catalog.create_exam(db, faculty, minimal_exam(duration="abc"))
    numeric = await exam_catalog.create_exam(db, faculty, minimal_exam(duration="45"))

    assert (zero.duration_minutes, text.duration_minutes, numeric.duration_minutes) == (60, 60, 45)


async def test_create_accepts_description_alias(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, minimal_exam(description="Closed book."))

    assert exam.instructions == "Closed book."


async def test_create_normalises_aware_datetimes(db, faculty):
    start = datetime(2026, 11, 2, 11, 0, tzinfo=timezone(timedelta(hours=2)))
    exam = await exam_catalog.create_exam(db, faculty, minimal_exam(start_time=start, end_time=start + timedelta(hours=2)))

    assert exam.start_time == datetime(2026, 11, 2, 9, 0)
    assert exam.end_time == datetime(2026, 11, 2, 11, 0)


async def test_create_merges_settings(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, minimal_exam(settings={"max_attempts": 0, "shuffle_questions": True}))

    assert exam.max_attempts == 1
    assert exam.shuffle_questions is True
    assert exam.allow_review is True


@pytest.mark.parametrize("overrides, field", [
    ({"title": "   "}, "title"),
    ({"course_id": None}, "course_id"),
    ({"start_time": None}, "start_time"),
    ({"end_time": None}, "end_time"),
])
async def test_create_rejects_missing_fields(db, faculty, overrides, field):
    with pytest.raises(exceptions.ValidationError) as exc_info:
        await exam_catalog.create_exam(db, faculty, minimal_exam(**overrides))

    assert exc_info.value.field == field


@pytest.mark.parametrize("end_offset", [timedelta(0), timedelta(minutes=-5)])
async def test_create_rejects_bad_window(db, faculty, end_offset):
    with pytest.raises(exceptions.InvalidTimeWindow):
        await exam_catalog.create_exam(db, faculty, minimal_exam(start_time=START, end_time=START + end_offset))


async def test_create_checks_course(db, faculty, admin, student):
    with pytest.raises(exceptions.CourseNotFound):
        await exam_catalog.create_exam(db, faculty, minimal_exam(course_id=404))
    with pytest.raises(exceptions.AccessDenied):
        await exam_catalog.create_exam(db, faculty, minimal_exam(course_id=OTHER_COURSE_ID))
    with pytest.raises(exceptions.AccessDenied):
        await exam_catalog.create_exam(db, student, minimal_exam())

    exam = await exam_catalog.create_exam(db, admin, minimal_exam(course_id=OTHER_COURSE_ID))
    assert exam.faculty_id == admin.id


# --- update ---

async def test_update_partial_fields(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    updated = await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(title="  Renamed ", duration=90))

    assert updated.title == "Renamed"
    assert updated.duration_minutes == 90
    assert updated.total_marks == 15
    assert len(updated.questions) == 2



async def test_update_unrelated_fields_keeps_explicit_total(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END, total_marks=50, passing_marks=20))

    updated = await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(title="Renamed", duration=45))

    assert updated.total_marks == 50
    assert updated.passing_marks == 20
    assert updated.duration_minutes == 45

async def test_update_replaces_questions_and_recomputes_total(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    updated = await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(questions=[
        {"question_text": "Only one", "question_type": "true_false", "correct_answer": "false", "marks": 4},
    ]))

    assert [(q.order_index, q.question_text) for q in updated.questions] == [(0, "Only one")]
    assert updated.total_marks == 4


async def test_update_explicit_total_wins_over_questions(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    updated = await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(
        total_marks=30, questions=[{"question_text": "Q", "marks": 4}],
    ))

    assert updated.total_marks == 30


async def test_update_empty_questions_keeps_previous_total(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    updated = await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(questions=[]))

    assert updated.questions == []
    assert updated.total_marks == 15


async def test_update_revalidates_merged_window(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    with pytest.raises(exceptions.InvalidTimeWindow):
        await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(start_time=END + timedelta(minutes=1)))


async def test_update_merges_settings_and_sets_status(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END, max_attempts=3))

    updated = await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(
        settings={"show_results": False}, status="active",
    ))

    assert updated.max_attempts == 3
    assert updated.show_results is False
    assert updated.status == models.ExamStatusEnum.active


async def test_update_requires_owner(db, faculty, other_faculty, admin):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    with pytest.raises(exceptions.AccessDenied):
        await exam_catalog.update_exam(db, other_faculty, exam.id, ExamUpdate(title="Hijacked"))
    with pytest.raises(exceptions.ExamNotFound):
        await exam_catalog.update_exam(db, faculty, 999, ExamUpdate(title="Missing"))

    updated = await exam_catalog.update_exam(db, admin, exam.id, ExamUpdate(title="By admin"))
    assert updated.title == "By admin"


async def test_update_course_change_checks_ownership(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    with pytest.raises(exceptions.AccessDenied):
        await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(course_id=OTHER_COURSE_ID))



async def test_update_same_course_skips_course_ownership(db, faculty):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))
    course = await db.get(models.Course, COURSE_ID)
    course.faculty_id = OTHER_FACULTY_ID
    await db.commit()

    updated = await exam_catalog.update_exam(db, faculty, exam.id, ExamUpdate(course_id=COURSE_ID, title="Same course"))

    assert updated.course_id == COURSE_ID
    assert updated.title == "Same course"

# --- delete / view / list ---

async def test_delete_cascades_to_attempts(db, faculty, student):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))
    exam_id = exam.id
    await attempt_lifecycle.start(db, student, exam_id, now=NOW)

    await exam_catalog.delete_exam(db, faculty, exam_id)

    with pytest.raises(exceptions.ExamNotFound):
        await exam_catalog.get_exam(db, exam_id)
    assert await attempt_lifecycle.my_attempts(db, student) == []


async def test_view_exam_access(db, faculty, other_faculty, student, other_student):
    exam = await exam_catalog.create_exam(db, faculty, two_mcq_exam(START, END))

    assert (await exam_catalog.view_exam(db, student, exam.id)).id == exam.id
    assert (await exam_catalog.view_exam(db, faculty, exam.id)).id == exam.id
    with pytest.raises(exceptions.AccessDenied):
        await exam_catalog.view_exam(db, other_student, exam.id)
    with pytest.raises(exceptions.AccessDenied):
        await exam_catalog.view_exam(db, other_faculty, exam.id)


async def test_list_exams_is_role_aware(db, faculty, other_faculty, admin, student, other_student):
    later = await exam_catalog.create_exam(db, faculty, minimal_exam(title="Later", start_time=START + timedelta(days=1), end_time=END + timedelta(days=1)))
    sooner = await exam_catalog.create_exam(db, faculty, minimal_exam(title="Sooner"))
    draft = await exam_catalog.create_exam(db, faculty, minimal_exam(title="Draft"))
    await exam_catalog.update_exam(db, faculty, draft.id, ExamUpdate(status="draft"))
    foreign = await exam_catalog.create_exam(db, admin, minimal_exam(title="Foreign", course_id=OTHER_COURSE_ID))

    assert [e.title for e in await exam_catalog.list_exams(db, student)] == ["Sooner", "Later"]
    assert await exam_catalog.list_exams(db, other_student) == []
    assert {e.id for e in await exam_catalog.list_exams(db, faculty)} == {later.id, sooner.id, draft.id}
    assert await exam_catalog.list_exams(db, other_faculty) == []
    assert {e.id for e in await exam_catalog.list_exams(db, admin)} == {later.id, sooner.id, draft.id, foreign.id}
