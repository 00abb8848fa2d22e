import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import exceptions
from app.crud import crud_course, crud_exam
from app.db import models
from app.schemas.exam import ExamCreate, ExamUpdate, ExamSettings, QuestionIn, DEFAULT_DURATION_MINUTES, coerce_int, coerce_number
from app.schemas.token import Principal

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_MARKS = 100
DEFAULT_PASSING_RATIO = 0.4
STUDENT_VISIBLE_STATUSES = [models.ExamStatusEnum.scheduled, models.ExamStatusEnum.active]


def ensure_staff(principal: Principal) -> None:
    if not principal.is_staff:
        raise exceptions.AccessDenied("Only faculty or admins can manage exams.")

def ensure_exam_owner(principal: Principal, exam: models.Exam) -> None:
    """Admins manage every exam, faculty only the ones they own."""
    ensure_staff(principal)
    if not principal.is_admin and exam.faculty_id != principal.id:
        raise exceptions.AccessDenied("Access denied: you do not own this exam.")

def check_time_window(start_time: datetime, end_time: datetime) -> None:
    if end_time <= start_time:
        raise exceptions.InvalidTimeWindow("End time must be after start time.")

def _clean_title(title: Optional[str]) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise exceptions.ValidationError("Title is required.", field="title")
    return cleaned

def _initial_total_marks(total_marks: Any, questions: List[QuestionIn]) -> int:
    explicit = coerce_number(total_marks)
    if explicit:
        return max(1, int(explicit))
    return sum(question.marks for question in questions) or DEFAULT_TOTAL_MARKS

def _initial_passing_marks(passing_marks: Any, total_marks: int) -> int:
    explicit = coerce_number(passing_marks)
    if explicit is None:
        return math.floor(total_marks * DEFAULT_PASSING_RATIO)
    return max(0, int(explicit))


class ExamCatalog:
    """Validated creation, update and lookup of exam definitions."""

    async def _check_course(self, db: AsyncSession, principal: Principal, course_id: int) -> models.Course:
        course = await crud_course.get(db, id=course_id)
        if not course:
            raise exceptions.CourseNotFound()
        if not principal.is_admin and course.faculty_id != principal.id:
            raise exceptions.AccessDenied("Access denied for this course.")
        return course

    async def get_exam(self, db: AsyncSession, exam_id: int) -> models.Exam:
        exam = await crud_exam.get(db, id=exam_id)
        if not exam:
            raise exceptions.ExamNotFound()
        return exam

    async def get_owned_exam(self, db: AsyncSession, principal: Principal, exam_id: int) -> models.Exam:
        exam = await self.get_exam(db, exam_id)
        ensure_exam_owner(principal, exam)
        return exam

    async def view_exam(self, db: AsyncSession, principal: Principal, exam_id: int) -> models.Exam:
        """Students may view exams of the courses they are enrolled in, staff the exams they manage."""
        exam = await self.get_exam(db, exam_id)
        if principal.is_student:
            course_ids = await crud_course.get_course_ids_for_student(db, student_id=principal.id)
            if exam.course_id not in course_ids:
                raise exceptions.AccessDenied("You are not enrolled in this course.")
        else:
            ensure_exam_owner(principal, exam)
        return exam

    async def create_exam(self, db: AsyncSession, principal: Principal, exam_in: ExamCreate) -> models.Exam:
        ensure_staff(principal)
        title = _clean_title(exam_in.title)
        if exam_in.course_id is None:
            raise exceptions.ValidationError("Course is required.", field="course_id")
        await self._check_course(db, principal, exam_in.course_id)
        if exam_in.start_time is None or exam_in.end_time is None:
            raise exceptions.ValidationError(
                "Start and end time are required.",
                field="start_time" if exam_in.start_time is None else "end_time",
            )
        check_time_window(exam_in.start_time, exam_in.end_time)

        questions = exam_in.questions or []
        total_marks = _initial_total_marks(exam_in.total_marks, questions)
        settings = ExamSettings(**(exam_in.settings.model_dump(exclude_none=True) if exam_in.settings else {}))
        instructions = exam_in.instructions if exam_in.instructions is not None else exam_in.description

        data: Dict[str, Any] = {
            "title": title,
            "course_id": exam_in.course_id,
            "faculty_id": principal.id,
            "exam_type": exam_in.exam_type or models.ExamTypeEnum.quiz,
            "duration_minutes": coerce_int(exam_in.duration, default=DEFAULT_DURATION_MINUTES, minimum=1),
            "start_time": exam_in.start_time,
            "end_time": exam_in.end_time,
            "total_marks": total_marks,
            "passing_marks": _initial_passing_marks(exam_in.passing_marks, total_marks),
            "instructions": instructions or "",
            "status": models.ExamStatusEnum.scheduled,
            **settings.model_dump(),
        }
        exam = await crud_exam.create(db, data=data, questions=questions)
        logger.info("Exam %s created by %s %s for course %s", exam.id, principal.role.value, principal.id, exam.course_id)
        return exam

    async def update_exam(self, db: AsyncSession, principal: Principal, exam_id: int, exam_in: ExamUpdate) -> models.Exam:
        exam = await self.get_owned_exam(db, principal, exam_id)
        fields = exam_in.model_fields_set
        data: Dict[str, Any] = {}

        if exam_in.course_id is not None and exam_in.course_id != exam.course_id:
            await self._check_course(db, principal, exam_in.course_id)
            data["course_id"] = exam_in.course_id
        if "title" in fields:
            data["title"] = _clean_title(exam_in.title)
        if "exam_type" in fields:
            data["exam_type"] = exam_in.exam_type or models.ExamTypeEnum.quiz
        if "duration" in fields:
            data["duration_minutes"] = coerce_int(exam_in.duration, default=DEFAULT_DURATION_MINUTES, minimum=1)
        for field in ("start_time", "end_time"):
            if field in fields:
                if getattr(exam_in, field) is None:
                    raise exceptions.ValidationError(f"Invalid {field.replace('_', ' ')}.", field=field)
                data[field] = getattr(exam_in, field)
        check_time_window(data.get("start_time", exam.start_time), data.get("end_time", exam.end_time))

        questions: Optional[List[QuestionIn]] = None
        if "questions" in fields:
            questions = exam_in.questions or []
        if exam_in.total_marks is not None:
            data["total_marks"] = coerce_int(exam_in.total_marks, default=1, minimum=1)
        elif questions is not None:
            # Questions changed without an explicit total: follow the paper
            data["total_marks"] = sum(question.marks for question in questions) or exam.total_marks
        if exam_in.passing_marks is not None:
            data["passing_marks"] = max(0, int(coerce_number(exam_in.passing_marks) or 0))

        instructions = exam_in.instructions if exam_in.instructions is not None else exam_in.description
        if instructions is not None:
            data["instructions"] = instructions
        if exam_in.settings is not None:
            merged = {**exam.settings, **exam_in.settings.model_dump(exclude_none=True)}
            data.update(ExamSettings(**merged).model_dump())
        if exam_in.status is not None:
            data["status"] = exam_in.status

        exam = await crud_exam.update(db, db_obj=exam, data=data, questions=questions)
        logger.info("Exam %s updated by %s %s (%s)", exam.id, principal.role.value, principal.id, ", ".join(sorted(fields)) or "no changes")
        return exam

    async def delete_exam(self, db: AsyncSession, principal: Principal, exam_id: int) -> None:
        exam = await self.get_owned_exam(db, principal, exam_id)
        await crud_exam.remove(db, db_obj=exam)
        logger.info("Exam %s deleted by %s %s", exam_id, principal.role.value, principal.id)

    async def list_exams_for_student(self, db: AsyncSession, principal: Principal) -> Sequence[models.Exam]:
        """Scheduled or active exams of the courses the student is enrolled in."""
        course_ids = await crud_course.get_course_ids_for_student(db, student_id=principal.id)
        return await crud_exam.get_multi_for_courses(db, course_ids=course_ids, statuses=STUDENT_VISIBLE_STATUSES)

    async def list_exams(self, db: AsyncSession, principal: Principal, *, skip: int = 0, limit: int = 100) -> Sequence[models.Exam]:
        """Role-aware listing: students see their courses' open exams, faculty their own, admins all."""
        if principal.is_student:
            return await self.list_exams_for_student(db, principal)
        faculty_id = None if principal.is_admin else principal.id
        return await crud_exam.get_multi(db, faculty_id=faculty_id, skip=skip, limit=limit)

exam_catalog = ExamCatalog()
