import logging
import math
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import exceptions
from app.core.config import settings
from app.crud import crud_exam, crud_exam_attempt
from app.db import models
from app.db.models import AttemptStatusEnum
from app.schemas.attempt import AttemptSubmit, HeartbeatSignal, MyAttempt
from app.schemas.grading import GradeInput
from app.schemas.token import Principal
from app.services import scoring
from app.services.anti_cheat import anti_cheat_collector
from app.services.exam_catalog import exam_catalog, ensure_staff
from app.services.expiry import attempt_expiry_sweeper
from app.utils import excel_export
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def _ensure_student(principal: Principal) -> None:
    if not principal.is_student:
        raise exceptions.AccessDenied("Only students can take exams.")


class AttemptLifecycle:
    """
    State machine of a student's attempt:
    none -> in_progress -> submitted -> graded, with in_progress -> timeout
    done by the expiry sweep.
    """

    async def start(self, db: AsyncSession, principal: Principal, exam_id: int, *,
                    now: Optional[datetime] = None, ip_address: Optional[str] = None,
                    browser_info: Optional[str] = None) -> models.ExamAttempt:
        """Starts a new attempt, or returns the one already in progress."""
        _ensure_student(principal)
        now = now or utcnow()
        exam = await crud_exam.get(db, id=exam_id)
        if not exam:
            raise exceptions.ExamNotFound()
        if now < exam.start_time:
            raise exceptions.NotYetOpen()
        if now > exam.end_time:
            raise exceptions.Closed()
        max_attempts = exam.max_attempts

        if settings.EXPIRE_STALE_ON_START:
            await attempt_expiry_sweeper.sweep(db, now=now, exam_id=exam_id, student_id=principal.id)

        existing = await crud_exam_attempt.get_active(db, exam_id=exam_id, student_id=principal.id)
        if existing:
            logger.info("Student %s resumed attempt %s on exam %s", principal.id, existing.id, exam_id)
            return existing

        # Limit check and numbering share one read, so a stale view collides on attempt_number
        used, last_number = await crud_exam_attempt.get_attempt_counters(db, exam_id=exam_id, student_id=principal.id)
        if used >= max_attempts:
            logger.warning("Student %s hit the attempt limit (%d) on exam %s", principal.id, max_attempts, exam_id)
            raise exceptions.AttemptLimitReached(f"Maximum attempts reached ({max_attempts}).")

        attempt_number = last_number + 1
        try:
            attempt = await crud_exam_attempt.create_in_progress(
                db, exam_id=exam_id, student_id=principal.id, attempt_number=attempt_number,
                started_at=now, ip_address=ip_address, browser_info=browser_info,
            )
        except IntegrityError:
            # A concurrent start for the same student won the insert
            logger.warning("Concurrent start for student %s on exam %s, re-reading", principal.id, exam_id)
            winner = await crud_exam_attempt.get_active(db, exam_id=exam_id, student_id=principal.id)
            if winner:
                return winner
            raise exceptions.AttemptLimitReached(f"Maximum attempts reached ({max_attempts}).")

        logger.info("Student %s started attempt #%d (%s) on exam %s", principal.id, attempt_number, attempt.id, exam_id)
        return attempt

    async def heartbeat(self, db: AsyncSession, principal: Principal, exam_id: int,
                        signal: HeartbeatSignal, *, now: Optional[datetime] = None) -> None:
        _ensure_student(principal)
        await anti_cheat_collector.record(db, principal, exam_id, signal, now=now)

    async def submit(self, db: AsyncSession, principal: Principal, exam_id: int, submission: AttemptSubmit, *,
                     now: Optional[datetime] = None, ip_address: Optional[str] = None) -> models.ExamAttempt:
        """Auto-grades the objective answers and closes the attempt. First submission wins."""
        _ensure_student(principal)
        now = now or utcnow()
        attempt = await crud_exam_attempt.get_active(db, exam_id=exam_id, student_id=principal.id)
        if not attempt:
            raise exceptions.NoActiveAttempt()
        exam = await crud_exam.get(db, id=exam_id)
        if not exam:
            raise exceptions.ExamNotFound()

        attempt_id = attempt.id
        score = scoring.score_objective(exam.questions, submission.answers, exam.total_marks)
        values = {
            "status": AttemptStatusEnum.submitted,
            "submitted_at": now,
            "time_spent": max(0, math.ceil((now - attempt.started_at).total_seconds() / 60)),
            "total_marks": score.total_marks,
            "percentage": score.percentage,
        }
        if submission.meta and submission.meta.browser_info:
            values["browser_info"] = submission.meta.browser_info
        if ip_address:
            values["ip_address"] = ip_address

        submitted = await crud_exam_attempt.finalize_submission(db, attempt_id=attempt_id, values=values, answers=score.answers)
        if not submitted:
            logger.warning("Duplicate submission for attempt %s rejected", attempt_id)
            raise exceptions.NoActiveAttempt()

        logger.info("Student %s submitted attempt %s on exam %s: %s/%s", principal.id, attempt_id, exam_id, score.total_marks, exam.total_marks)
        return await crud_exam_attempt.get(db, attempt_id=attempt_id)

    async def grade(self, db: AsyncSession, principal: Principal, exam_id: int, student_id: int,
                    grade_in: GradeInput, *, now: Optional[datetime] = None) -> models.ExamAttempt:
        """Merges the grader's manual marks over the objective marks and finalises the attempt."""
        now = now or utcnow()
        ensure_staff(principal)
        exam = await exam_catalog.get_owned_exam(db, principal, exam_id)
        attempt = await crud_exam_attempt.get_for_grading(
            db, exam_id=exam_id, student_id=student_id, attempt_number=grade_in.attempt_number,
        )
        if not attempt:
            raise exceptions.AttemptNotFound()
        if attempt.status == AttemptStatusEnum.in_progress:
            raise exceptions.InvalidState("Cannot grade an in-progress attempt.")

        latest = {mark.question_index: mark for mark in grade_in.manual_marks}
        manual_marks = [latest[index] for index in sorted(latest)]
        objective_marks = {answer.question_index: answer.marks_awarded for answer in attempt.answers}
        merged = scoring.merge_manual_marks(objective_marks, manual_marks, exam.total_marks)

        attempt = await crud_exam_attempt.apply_grade(db, db_obj=attempt, manual_marks=manual_marks, values={
            "total_marks": merged.total_marks,
            "percentage": merged.percentage,
            "feedback": grade_in.feedback or attempt.feedback,
            "graded_by": principal.id,
            "graded_at": now,
            "status": AttemptStatusEnum.graded,
        })
        logger.info("Attempt %s graded by %s: %s/%s", attempt.id, principal.id, merged.total_marks, exam.total_marks)
        return attempt

    async def list_attempts(self, db: AsyncSession, principal: Principal, exam_id: int) -> Sequence[models.ExamAttempt]:
        """Every attempt of an exam, for its owner or an admin."""
        await exam_catalog.get_owned_exam(db, principal, exam_id)
        return await crud_exam_attempt.get_multi_for_exam(db, exam_id=exam_id)

    async def export_gradebook(self, db: AsyncSession, principal: Principal, exam_id: int) -> Tuple[str, bytes]:
        """(filename, xlsx content) of the exam's gradebook."""
        exam = await exam_catalog.get_owned_exam(db, principal, exam_id)
        attempts = await crud_exam_attempt.get_multi_for_exam(db, exam_id=exam_id)
        content = excel_export.build_gradebook(exam, attempts)
        logger.info("Gradebook of exam %s exported by %s (%d attempts)", exam_id, principal.id, len(attempts))
        return excel_export.gradebook_filename(exam), content

    async def expire_stale(self, db: AsyncSession, principal: Principal, exam_id: int, *,
                           now: Optional[datetime] = None) -> int:
        await exam_catalog.get_owned_exam(db, principal, exam_id)
        return await attempt_expiry_sweeper.sweep(db, now=now, exam_id=exam_id)

    async def my_attempts(self, db: AsyncSession, principal: Principal) -> List[MyAttempt]:
        """The student's attempts across all exams, most recently submitted first."""
        _ensure_student(principal)
        attempts = await crud_exam_attempt.get_multi_for_student(db, student_id=principal.id)
        rows = [
            MyAttempt(
                attempt_id=attempt.id,
                exam_id=attempt.exam_id,
                exam_title=attempt.exam.title,
                course_id=attempt.exam.course_id,
                attempt_number=attempt.attempt_number,
                status=attempt.status,
                total_marks=attempt.total_marks or 0,
                maximum_marks=attempt.exam.total_marks or 0,
                percentage=attempt.percentage or 0,
                submitted_at=attempt.submitted_at,
                graded_at=attempt.graded_at,
                feedback=attempt.feedback or "",
            )
            for attempt in attempts
        ]
        rows.sort(key=lambda row: (row.submitted_at is not None, row.submitted_at or datetime.min), reverse=True)
        return rows

attempt_lifecycle = AttemptLifecycle()
