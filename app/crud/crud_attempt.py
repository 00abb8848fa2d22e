from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy import update as sql_update, func, case
from typing import List, Optional, Sequence, Dict, Any, Tuple
from datetime import datetime

from app.db import models
from app.db.models import AttemptStatusEnum
from app.schemas.grading import ManualMarkInput, ScoredAnswer

class CRUDExamAttempt:
    async def get(self, db: AsyncSession, *, attempt_id: int) -> Optional[models.ExamAttempt]:
        """Get a specific attempt by its ID, answers and manual marks included."""
        result = await db.execute(
            select(models.ExamAttempt)
            .where(models.ExamAttempt.id == attempt_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_active(self, db: AsyncSession, *, exam_id: int, student_id: int) -> Optional[models.ExamAttempt]:
        """The student's 'in_progress' attempt for the exam, if any."""
        result = await db.execute(
            select(models.ExamAttempt)
            .where(
                models.ExamAttempt.exam_id == exam_id,
                models.ExamAttempt.student_id == student_id,
                models.ExamAttempt.status == AttemptStatusEnum.in_progress,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_for_grading(self, db: AsyncSession, *, exam_id: int, student_id: int,
                              attempt_number: Optional[int] = None) -> Optional[models.ExamAttempt]:
        """A specific attempt by number, or the student's latest one."""
        query = select(models.ExamAttempt).where(
            models.ExamAttempt.exam_id == exam_id,
            models.ExamAttempt.student_id == student_id,
        )
        if attempt_number is not None:
            query = query.where(models.ExamAttempt.attempt_number == attempt_number)
        result = await db.execute(
            query.order_by(models.ExamAttempt.attempt_number.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_attempt_counters(self, db: AsyncSession, *, exam_id: int, student_id: int) -> Tuple[int, int]:
        """
        (attempts counting toward the limit, highest attempt number) read in one
        statement. Timed-out attempts don't count but still hold their number.
        """
        counted = func.coalesce(func.sum(
            case((models.ExamAttempt.status != AttemptStatusEnum.timeout, 1), else_=0)
        ), 0)
        result = await db.execute(
            select(counted, func.coalesce(func.max(models.ExamAttempt.attempt_number), 0)).where(
                models.ExamAttempt.exam_id == exam_id,
                models.ExamAttempt.student_id == student_id,
            )
        )
        used, last_number = result.one()
        return int(used), int(last_number)

    async def create_in_progress(
        self, db: AsyncSession, *, exam_id: int, student_id: int, attempt_number: int, started_at: datetime,
        ip_address: Optional[str] = None, browser_info: Optional[str] = None,
    ) -> models.ExamAttempt:
        """
        Inserts a new 'in_progress' attempt.
        Raises IntegrityError (after rolling back) when a concurrent start already
        holds the student's active slot or attempt number.
        """
        db_obj = models.ExamAttempt(
            exam_id=exam_id,
            student_id=student_id,
            attempt_number=attempt_number,
            status=AttemptStatusEnum.in_progress,
            active_slot=models.ACTIVE_SLOT,
            started_at=started_at,
            ip_address=ip_address,
            browser_info=browser_info,
        )
        db.add(db_obj)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise
        await db.refresh(db_obj)
        return db_obj

    async def record_heartbeat(self, db: AsyncSession, *, exam_id: int, student_id: int,
                               remarks: str, now: datetime) -> bool:
        """Stores the latest anti-cheat signal on the active attempt. False if there is none."""
        stmt = (
            sql_update(models.ExamAttempt)
            .where(
                models.ExamAttempt.exam_id == exam_id,
                models.ExamAttempt.student_id == student_id,
                models.ExamAttempt.status == AttemptStatusEnum.in_progress,
            )
            .values(remarks=remarks, last_heartbeat=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount > 0:
            await db.commit()
            return True
        await db.rollback()
        return False

    async def finalize_submission(self, db: AsyncSession, *, attempt_id: int, values: Dict[str, Any],
                                  answers: List[ScoredAnswer]) -> bool:
        """
        Moves an attempt out of 'in_progress' and stores its scored answers in one transaction.
        The status check and the write are a single conditional UPDATE, so only
        one of several concurrent submissions can win. False if this one lost.
        """
        stmt = (
            sql_update(models.ExamAttempt)
            .where(
                models.ExamAttempt.id == attempt_id,
                models.ExamAttempt.status == AttemptStatusEnum.in_progress,
            )
            .values(active_slot=None, **values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:
            await db.rollback()
            return False
        db.add_all([models.AttemptAnswer(attempt_id=attempt_id, **answer.model_dump()) for answer in answers])
        await db.commit()
        return True

    async def apply_grade(self, db: AsyncSession, *, db_obj: models.ExamAttempt,
                          manual_marks: List[ManualMarkInput], values: Dict[str, Any]) -> models.ExamAttempt:
        """Replaces the attempt's manual marks and writes the recomputed grade."""
        db_obj.manual_marks.clear()
        await db.flush()
        db_obj.manual_marks.extend(models.ManualMark(**mark.model_dump()) for mark in manual_marks)
        for field, value in values.items():
            setattr(db_obj, field, value)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def get_multi_for_exam(self, db: AsyncSession, *, exam_id: int) -> Sequence[models.ExamAttempt]:
        """All attempts of an exam, for grading."""
        result = await db.execute(
            select(models.ExamAttempt)
            .where(models.ExamAttempt.exam_id == exam_id)
            .order_by(models.ExamAttempt.student_id, models.ExamAttempt.attempt_number)
        )
        return result.scalars().all()

    async def get_multi_for_student(self, db: AsyncSession, *, student_id: int) -> Sequence[models.ExamAttempt]:
        """All attempts of a student across exams, with their exam loaded."""
        result = await db.execute(
            select(models.ExamAttempt)
            .options(selectinload(models.ExamAttempt.exam))
            .where(models.ExamAttempt.student_id == student_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def get_in_progress_windows(
        self, db: AsyncSession, *, exam_id: Optional[int] = None, student_id: Optional[int] = None
    ) -> Sequence[Tuple[int, datetime, int, datetime]]:
        """(attempt id, started_at, exam duration, exam end_time) for every in-progress attempt in scope."""
        query = (
            select(
                models.ExamAttempt.id,
                models.ExamAttempt.started_at,
                models.Exam.duration_minutes,
                models.Exam.end_time,
            )
            .join(models.Exam, models.Exam.id == models.ExamAttempt.exam_id)
            .where(models.ExamAttempt.status == AttemptStatusEnum.in_progress)
        )
        if exam_id is not None:
            query = query.where(models.ExamAttempt.exam_id == exam_id)
        if student_id is not None:
            query = query.where(models.ExamAttempt.student_id == student_id)
        result = await db.execute(query)
        return result.all()

    async def mark_timed_out(self, db: AsyncSession, *, attempt_ids: List[int]) -> int:
        """Moves the given attempts to 'timeout' if they are still in progress."""
        if not attempt_ids:
            return 0
        stmt = (
            sql_update(models.ExamAttempt)
            .where(
                models.ExamAttempt.id.in_(attempt_ids),
                models.ExamAttempt.status == AttemptStatusEnum.in_progress,
            )
            .values(status=AttemptStatusEnum.timeout, active_slot=None)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount

crud_exam_attempt = CRUDExamAttempt()
