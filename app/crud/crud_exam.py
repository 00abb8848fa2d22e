from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List, Optional, Sequence, Dict, Any

from app.db import models
from app.schemas.exam import QuestionIn

class CRUDExam:
    async def get(self, db: AsyncSession, *, id: int) -> Optional[models.Exam]:
        """Get an exam by ID, questions included."""
        return await db.get(models.Exam, id)

    async def get_multi(self, db: AsyncSession, *, faculty_id: Optional[int] = None,
                        skip: int = 0, limit: int = 100) -> Sequence[models.Exam]:
        """List exams, optionally only those owned by one faculty member."""
        query = select(models.Exam)
        if faculty_id is not None:
            query = query.where(models.Exam.faculty_id == faculty_id)
        result = await db.execute(query.order_by(models.Exam.start_time).offset(skip).limit(limit))
        return result.scalars().all()

    async def get_multi_for_courses(
        self, db: AsyncSession, *, course_ids: List[int], statuses: List[models.ExamStatusEnum]
    ) -> Sequence[models.Exam]:
        """Exams of the given courses in one of the given statuses, earliest first."""
        if not course_ids:
            return []
        result = await db.execute(
            select(models.Exam)
            .where(models.Exam.course_id.in_(course_ids), models.Exam.status.in_(statuses))
            .order_by(models.Exam.start_time)
        )
        return result.scalars().all()

    @staticmethod
    def _build_questions(questions: List[QuestionIn]) -> List[models.ExamQuestion]:
        return [
            models.ExamQuestion(order_index=index, **question.model_dump())
            for index, question in enumerate(questions)
        ]

    async def create(self, db: AsyncSession, *, data: Dict[str, Any], questions: List[QuestionIn]) -> models.Exam:
        """Create an exam from already-normalised fields and questions."""
        db_obj = models.Exam(**data)
        db_obj.questions = self._build_questions(questions)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def update(self, db: AsyncSession, *, db_obj: models.Exam, data: Dict[str, Any],
                     questions: Optional[List[QuestionIn]] = None) -> models.Exam:
        """Apply normalised field changes; questions, when given, replace the whole paper."""
        for field, value in data.items():
            setattr(db_obj, field, value)
        if questions is not None:
            # Old rows must be gone before the new ones reuse their order_index
            db_obj.questions.clear()
            await db.flush()
            db_obj.questions.extend(self._build_questions(questions))
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: models.Exam) -> None:
        """Delete an exam; questions and attempts go with it."""
        await db.delete(db_obj)
        await db.commit()

crud_exam = CRUDExam()
