from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List, Optional

from app.db import models

class CRUDCourse:
    """Read-only view of the course directory owned by course management."""

    async def get(self, db: AsyncSession, *, id: int) -> Optional[models.Course]:
        """Get a course by ID (carries the owning faculty id)."""
        return await db.get(models.Course, id)

    async def get_course_ids_for_student(self, db: AsyncSession, *, student_id: int) -> List[int]:
        """IDs of every course the student is enrolled in."""
        result = await db.execute(
            select(models.course_students_table.c.course_id)
            .where(models.course_students_table.c.student_id == student_id)
        )
        return list(result.scalars().all())

crud_course = CRUDCourse()
