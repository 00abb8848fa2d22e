from sqlalchemy import Column, Integer, String, ForeignKey, Table
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base_class import Base

# Owned by the course-management service; the exam engine only reads these tables.
course_students_table = Table(
    "course_students",
    Base.metadata,
    Column("course_id", Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Integer, primary_key=True, index=True),
)

class Course(Base):
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    faculty_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    def __repr__(self):
        return f"<Course(id={self.id}, code='{self.code}', faculty_id={self.faculty_id})>"
