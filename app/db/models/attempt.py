from sqlalchemy import Integer, BigInteger, String, TEXT, ForeignKey, Enum as SQLEnum, DateTime, Boolean, Float, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from app.db.base_class import Base, TimestampMixin
from typing import List, TYPE_CHECKING, Optional
from datetime import datetime
import enum

if TYPE_CHECKING:
    from .exam import Exam

# SQLite only autoincrements INTEGER primary keys
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

# Value of active_slot while an attempt is in progress, NULL otherwise.
# NULLs never collide in a unique index, so (exam, student, active_slot)
# admits at most one in-progress row per student and exam.
ACTIVE_SLOT = 1

class AttemptStatusEnum(str, enum.Enum):
    in_progress = "in_progress"
    submitted = "submitted"
    graded = "graded"
    timeout = "timeout"

class ExamAttempt(TimestampMixin, Base):
    __tablename__ = "exam_attempts"
    __table_args__ = (
        UniqueConstraint("exam_id", "student_id", "attempt_number"),
        UniqueConstraint("exam_id", "student_id", "active_slot"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    exam_id: Mapped[int] = mapped_column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), index=True)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[AttemptStatusEnum] = mapped_column(SQLEnum(AttemptStatusEnum, name="attempt_status_enum"), nullable=False, default=AttemptStatusEnum.in_progress, index=True)
    active_slot: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=ACTIVE_SLOT)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    time_spent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True) # minutes
    total_marks: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    browser_info: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    feedback: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    graded_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    graded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(String(255), nullable=True) # last anti-cheat signal
    last_heartbeat: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    exam: Mapped["Exam"] = relationship("Exam", back_populates="attempts")
    answers: Mapped[List["AttemptAnswer"]] = relationship(
        "AttemptAnswer", back_populates="attempt", cascade="all, delete-orphan",
        order_by="AttemptAnswer.question_index", lazy="selectin",
    )
    manual_marks: Mapped[List["ManualMark"]] = relationship(
        "ManualMark", back_populates="attempt", cascade="all, delete-orphan",
        order_by="ManualMark.question_index", lazy="selectin",
    )

    def __repr__(self):
        return f"<ExamAttempt(id={self.id}, exam_id={self.exam_id}, student_id={self.student_id}, status='{self.status}')>"

class AttemptAnswer(Base):
    __tablename__ = "attempt_answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_index"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    attempt_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("exam_attempts.id", ondelete="CASCADE"), index=True)
    question_index: Mapped[int] = mapped_column(Integer, nullable=False)
    answer: Mapped[str] = mapped_column(TEXT, nullable=False, default="")
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    marks_awarded: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    attempt: Mapped["ExamAttempt"] = relationship("ExamAttempt", back_populates="answers")

class ManualMark(Base):
    __tablename__ = "attempt_manual_marks"
    __table_args__ = (UniqueConstraint("attempt_id", "question_index"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    attempt_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("exam_attempts.id", ondelete="CASCADE"), index=True)
    question_index: Mapped[int] = mapped_column(Integer, nullable=False)
    marks_awarded: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    comment: Mapped[str] = mapped_column(TEXT, nullable=False, default="")

    attempt: Mapped["ExamAttempt"] = relationship("ExamAttempt", back_populates="manual_marks")
