from sqlalchemy import Integer, String, TEXT, ForeignKey, Enum as SQLEnum, JSON, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column
from app.db.base_class import Base, TimestampMixin
from typing import List, TYPE_CHECKING, Optional
from datetime import datetime
import enum

if TYPE_CHECKING:
    from .attempt import ExamAttempt

class ExamTypeEnum(str, enum.Enum):
    quiz = "quiz"
    midterm = "midterm"
    final = "final"
    assignment = "assignment"

class ExamStatusEnum(str, enum.Enum):
    draft = "draft"
    scheduled = "scheduled"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"

class QuestionTypeEnum(str, enum.Enum):
    mcq = "mcq"
    true_false = "true_false"
    short_answer = "short_answer"
    long_answer = "long_answer"

OBJECTIVE_QUESTION_TYPES = frozenset({QuestionTypeEnum.mcq, QuestionTypeEnum.true_false})

class Exam(TimestampMixin, Base):
    __tablename__ = "exams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    course_id: Mapped[int] = mapped_column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    faculty_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    exam_type: Mapped[ExamTypeEnum] = mapped_column(SQLEnum(ExamTypeEnum, name="exam_type_enum"), nullable=False, default=ExamTypeEnum.quiz)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    total_marks: Mapped[int] = mapped_column(Integer, nullable=False)
    passing_marks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    instructions: Mapped[str] = mapped_column(TEXT, nullable=False, default="")
    status: Mapped[ExamStatusEnum] = mapped_column(SQLEnum(ExamStatusEnum, name="exam_status_enum"), nullable=False, default=ExamStatusEnum.scheduled, index=True)

    # Settings: advisory to the client except max_attempts
    shuffle_questions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    shuffle_options: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_results: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    prevent_copy_paste: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    full_screen_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    questions: Mapped[List["ExamQuestion"]] = relationship(
        "ExamQuestion", back_populates="exam", cascade="all, delete-orphan",
        order_by="ExamQuestion.order_index", lazy="selectin",
    )
    attempts: Mapped[List["ExamAttempt"]] = relationship("ExamAttempt", back_populates="exam", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def settings(self) -> dict:
        return {
            "shuffle_questions": self.shuffle_questions,
            "shuffle_options": self.shuffle_options,
            "allow_review": self.allow_review,
            "show_results": self.show_results,
            "prevent_copy_paste": self.prevent_copy_paste,
            "full_screen_mode": self.full_screen_mode,
            "max_attempts": self.max_attempts,
        }

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def __repr__(self):
        return f"<Exam(id={self.id}, title='{self.title}', status='{self.status}')>"

class ExamQuestion(Base):
    """A question of an exam, identified by its position in the paper."""
    __tablename__ = "exam_questions"
    __table_args__ = (UniqueConstraint("exam_id", "order_index"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    exam_id: Mapped[int] = mapped_column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), index=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    question_text: Mapped[str] = mapped_column(TEXT, nullable=False)
    question_type: Mapped[QuestionTypeEnum] = mapped_column(SQLEnum(QuestionTypeEnum, name="question_type_enum"), nullable=False)
    options: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    correct_answer: Mapped[str] = mapped_column(TEXT, nullable=False, default="")
    marks: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    explanation: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    exam: Mapped["Exam"] = relationship("Exam", back_populates="questions")

    @property
    def is_objective(self) -> bool:
        return self.question_type in OBJECTIVE_QUESTION_TYPES

    def __repr__(self):
        return f"<ExamQuestion(exam_id={self.exam_id}, index={self.order_index}, type='{self.question_type}')>"
