from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List, Any
from datetime import datetime
import math

from app.db.models.exam import ExamTypeEnum, ExamStatusEnum, QuestionTypeEnum
from app.utils.timeutils import to_naive_utc

DEFAULT_DURATION_MINUTES = 60
DEFAULT_MCQ_OPTIONS = ["Option 1", "Option 2", "Option 3", "Option 4"]
UNTITLED_QUESTION = "Untitled question"
# Question indices are stored in a signed 32-bit INTEGER column
QUESTION_INDEX_MIN = -(2 ** 31)
QUESTION_INDEX_LIMIT = 2 ** 31


def coerce_number(value: Any) -> Optional[float]:
    """Best-effort numeric coercion, None for anything that isn't a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None

def coerce_int(value: Any, *, default: int, minimum: int) -> int:
    """Falls back to `default` for missing, invalid or zero input, then clamps to `minimum`."""
    number = coerce_number(value)
    if not number:
        return max(minimum, default)
    return max(minimum, int(number))

def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# --- Question Schemas ---
class QuestionIn(BaseModel):
    """
    Question as submitted by staff. Lenient: every field has a sensible default
    and the type-specific fields are normalised for the closed set of types.
    """
    question_text: str = Field(UNTITLED_QUESTION, description="Question body")
    question_type: QuestionTypeEnum = Field(QuestionTypeEnum.mcq, description="Unknown types fall back to 'mcq'")
    options: Optional[List[str]] = Field(None, description="Choices, only kept for 'mcq'")
    correct_answer: Optional[str] = Field(None, description="Answer key for objective questions")
    marks: int = Field(1, ge=1)
    explanation: Optional[str] = None

    @field_validator("question_text", mode="before")
    @classmethod
    def default_text(cls, v: Any) -> str:
        text = coerce_text(v).strip()
        return text or UNTITLED_QUESTION

    @field_validator("question_type", mode="before")
    @classmethod
    def default_type(cls, v: Any) -> QuestionTypeEnum:
        try:
            return QuestionTypeEnum(v)
        except ValueError:
            return QuestionTypeEnum.mcq

    @field_validator("options", mode="before")
    @classmethod
    def listify_options(cls, v: Any) -> Optional[List[str]]:
        if not isinstance(v, (list, tuple)):
            return None
        return [coerce_text(option) for option in v]

    @field_validator("correct_answer", mode="before")
    @classmethod
    def stringify_answer(cls, v: Any) -> Optional[str]:
        return None if v is None else coerce_text(v)

    @field_validator("marks", mode="before")
    @classmethod
    def coerce_marks(cls, v: Any) -> int:
        return coerce_int(v, default=1, minimum=1)

    @field_validator("explanation", mode="before")
    @classmethod
    def blank_explanation(cls, v: Any) -> Optional[str]:
        return coerce_text(v) or None

    @model_validator(mode="after")
    def normalize_by_type(self) -> "QuestionIn":
        if self.question_type == QuestionTypeEnum.mcq:
            if not self.options:
                self.options = list(DEFAULT_MCQ_OPTIONS)
        else:
            self.options = None
        if self.correct_answer is None:
            self.correct_answer = "true" if self.question_type == QuestionTypeEnum.true_false else ""
        return self

class ExamQuestionForStudent(BaseModel):
    """Question as shown while taking the exam, without the answer key."""
    index: int = Field(..., validation_alias="order_index")
    question_text: str
    question_type: QuestionTypeEnum
    options: Optional[List[str]] = None
    marks: int

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

class ExamQuestion(ExamQuestionForStudent):
    correct_answer: str
    explanation: Optional[str] = None


# --- Settings Schemas ---
class ExamSettingsIn(BaseModel):
    """Partial settings; unset fields keep their current (or default) value."""
    shuffle_questions: Optional[bool] = None
    shuffle_options: Optional[bool] = None
    allow_review: Optional[bool] = None
    show_results: Optional[bool] = None
    prevent_copy_paste: Optional[bool] = None
    full_screen_mode: Optional[bool] = None
    max_attempts: Optional[int] = None

    @field_validator("max_attempts", mode="before")
    @classmethod
    def coerce_max_attempts(cls, v: Any) -> Optional[int]:
        return None if v is None else coerce_int(v, default=1, minimum=1)

class ExamSettings(BaseModel):
    shuffle_questions: bool = False
    shuffle_options: bool = False
    allow_review: bool = True
    show_results: bool = True
    prevent_copy_paste: bool = True
    full_screen_mode: bool = True
    max_attempts: int = Field(1, ge=1)

    model_config = ConfigDict(from_attributes=True)


# --- Exam Schemas ---
class ExamWrite(BaseModel):
    """Fields shared by create and update. Structural checks happen in the catalog service."""
    title: Optional[str] = Field(None, max_length=255)
    course_id: Optional[int] = None
    exam_type: Optional[ExamTypeEnum] = None
    duration: Optional[Any] = Field(None, description="Minutes, coerced to >= 1 (default 60)")
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_marks: Optional[Any] = Field(None, description="Defaults to the sum of question marks")
    passing_marks: Optional[Any] = Field(None, description="Defaults to 40% of total marks")
    instructions: Optional[str] = None
    description: Optional[str] = Field(None, description="Legacy alias of 'instructions'")
    questions: Optional[List[QuestionIn]] = None
    settings: Optional[ExamSettingsIn] = None

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def as_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

class ExamCreate(ExamWrite):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Midterm - Data Structures",
                "course_id": 12,
                "exam_type": "midterm",
                "duration": 90,
                "start_time": "2026-11-02T09:00:00Z",
                "end_time": "2026-11-02T12:00:00Z",
                "instructions": "Closed book.",
                "questions": [
                    {"question_text": "Stack order?", "question_type": "mcq", "options": ["LIFO", "FIFO"], "correct_answer": "LIFO", "marks": 5},
                    {"question_text": "Explain amortised analysis.", "question_type": "long_answer", "marks": 15},
                ],
                "settings": {"max_attempts": 1, "show_results": True},
            }
        }
    )

class ExamUpdate(ExamWrite):
    status: Optional[ExamStatusEnum] = Field(None, description="Externally driven lifecycle status")

class ExamBase(BaseModel):
    id: int
    title: str
    course_id: int
    faculty_id: int
    exam_type: ExamTypeEnum
    duration_minutes: int
    start_time: datetime
    end_time: datetime
    total_marks: int
    passing_marks: int
    instructions: str
    status: ExamStatusEnum
    settings: ExamSettings

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

class Exam(ExamBase):
    """Full definition, for the owning faculty and admins."""
    questions: List[ExamQuestion] = []
    created_at: datetime
    updated_at: datetime

class ExamForStudent(ExamBase):
    questions: List[ExamQuestionForStudent] = []

class ExamListed(ExamBase):
    question_count: int = 0
