from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Any
from datetime import datetime

from app.db.models.attempt import AttemptStatusEnum
from app.utils.timeutils import utcnow
from .exam import coerce_text, QUESTION_INDEX_MIN, QUESTION_INDEX_LIMIT

# --- Student input ---
class AnswerSubmit(BaseModel):
    # Out-of-range indices are accepted and graded as incorrect
    question_index: int = Field(..., ge=QUESTION_INDEX_MIN, lt=QUESTION_INDEX_LIMIT)
    answer: str = ""

    @field_validator("answer", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> str:
        return coerce_text(v)

class AttemptMeta(BaseModel):
    browser_info: Optional[str] = Field(None, max_length=512)

class AttemptSubmit(BaseModel):
    answers: List[AnswerSubmit] = []
    meta: Optional[AttemptMeta] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "answers": [{"question_index": 0, "answer": "A"}, {"question_index": 1, "answer": "C"}],
                "meta": {"browser_info": "Mozilla/5.0"},
            }
        }
    )

class HeartbeatSignal(BaseModel):
    visibility: bool = Field(True, description="Is the exam tab visible?")
    fullscreen: bool = Field(True, description="Is the browser in fullscreen mode?")

class HeartbeatResponse(BaseModel):
    status: str = "received"
    server_time: datetime = Field(default_factory=utcnow)

# --- Attempt output ---
class AttemptAnswer(BaseModel):
    question_index: int
    answer: str
    is_correct: bool
    marks_awarded: float

    model_config = ConfigDict(from_attributes=True)

class ManualMark(BaseModel):
    question_index: int
    marks_awarded: float
    comment: str = ""

    model_config = ConfigDict(from_attributes=True)

class ExamAttempt(BaseModel):
    id: int
    exam_id: int
    student_id: int
    attempt_number: int
    status: AttemptStatusEnum
    started_at: datetime
    submitted_at: Optional[datetime] = None
    time_spent: Optional[int] = None
    total_marks: float = 0
    percentage: int = 0
    answers: List[AttemptAnswer] = []
    manual_marks: List[ManualMark] = []
    browser_info: Optional[str] = None
    ip_address: Optional[str] = None
    feedback: Optional[str] = None
    graded_by: Optional[int] = None
    graded_at: Optional[datetime] = None
    remarks: Optional[str] = None
    last_heartbeat: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

class MyAttempt(BaseModel):
    """A student's attempt as listed across all exams."""
    attempt_id: int
    exam_id: int
    exam_title: str
    course_id: int
    attempt_number: int
    status: AttemptStatusEnum
    total_marks: float
    maximum_marks: int
    percentage: int
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None
    feedback: str = ""

    model_config = ConfigDict(use_enum_values=True)

class ExpirySweepResult(BaseModel):
    expired: int = Field(..., description="Number of attempts moved to 'timeout'")
