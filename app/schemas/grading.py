from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Dict, Any

from .exam import coerce_number, QUESTION_INDEX_LIMIT

# --- Input for Manual Grading ---
class ManualMarkInput(BaseModel):
    question_index: int = Field(..., ge=0, lt=QUESTION_INDEX_LIMIT)
    marks_awarded: float = Field(0, ge=0, description="Invalid or negative values count as 0")
    comment: str = ""

    @field_validator("marks_awarded", mode="before")
    @classmethod
    def clamp_marks(cls, v: Any) -> float:
        return max(0.0, coerce_number(v) or 0.0)

    @field_validator("comment", mode="before")
    @classmethod
    def blank_comment(cls, v: Any) -> str:
        return "" if v is None else str(v)

class GradeInput(BaseModel):
    manual_marks: List[ManualMarkInput] = []
    feedback: Optional[str] = None
    attempt_number: Optional[int] = Field(None, ge=1, description="Defaults to the student's latest attempt")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "manual_marks": [{"question_index": 1, "marks_awarded": 10, "comment": "accepted alternate phrasing"}],
                "feedback": "Good work overall.",
            }
        }
    )

# --- Scoring results ---
class ScoredAnswer(BaseModel):
    question_index: int
    answer: str
    is_correct: bool
    marks_awarded: float

class ObjectiveScore(BaseModel):
    answers: List[ScoredAnswer]
    total_marks: float
    percentage: int

class MergedScore(BaseModel):
    marks_by_index: Dict[int, float]
    total_marks: float
    percentage: int
