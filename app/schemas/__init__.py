from .token import TokenPayload, Principal, RoleEnum
from .exam import Exam, ExamCreate, ExamUpdate, ExamForStudent, ExamListed, ExamSettings, QuestionIn
from .attempt import ExamAttempt, AttemptSubmit, AnswerSubmit, HeartbeatSignal, HeartbeatResponse, MyAttempt, ExpirySweepResult
from .grading import GradeInput, ManualMarkInput, ObjectiveScore, MergedScore, ScoredAnswer

__all__ = [
    "TokenPayload", "Principal", "RoleEnum",
    "Exam", "ExamCreate", "ExamUpdate", "ExamForStudent", "ExamListed", "ExamSettings", "QuestionIn",
    "ExamAttempt", "AttemptSubmit", "AnswerSubmit", "HeartbeatSignal", "HeartbeatResponse", "MyAttempt", "ExpirySweepResult",
    "GradeInput", "ManualMarkInput", "ObjectiveScore", "MergedScore", "ScoredAnswer",
]
