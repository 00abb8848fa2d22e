# Make models easily importable from app.db.models
from .course import Course, course_students_table
from .exam import Exam, ExamQuestion, ExamTypeEnum, ExamStatusEnum, QuestionTypeEnum, OBJECTIVE_QUESTION_TYPES
from .attempt import ExamAttempt, AttemptAnswer, ManualMark, AttemptStatusEnum, ACTIVE_SLOT

__all__ = [
    "Course", "course_students_table",
    "Exam", "ExamQuestion", "ExamTypeEnum", "ExamStatusEnum", "QuestionTypeEnum", "OBJECTIVE_QUESTION_TYPES",
    "ExamAttempt", "AttemptAnswer", "ManualMark", "AttemptStatusEnum", "ACTIVE_SLOT",
]
