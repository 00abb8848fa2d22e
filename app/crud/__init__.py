from .crud_course import CRUDCourse, crud_course
from .crud_exam import CRUDExam, crud_exam
from .crud_attempt import CRUDExamAttempt, crud_exam_attempt
__all__ = ["CRUDCourse", "crud_course", "CRUDExam", "crud_exam", "CRUDExamAttempt", "crud_exam_attempt"]
