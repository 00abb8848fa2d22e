from fastapi import APIRouter

from app.api.v1.endpoints import exams, attempts, grading

api_router = APIRouter()

# Exam catalog routes (includes /exams/my-attempts, registered before /exams/{exam_id})
api_router.include_router(exams.router, prefix="/exams", tags=["Exams"])
# Exam taking routes (start, heartbeat, submit)
api_router.include_router(attempts.router, prefix="/exams", tags=["Exam Taking"])
# Grading routes (attempt listing, export, expiry sweep, grade)
api_router.include_router(grading.router, prefix="/exams", tags=["Grading & Results"])
