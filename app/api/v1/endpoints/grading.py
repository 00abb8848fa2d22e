import io
from typing import Any, List

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app import schemas
from app.api import deps
from app.services import attempt_lifecycle

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# --- Grading Endpoints (exam owner or admin) ---

@router.get("/{exam_id}/attempts", response_model=List[schemas.ExamAttempt])
async def list_exam_attempts(
    exam_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_staff),
) -> Any:
    """All attempts of the exam with their answers and manual marks, by student then attempt number."""
    return await attempt_lifecycle.list_attempts(db, principal, exam_id)


@router.get("/{exam_id}/attempts/export")
async def export_gradebook(
    exam_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_staff),
) -> StreamingResponse:
    """Downloads the exam's gradebook as an Excel workbook."""
    filename, content = await attempt_lifecycle.export_gradebook(db, principal, exam_id)
    return StreamingResponse(
        io.BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{exam_id}/attempts/expire", response_model=schemas.ExpirySweepResult)
async def expire_stale_attempts(
    exam_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_staff),
) -> Any:
    """Moves in-progress attempts past their deadline to 'timeout'."""
    expired = await attempt_lifecycle.expire_stale(db, principal, exam_id)
    return schemas.ExpirySweepResult(expired=expired)


@router.post("/{exam_id}/grade/{student_id}", response_model=schemas.ExamAttempt)
async def grade_attempt(
    exam_id: int,
    student_id: int,
    grade_in: schemas.GradeInput,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_staff),
) -> Any:
    """
    Grades a student's attempt (the latest one unless `attempt_number` is given).
    Manual marks replace the stored ones and override auto-graded marks per question.
    """
    return await attempt_lifecycle.grade(db, principal, exam_id, student_id, grade_in)
