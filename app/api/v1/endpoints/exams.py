from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Any

from app import schemas
from app.api import deps
from app.services import exam_catalog, attempt_lifecycle

router = APIRouter()

# --- Exam Endpoints ---

@router.get("/", response_model=List[schemas.ExamListed])
async def list_exams(
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_principal),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> Any:
    """
    Lists exams visible to the caller:
    - faculty: the exams they own
    - admin: every exam
    - student: scheduled or active exams of their enrolled courses
    """
    return await exam_catalog.list_exams(db, principal, skip=skip, limit=limit)


@router.post("/", response_model=schemas.Exam, status_code=status.HTTP_201_CREATED)
async def create_exam(
    *,
    db: AsyncSession = Depends(deps.get_db),
    exam_in: schemas.ExamCreate,
    principal: schemas.Principal = Depends(deps.get_current_staff),
) -> Any:
    """
    Create a new exam for a course the caller owns (admins: any course).
    Missing optional fields are defaulted, questions are normalised per type.
    """
    return await exam_catalog.create_exam(db, principal, exam_in)


@router.get("/my-attempts", response_model=List[schemas.MyAttempt])
async def read_my_attempts(
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_student),
) -> Any:
    """The current student's attempts across all exams, most recently submitted first."""
    return await attempt_lifecycle.my_attempts(db, principal)


# Two shapes depending on the caller, serialised as returned
@router.get("/{exam_id}", response_model=None)
async def read_exam(
    exam_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_principal),
) -> Any:
    """
    Exam definition. Students get the paper without answer keys or explanations.
    """
    exam = await exam_catalog.view_exam(db, principal, exam_id)
    if principal.is_student:
        return schemas.ExamForStudent.model_validate(exam)
    return schemas.Exam.model_validate(exam)


@router.put("/{exam_id}", response_model=schemas.Exam)
async def update_exam(
    *,
    exam_id: int,
    db: AsyncSession = Depends(deps.get_db),
    exam_in: schemas.ExamUpdate,
    principal: schemas.Principal = Depends(deps.get_current_staff),
) -> Any:
    """Partial update. Supplying `questions` replaces the whole paper."""
    return await exam_catalog.update_exam(db, principal, exam_id, exam_in)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(
    exam_id: int,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_staff),
) -> Response:
    """Deletes the exam together with its questions and attempts."""
    await exam_catalog.delete_exam(db, principal, exam_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
