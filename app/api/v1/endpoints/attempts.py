from fastapi import APIRouter, Depends, Request, Body
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Optional

from app import schemas
from app.api import deps
from app.services import attempt_lifecycle

router = APIRouter()

# --- Endpoints ---

@router.post("/{exam_id}/start", response_model=schemas.ExamAttempt)
async def start_or_resume_exam_attempt(
    exam_id: int,
    request: Request,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_student),
) -> Any:
    """
    Starts a new attempt for the current student, or returns the one already in progress.
    Fails when the exam window is not open or the attempt limit is used up.
    """
    return await attempt_lifecycle.start(
        db, principal, exam_id,
        ip_address=deps.get_client_ip(request),
        browser_info=request.headers.get("user-agent"),
    )


@router.post("/{exam_id}/heartbeat", response_model=schemas.HeartbeatResponse)
async def attempt_heartbeat(
    exam_id: int,
    signal: Optional[schemas.HeartbeatSignal] = Body(None),
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_student),
) -> Any:
    """
    Client sends this periodically while the student is taking the exam.
    Records tab visibility and fullscreen state on the active attempt.
    """
    await attempt_lifecycle.heartbeat(db, principal, exam_id, signal or schemas.HeartbeatSignal())
    return schemas.HeartbeatResponse()


@router.post("/{exam_id}/submit", response_model=schemas.ExamAttempt)
async def submit_exam_attempt(
    exam_id: int,
    submission: schemas.AttemptSubmit,
    request: Request,
    db: AsyncSession = Depends(deps.get_db),
    principal: schemas.Principal = Depends(deps.get_current_student),
) -> Any:
    """
    Submits the active attempt. Objective questions are graded immediately,
    subjective ones wait for manual grading.
    """
    return await attempt_lifecycle.submit(
        db, principal, exam_id, submission, ip_address=deps.get_client_ip(request),
    )
