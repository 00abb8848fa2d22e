import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.crud import crud_exam_attempt
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def attempt_deadline(started_at: datetime, duration_minutes: int, exam_end_time: datetime,
                     grace_minutes: int = 0) -> datetime:
    """An attempt ends at its own duration or at the exam's end, whichever comes first."""
    return min(started_at + timedelta(minutes=duration_minutes), exam_end_time) + timedelta(minutes=grace_minutes)


class AttemptExpirySweeper:
    """Moves in-progress attempts whose deadline has passed to 'timeout'."""

    def __init__(self, grace_minutes: Optional[int] = None):
        self._grace_minutes = grace_minutes

    @property
    def grace_minutes(self) -> int:
        if self._grace_minutes is not None:
            return self._grace_minutes
        return settings.ATTEMPT_EXPIRY_GRACE_MINUTES

    async def sweep(self, db: AsyncSession, *, now: Optional[datetime] = None,
                    exam_id: Optional[int] = None, student_id: Optional[int] = None) -> int:
        """Returns how many attempts were timed out."""
        now = now or utcnow()
        windows = await crud_exam_attempt.get_in_progress_windows(db, exam_id=exam_id, student_id=student_id)
        stale_ids = [
            attempt_id
            for attempt_id, started_at, duration_minutes, end_time in windows
            if now > attempt_deadline(started_at, duration_minutes, end_time, self.grace_minutes)
        ]
        expired = await crud_exam_attempt.mark_timed_out(db, attempt_ids=stale_ids)
        if expired:
            logger.info("Timed out %d stale attempt(s) (exam=%s, student=%s)", expired, exam_id, student_id)
        return expired

attempt_expiry_sweeper = AttemptExpirySweeper()
