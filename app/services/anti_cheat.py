import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import exceptions
from app.crud import crud_exam_attempt
from app.schemas.attempt import HeartbeatSignal
from app.schemas.token import Principal
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def summarize_signal(signal: HeartbeatSignal, now: datetime) -> str:
    """One-line summary stored in the attempt's remarks, e.g. 'visibility:hidden; fullscreen:on; ts:...'."""
    visibility = "visible" if signal.visibility else "hidden"
    fullscreen = "on" if signal.fullscreen else "off"
    return f"visibility:{visibility}; fullscreen:{fullscreen}; ts:{now.isoformat(timespec='milliseconds')}Z"


class AntiCheatCollector:
    """
    Relays client visibility/fullscreen signals onto the active attempt.
    Advisory only: it never blocks, never changes status or marks.
    """

    async def record(self, db: AsyncSession, principal: Principal, exam_id: int,
                     signal: HeartbeatSignal, *, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        remarks = summarize_signal(signal, now)
        recorded = await crud_exam_attempt.record_heartbeat(
            db, exam_id=exam_id, student_id=principal.id, remarks=remarks, now=now,
        )
        if not recorded:
            raise exceptions.NoActiveAttempt()
        if not (signal.visibility and signal.fullscreen):
            logger.info("Student %s left the exam view on exam %s (%s)", principal.id, exam_id, remarks)

anti_cheat_collector = AntiCheatCollector()
