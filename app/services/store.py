"""Session-scoped poll queue persistence.

Every function works inside the caller's transaction; none of them commits.
"""
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models import ELIGIBLE_STATUSES, Poll, QueueStatus


async def next_position(db: AsyncSession, session_id: int) -> int:
    result = await db.exec(select(func.max(Poll.queue_position)).where(Poll.session_id == session_id))
    current = result.one()
    return (current or 0) + 1


async def append(db: AsyncSession, poll: Poll) -> Poll:
    """Insert ``poll`` at the session's next trailing position."""
    poll.queue_position = await next_position(db, poll.session_id)
    db.add(poll)
    await db.flush()
    return poll


async def list_by_session(db: AsyncSession, session_id: int) -> Sequence[Poll]:
    result = await db.exec(
        select(Poll).where(Poll.session_id == session_id).order_by(col(Poll.queue_position), col(Poll.id))
    )
    return result.all()


async def find_active(db: AsyncSession, session_id: int) -> Optional[Poll]:
    result = await db.exec(
        select(Poll).where(Poll.session_id == session_id, Poll.queue_status == QueueStatus.ACTIVE)
    )
    return result.first()


async def find_next_eligible(db: AsyncSession, session_id: int) -> Optional[Poll]:
    result = await db.exec(
        select(Poll)
        .where(Poll.session_id == session_id, col(Poll.queue_status).in_(ELIGIBLE_STATUSES))
        .order_by(col(Poll.queue_position), col(Poll.id))
        .limit(1)
    )
    return result.first()


async def list_eligible(db: AsyncSession, session_id: int) -> Sequence[Poll]:
    result = await db.exec(
        select(Poll)
        .where(Poll.session_id == session_id, col(Poll.queue_status).in_(ELIGIBLE_STATUSES))
        .order_by(col(Poll.queue_position), col(Poll.id))
    )
    return result.all()


async def update_status(db: AsyncSession, poll: Poll, status: str, now: datetime) -> Poll:
    """Move ``poll`` to ``status`` and stamp the matching timestamp.

    Flushes immediately: the unique active index is checked per statement, so
    a completion must reach the database before the next activation does.
    """
    poll.queue_status = status
    poll.is_active = status == QueueStatus.ACTIVE
    if status == QueueStatus.ACTIVE:
        poll.activated_at = now
    elif status == QueueStatus.COMPLETED:
        poll.completed_at = now
    poll.updated_at = now
    db.add(poll)
    await db.flush()
    return poll


async def count_by_status(db: AsyncSession, session_id: int) -> dict[str, int]:
    result = await db.exec(
        select(Poll.queue_status, func.count()).where(Poll.session_id == session_id).group_by(Poll.queue_status)
    )
    return {status: count for status, count in result.all()}
