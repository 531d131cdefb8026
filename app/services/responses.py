import logging
from typing import Dict, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models import Poll, PollResponse, QueueStatus
from app.schemas import PollRead, PollResponsesRead, ResponseCreate, ResponseRead, ResponseStats
from app.services.errors import DuplicateResponse, InvalidOption, PollNotActive, PollNotFound

logger = logging.getLogger("responses")


async def submit(db: AsyncSession, poll_id: int, payload: ResponseCreate) -> PollResponse:
    """Record one student's answer to the active poll."""
    poll = await db.get(Poll, poll_id)
    if poll is None:
        raise PollNotFound(poll_id)
    if poll.queue_status != QueueStatus.ACTIVE:
        raise PollNotActive(poll_id)
    if payload.selected_option >= len(poll.options):
        raise InvalidOption(f"selected_option must be between 0 and {len(poll.options) - 1}")

    existing = await db.exec(
        select(PollResponse.id).where(PollResponse.poll_id == poll_id, PollResponse.student_id == payload.student_id)
    )
    if existing.first() is not None:
        raise DuplicateResponse(poll_id, payload.student_id)

    response = PollResponse(
        poll_id=poll_id,
        student_id=payload.student_id,
        selected_option=payload.selected_option,
        is_correct=payload.selected_option == poll.correct_answer if poll.correct_answer is not None else None,
        response_time=payload.response_time,
    )
    db.add(response)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race against the same student's other request
        await db.rollback()
        raise DuplicateResponse(poll_id, payload.student_id) from exc
    logger.info(
        "Response recorded poll=%s student=%s option=%s correct=%s",
        poll_id,
        payload.student_id,
        payload.selected_option,
        response.is_correct,
    )
    return response


async def count_responses(db: AsyncSession, poll_ids: Sequence[int]) -> Dict[int, int]:
    if not poll_ids:
        return {}
    result = await db.exec(
        select(PollResponse.poll_id, func.count())
        .where(col(PollResponse.poll_id).in_(poll_ids))
        .group_by(PollResponse.poll_id)
    )
    return {poll_id: count for poll_id, count in result.all()}


async def poll_responses(db: AsyncSession, poll_id: int) -> PollResponsesRead:
    """All responses to a poll in submission order, with summary statistics."""
    poll = await db.get(Poll, poll_id)
    if poll is None:
        raise PollNotFound(poll_id)
    result = await db.exec(
        select(PollResponse)
        .where(PollResponse.poll_id == poll_id)
        .order_by(col(PollResponse.submitted_at), col(PollResponse.id))
    )
    rows = list(result.all())

    total = len(rows)
    correct = sum(1 for r in rows if r.is_correct)
    option_counts = {index: 0 for index in range(len(poll.options))}
    for r in rows:
        option_counts[r.selected_option] = option_counts.get(r.selected_option, 0) + 1

    stats = ResponseStats(
        total_responses=total,
        correct_responses=correct,
        accuracy_rate=round(correct / total * 100, 1) if total else 0.0,
        option_counts=option_counts,
        average_response_time=round(sum(r.response_time or 0 for r in rows) / total, 1) if total else 0.0,
    )
    return PollResponsesRead(
        poll=PollRead.model_validate(poll),
        responses=[ResponseRead.model_validate(r) for r in rows],
        stats=stats,
    )
