"""Generated MCQs waiting for the presenter to send them to the queue."""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.time import utc_now
from app.models import GeneratedMCQ
from app.schemas import GeneratedMCQIn, GeneratedMCQUpdate
from app.services import registry
from app.services.errors import MCQNotFound

logger = logging.getLogger("questions")

ANSWER_LETTERS = ("A", "B", "C", "D")


def letter_to_index(letter: Optional[str]) -> int:
    """Map the workflow's answer letter to an option index; unknown letters mean A."""
    if not letter:
        return 0
    letter = letter.strip().upper()
    return ANSWER_LETTERS.index(letter) if letter in ANSWER_LETTERS else 0


async def ingest(db: AsyncSession, session_code: str, items: Sequence[GeneratedMCQIn]) -> List[GeneratedMCQ]:
    session = await registry.resolve(db, session_code)
    created: List[GeneratedMCQ] = []
    for item in items:
        options = [item.option_a, item.option_b, item.option_c, item.option_d]
        if not item.question or not all(options):
            logger.warning("Skipping invalid MCQ for session %s: %r", session.session_code, item.question)
            continue
        mcq = GeneratedMCQ(
            session_id=session.id,
            question=item.question,
            options=options,
            correct_answer=letter_to_index(item.correct_answer),
            justification=item.justification,
            time_limit=item.time_limit,
        )
        db.add(mcq)
        created.append(mcq)
    await db.flush()
    logger.info("Stored %s generated MCQs for session %s", len(created), session.session_code)
    return created


async def list_pending(db: AsyncSession, session_code: str) -> List[GeneratedMCQ]:
    session = await registry.resolve(db, session_code)
    result = await db.exec(
        select(GeneratedMCQ)
        .where(GeneratedMCQ.session_id == session.id, GeneratedMCQ.sent_to_students == False)  # noqa: E712
        .order_by(col(GeneratedMCQ.created_at).desc(), col(GeneratedMCQ.id).desc())
    )
    return list(result.all())


async def take_pending(db: AsyncSession, session_id: int, mcq_id: int) -> Optional[GeneratedMCQ]:
    """Return the MCQ if it belongs to the session and was never sent."""
    result = await db.exec(
        select(GeneratedMCQ).where(
            GeneratedMCQ.id == mcq_id,
            GeneratedMCQ.session_id == session_id,
            GeneratedMCQ.sent_to_students == False,  # noqa: E712
        )
    )
    return result.first()


def mark_sent(db: AsyncSession, mcq: GeneratedMCQ, now: datetime) -> None:
    mcq.sent_to_students = True
    mcq.sent_at = now
    db.add(mcq)


async def _find_unsent(db: AsyncSession, mcq_id: int) -> GeneratedMCQ:
    result = await db.exec(
        select(GeneratedMCQ).where(GeneratedMCQ.id == mcq_id, GeneratedMCQ.sent_to_students == False)  # noqa: E712
    )
    mcq = result.first()
    if mcq is None:
        raise MCQNotFound(mcq_id)
    return mcq


async def update_pending(db: AsyncSession, mcq_id: int, payload: GeneratedMCQUpdate) -> GeneratedMCQ:
    """Edit a question before it is sent; sent questions are frozen."""
    mcq = await _find_unsent(db, mcq_id)
    mcq.question = payload.question
    mcq.options = list(payload.options)
    mcq.correct_answer = payload.correct_answer
    mcq.justification = payload.justification
    mcq.time_limit = payload.time_limit
    mcq.updated_at = utc_now()
    db.add(mcq)
    await db.flush()
    logger.info("Updated MCQ %s", mcq_id)
    return mcq


async def delete_pending(db: AsyncSession, mcq_id: int) -> None:
    mcq = await _find_unsent(db, mcq_id)
    await db.delete(mcq)
    await db.flush()
    logger.info("Deleted MCQ %s", mcq_id)
