from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from app.dependencies import get_db_session, get_scheduler
from app.schemas import CompletionResult, PollResponsesRead, ResponseCreate, ResponseRead
from app.services import responses
from app.services.scheduler import QueueScheduler

router = APIRouter(prefix="/polls", tags=["polls"])


@router.post("/{poll_id}/complete", response_model=CompletionResult)
async def complete_poll(poll_id: int, scheduler: QueueScheduler = Depends(get_scheduler)):
    return await scheduler.complete_and_advance(poll_id)


@router.post("/{poll_id}/responses", response_model=ResponseRead, status_code=201)
async def respond(poll_id: int, payload: ResponseCreate, db: AsyncSession = Depends(get_db_session)):
    response = await responses.submit(db, poll_id, payload)
    await db.commit()
    return ResponseRead.model_validate(response)


@router.get("/{poll_id}/responses", response_model=PollResponsesRead)
async def list_responses(poll_id: int, db: AsyncSession = Depends(get_db_session)):
    return await responses.poll_responses(db, poll_id)
