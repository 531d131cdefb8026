import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_hub, get_scheduler
from app.models import QueueStatus
from app.schemas import (
    Ack,
    ActivationResult,
    AddToQueueResult,
    EventType,
    HistoryRead,
    PollPublic,
    PollQueueRead,
    QueueEvent,
    ReorderRequest,
    ReorderResult,
    SendMCQsRequest,
    SkipResult,
)
from app.services.notifier import BroadcastHub
from app.services.scheduler import QueueScheduler

router = APIRouter(prefix="/sessions/{session_code}", tags=["queue"])
logger = logging.getLogger("scheduler")


@router.post("/send-mcqs", response_model=AddToQueueResult, status_code=201)
async def send_mcqs(
    session_code: str,
    payload: SendMCQsRequest,
    scheduler: QueueScheduler = Depends(get_scheduler),
    hub: BroadcastHub = Depends(get_hub),
):
    result = await scheduler.add_to_queue(session_code, payload.mcq_ids, payload.queue_options)
    # Enqueue does not publish; announce the poll it activated here
    if result.polls and result.polls[0].queue_status == QueueStatus.ACTIVE:
        first = result.polls[0]
        try:
            await hub.publish(
                QueueEvent(
                    type=EventType.POLL_ACTIVATED,
                    session_code=result.queue_status.session_code,
                    poll=PollPublic.model_validate(first.model_dump()),
                )
            )
        except Exception:
            logger.exception("Failed to announce poll %s", first.id)
    return result


@router.get("/poll-queue", response_model=PollQueueRead)
async def poll_queue(session_code: str, scheduler: QueueScheduler = Depends(get_scheduler)):
    status = await scheduler.get_queue_status(session_code)
    queue = await scheduler.get_detailed_queue(session_code)
    return PollQueueRead(status=status, queue=queue)


@router.get("/active-poll", response_model=PollPublic)
async def active_poll(session_code: str, scheduler: QueueScheduler = Depends(get_scheduler)):
    return await scheduler.get_active_poll(session_code)


@router.get("/queue/history", response_model=List[HistoryRead])
async def queue_history(
    session_code: str,
    limit: int = Query(default=100, ge=1, le=1000),
    scheduler: QueueScheduler = Depends(get_scheduler),
):
    return await scheduler.list_history(session_code, limit=limit)


@router.post("/queue/advance", response_model=ActivationResult)
async def advance(session_code: str, scheduler: QueueScheduler = Depends(get_scheduler)):
    return await scheduler.activate_next(session_code)


@router.post("/queue/pause", response_model=Ack)
async def pause(session_code: str, scheduler: QueueScheduler = Depends(get_scheduler)):
    return await scheduler.pause_queue(session_code)


@router.post("/queue/resume", response_model=Ack)
async def resume(session_code: str, scheduler: QueueScheduler = Depends(get_scheduler)):
    return await scheduler.resume_queue(session_code)


@router.post("/queue/skip", response_model=SkipResult)
async def skip(session_code: str, scheduler: QueueScheduler = Depends(get_scheduler)):
    return await scheduler.skip_current(session_code)


@router.put("/queue/reorder", response_model=ReorderResult)
async def reorder(
    session_code: str,
    payload: ReorderRequest,
    scheduler: QueueScheduler = Depends(get_scheduler),
):
    return await scheduler.reorder_queue(session_code, payload.new_order)
