from fastapi import Request

from app.services.notifier import BroadcastHub
from app.services.scheduler import QueueScheduler


def get_scheduler(request: Request) -> QueueScheduler:
    return request.app.state.scheduler


def get_hub(request: Request) -> BroadcastHub:
    return request.app.state.hub


async def get_db_session(request: Request):
    async with request.app.state.session_factory() as session:
        yield session
