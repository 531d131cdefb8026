from fastapi import APIRouter, WebSocket

from app.schemas import PollPublic
from app.services import registry, store
from app.services.errors import SessionNotFound

router = APIRouter()


@router.websocket("/ws/sessions/{session_code}")
async def queue_events_socket(websocket: WebSocket, session_code: str):
    """Push queue events for one session; the client only listens."""
    async with websocket.app.state.session_factory() as db:
        try:
            session = await registry.resolve(db, session_code)
        except SessionNotFound:
            await websocket.close(code=4404)
            return
        active = await store.find_active(db, session.id)

    hub = websocket.app.state.hub
    scheduler = websocket.app.state.scheduler
    await websocket.accept()
    await hub.connect(session.session_code, websocket)
    try:
        status = await scheduler.get_queue_status(session.session_code)
        await websocket.send_json(
            {
                "type": "queue-status",
                "status": status.model_dump(mode="json"),
                "active_poll": PollPublic.model_validate(active).model_dump(mode="json") if active else None,
            }
        )
        while True:
            # Inbound frames are ignored, text or binary
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        await hub.disconnect(session.session_code, websocket)
