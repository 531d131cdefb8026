import asyncio
import logging
from typing import Dict, List

from fastapi import WebSocket

from app.schemas import QueueEvent
from app.services.registry import normalize_code

logger = logging.getLogger("scheduler")


class QueueNotifier:
    """Outbound port for queue transitions. The scheduler only calls ``publish``."""

    async def publish(self, event: QueueEvent) -> None:
        raise NotImplementedError


class BroadcastHub(QueueNotifier):
    """Fan queue events out to every WebSocket subscribed to a session code."""

    def __init__(self):
        self.sockets: Dict[str, List[WebSocket]] = {}
        self.lock = asyncio.Lock()

    async def connect(self, session_code: str, websocket: WebSocket) -> None:
        async with self.lock:
            self.sockets.setdefault(normalize_code(session_code), []).append(websocket)

    async def disconnect(self, session_code: str, websocket: WebSocket) -> None:
        async with self.lock:
            sockets = self.sockets.get(normalize_code(session_code))
            if not sockets:
                return
            if websocket in sockets:
                sockets.remove(websocket)
            if not sockets:
                self.sockets.pop(normalize_code(session_code), None)

    def subscriber_count(self, session_code: str) -> int:
        return len(self.sockets.get(normalize_code(session_code), []))

    async def publish(self, event: QueueEvent) -> None:
        code = normalize_code(event.session_code)
        async with self.lock:
            sockets = list(self.sockets.get(code, []))
        if not sockets:
            return
        failed = await _broadcast(sockets, event.model_dump(mode="json"))
        for ws in failed:
            await self.disconnect(code, ws)
        logger.debug("Published %s to %s sockets session=%s", event.type, len(sockets) - len(failed), code)


async def _broadcast(sockets: List[WebSocket], message: dict) -> List[WebSocket]:
    to_remove = []
    for ws in sockets:
        try:
            await ws.send_json(message)
        except Exception:
            to_remove.append(ws)
    return to_remove
