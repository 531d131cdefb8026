from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.core.time import utc_now
from app.schemas.queue import PollPublic


class EventType(str):
    POLL_ACTIVATED = "poll-activated"
    POLL_COMPLETED = "poll-completed"
    QUEUE_EMPTY = "queue-empty"


class QueueEvent(BaseModel):
    type: str
    session_code: str
    poll: Optional[PollPublic] = None
    completed_poll_id: Optional[int] = None
    action: Optional[str] = None
    sent_at: datetime = Field(default_factory=utc_now)
