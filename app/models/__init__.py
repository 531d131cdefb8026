from app.models.poll import ELIGIBLE_STATUSES, Poll, PollResponse, QueueStatus
from app.models.question import GeneratedMCQ
from app.models.queue import Actor, QueueAction, QueueHistoryEntry, QueueSettings
from app.models.session import Session

__all__ = [
    "ELIGIBLE_STATUSES",
    "Actor",
    "GeneratedMCQ",
    "Poll",
    "PollResponse",
    "QueueAction",
    "QueueHistoryEntry",
    "QueueSettings",
    "QueueStatus",
    "Session",
]
