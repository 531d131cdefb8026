from app.schemas.events import EventType, QueueEvent
from app.schemas.questions import (
    GeneratedMCQBatch,
    GeneratedMCQIn,
    GeneratedMCQRead,
    GeneratedMCQUpdate,
    IngestResult,
    MCQUpdateResult,
)
from app.schemas.queue import (
    Ack,
    ActivationResult,
    AddToQueueResult,
    CompletionResult,
    HistoryRead,
    PollDetail,
    PollPublic,
    PollQueueRead,
    PollRead,
    QueueOptions,
    QueueStatusRead,
    ReorderRequest,
    ReorderResult,
    SendMCQsRequest,
    SkipResult,
)
from app.schemas.responses import PollResponsesRead, ResponseCreate, ResponseRead, ResponseStats

__all__ = [
    "Ack",
    "ActivationResult",
    "AddToQueueResult",
    "CompletionResult",
    "EventType",
    "GeneratedMCQBatch",
    "GeneratedMCQIn",
    "GeneratedMCQRead",
    "GeneratedMCQUpdate",
    "HistoryRead",
    "IngestResult",
    "MCQUpdateResult",
    "PollDetail",
    "PollPublic",
    "PollQueueRead",
    "PollResponsesRead",
    "PollRead",
    "QueueEvent",
    "QueueOptions",
    "QueueStatusRead",
    "ReorderRequest",
    "ReorderResult",
    "ResponseCreate",
    "ResponseRead",
    "ResponseStats",
    "SendMCQsRequest",
    "SkipResult",
]
