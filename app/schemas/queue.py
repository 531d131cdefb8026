from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QueueOptions(BaseModel):
    auto_advance: bool = True
    activate_first: bool = True
    poll_duration: Optional[int] = Field(default=None, ge=1)
    break_between_polls: Optional[int] = Field(default=None, ge=0)


class SendMCQsRequest(BaseModel):
    mcq_ids: List[int] = Field(min_length=1)
    queue_options: QueueOptions = Field(default_factory=QueueOptions)


class PollRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    question: str
    options: List[str]
    correct_answer: Optional[int]
    justification: Optional[str]
    time_limit: int
    is_active: bool
    queue_status: str
    queue_position: int
    activated_at: Optional[datetime]
    completed_at: Optional[datetime]


class PollDetail(PollRead):
    status_display: str
    response_count: int = 0


class PollPublic(BaseModel):
    """Audience-facing view: never carries the answer."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    question: str
    options: List[str]
    time_limit: int
    queue_position: int
    activated_at: Optional[datetime]


class QueueStatusRead(BaseModel):
    session_code: str
    total_polls: int = 0
    queued_polls: int = 0
    paused_polls: int = 0
    active_polls: int = 0
    completed_polls: int = 0
    current_position: Optional[int] = None
    total_positions: int = 0
    auto_advance: Optional[bool] = None
    poll_duration: Optional[int] = None
    break_between_polls: Optional[int] = None


class AddToQueueResult(BaseModel):
    message: str
    polls: List[PollRead]
    skipped_mcq_ids: List[int] = Field(default_factory=list)
    queue_status: QueueStatusRead


class PollQueueRead(BaseModel):
    status: QueueStatusRead
    queue: List[PollDetail]


class ActivationResult(BaseModel):
    activated: bool
    poll_id: Optional[int] = None
    position: Optional[int] = None
    reason: Optional[str] = None
    message: str


class CompletionResult(BaseModel):
    completed_poll_id: int
    changed: bool = True
    next_poll_id: Optional[int] = None
    next_position: Optional[int] = None
    message: str


class SkipResult(BaseModel):
    skipped_poll_id: Optional[int] = None
    next_poll: ActivationResult
    message: str


class ReorderRequest(BaseModel):
    new_order: List[int]


class ReorderResult(BaseModel):
    success: bool = True
    applied_order: List[int]
    ignored_poll_ids: List[int] = Field(default_factory=list)
    message: str


class Ack(BaseModel):
    success: bool = True
    message: str


class HistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_id: Optional[int]
    action: str
    previous_status: Optional[str]
    new_status: Optional[str]
    triggered_by: str
    details: dict[str, Any]
    created_at: datetime
