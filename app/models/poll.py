from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Index, UniqueConstraint, text
from sqlmodel import Field, SQLModel

from app.core.time import utc_now
from app.models.types import JSONType


class QueueStatus(str):
    QUEUED = "queued"
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


STATUS_DISPLAY = {
    QueueStatus.ACTIVE: "Currently Active",
    QueueStatus.QUEUED: "In Queue",
    QueueStatus.COMPLETED: "Completed",
    QueueStatus.PAUSED: "Paused",
}

# Entries that can still be activated or repositioned
ELIGIBLE_STATUSES = (QueueStatus.QUEUED, QueueStatus.PAUSED)


class Poll(SQLModel, table=True):
    __tablename__ = "polls"
    __table_args__ = (
        # At most one active poll per session, enforced by the store itself
        Index(
            "uq_polls_one_active_per_session",
            "session_id",
            unique=True,
            postgresql_where=text("queue_status = 'active'"),
            sqlite_where=text("queue_status = 'active'"),
        ),
        Index("ix_polls_session_position", "session_id", "queue_position"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="sessions.id", index=True)
    question: str
    options: list[str] = Field(sa_column=Column(JSONType, nullable=False, default=list))
    correct_answer: Optional[int] = None
    justification: Optional[str] = None
    time_limit: int = Field(default=60, ge=1)
    is_active: bool = Field(default=False)
    queue_status: str = Field(default=QueueStatus.QUEUED, index=True)
    queue_position: int = Field(default=1)
    activated_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))


class PollResponse(SQLModel, table=True):
    __tablename__ = "poll_responses"
    __table_args__ = (UniqueConstraint("poll_id", "student_id", name="uq_poll_responses_student"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    poll_id: int = Field(foreign_key="polls.id", index=True)
    student_id: str
    selected_option: int
    is_correct: Optional[bool] = None
    response_time: float = Field(default=0.0, ge=0)
    submitted_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
