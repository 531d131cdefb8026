from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from app.core.time import utc_now
from app.models.types import JSONType


class QueueAction(str):
    ENQUEUED = "enqueued"
    ACTIVATED = "activated"
    MANUAL_COMPLETE = "manual-complete"
    EXPIRED = "expired"
    SKIPPED = "skipped"
    PAUSED = "queue_paused"
    RESUMED = "queue_resumed"
    REORDERED = "queue_reordered"


class Actor(str):
    TEACHER = "teacher"
    SYSTEM = "system"


class QueueSettings(SQLModel, table=True):
    __tablename__ = "poll_queue_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="sessions.id", unique=True, index=True)
    auto_advance: bool = Field(default=True)
    poll_duration: int = Field(default=60, ge=1)
    # Stored and reported; transitions do not wait on it
    break_between_polls: int = Field(default=10, ge=0)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))


class QueueHistoryEntry(SQLModel, table=True):
    """Append-only audit row. Never updated or deleted."""

    __tablename__ = "poll_queue_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="sessions.id", index=True)
    poll_id: Optional[int] = Field(default=None, foreign_key="polls.id")
    action: str
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    triggered_by: str = Field(default=Actor.TEACHER)
    # "metadata" is reserved on declarative classes, so map it under another attribute
    details: dict[str, Any] = Field(default_factory=dict, sa_column=Column("metadata", JSONType, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
