from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from app.core.time import utc_now
from app.models.types import JSONType


class GeneratedMCQ(SQLModel, table=True):
    """Question produced by the generation pipeline, waiting to be queued."""

    __tablename__ = "generated_mcqs"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="sessions.id", index=True)
    question: str
    options: list[str] = Field(sa_column=Column(JSONType, nullable=False, default=list))
    correct_answer: Optional[int] = None
    justification: Optional[str] = None
    time_limit: Optional[int] = None
    sent_to_students: bool = Field(default=False)
    sent_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
