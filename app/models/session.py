from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from app.core.time import utc_now


class Session(SQLModel, table=True):
    """Live session owned by the session service; the queue only reads it."""

    __tablename__ = "sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_code: str = Field(index=True, unique=True, max_length=32)
    title: Optional[str] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True)))
