from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GeneratedMCQIn(BaseModel):
    """One item as emitted by the generation workflow."""

    question: Optional[str] = None
    option_a: Optional[str] = None
    option_b: Optional[str] = None
    option_c: Optional[str] = None
    option_d: Optional[str] = None
    correct_answer: Optional[str] = None
    justification: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=1)


class GeneratedMCQBatch(BaseModel):
    session_id: str
    mcqs: List[GeneratedMCQIn] = Field(min_length=1)


class GeneratedMCQRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    question: str
    options: List[str]
    correct_answer: Optional[int]
    justification: Optional[str]
    time_limit: Optional[int]
    sent_to_students: bool
    created_at: datetime


class IngestResult(BaseModel):
    message: str
    mcqs: List[GeneratedMCQRead]
    count: int


class GeneratedMCQUpdate(BaseModel):
    """Presenter edit of a question that has not been sent yet."""

    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=4, max_length=4)
    correct_answer: int = Field(ge=0, le=3)
    justification: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, ge=1)


class MCQUpdateResult(BaseModel):
    message: str
    mcq: GeneratedMCQRead
