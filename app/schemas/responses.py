from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.queue import PollRead


class ResponseCreate(BaseModel):
    student_id: str = Field(min_length=1)
    selected_option: int = Field(ge=0)
    response_time: float = Field(default=0.0, ge=0)


class ResponseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_id: int
    student_id: str
    selected_option: int
    is_correct: Optional[bool]
    response_time: float
    submitted_at: datetime


class ResponseStats(BaseModel):
    total_responses: int
    correct_responses: int
    accuracy_rate: float
    option_counts: Dict[int, int]
    average_response_time: float


class PollResponsesRead(BaseModel):
    poll: PollRead
    responses: List[ResponseRead]
    stats: ResponseStats
