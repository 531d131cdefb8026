from typing import List

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from app.dependencies import get_db_session
from app.schemas import Ack, GeneratedMCQBatch, GeneratedMCQRead, GeneratedMCQUpdate, IngestResult, MCQUpdateResult
from app.services import questions

router = APIRouter(tags=["questions"])


@router.post("/generated-mcqs", response_model=IngestResult, status_code=201)
async def receive_generated_mcqs(payload: GeneratedMCQBatch, db: AsyncSession = Depends(get_db_session)):
    created = await questions.ingest(db, payload.session_id, payload.mcqs)
    await db.commit()
    return IngestResult(
        message="Generated MCQs received and stored for teacher review",
        mcqs=[GeneratedMCQRead.model_validate(mcq) for mcq in created],
        count=len(created),
    )


@router.put("/generated-mcqs/{mcq_id}", response_model=MCQUpdateResult)
async def update_mcq(mcq_id: int, payload: GeneratedMCQUpdate, db: AsyncSession = Depends(get_db_session)):
    mcq = await questions.update_pending(db, mcq_id, payload)
    await db.commit()
    return MCQUpdateResult(message="MCQ updated successfully", mcq=GeneratedMCQRead.model_validate(mcq))


@router.delete("/generated-mcqs/{mcq_id}", response_model=Ack)
async def delete_mcq(mcq_id: int, db: AsyncSession = Depends(get_db_session)):
    await questions.delete_pending(db, mcq_id)
    await db.commit()
    return Ack(message="MCQ deleted successfully")


@router.get("/sessions/{session_code}/generated-mcqs", response_model=List[GeneratedMCQRead])
async def pending_mcqs(session_code: str, db: AsyncSession = Depends(get_db_session)):
    pending = await questions.list_pending(db, session_code)
    return [GeneratedMCQRead.model_validate(mcq) for mcq in pending]
