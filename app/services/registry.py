from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.models import Session
from app.services.errors import SessionNotFound


def normalize_code(session_code: str) -> str:
    return session_code.strip().upper()


async def resolve(db: AsyncSession, session_code: str) -> Session:
    """Return the session row for a human-facing code."""
    result = await db.exec(select(Session).where(Session.session_code == normalize_code(session_code)))
    session = result.first()
    if not session:
        raise SessionNotFound(normalize_code(session_code))
    return session


async def lock_session(db: AsyncSession, session_id: int) -> Session:
    """Row-lock the session so transitions on it serialize across processes (no-op on SQLite)."""
    result = await db.exec(select(Session).where(Session.id == session_id).with_for_update())
    return result.one()
