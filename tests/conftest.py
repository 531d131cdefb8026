import os

# The module-level engine in app.db is never used by tests, but must be creatable
os.environ.setdefault("POLLQ_DATABASE_URL", "sqlite+aiosqlite:///./.pytest-pollqueue.db")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import select

from app.db import init_db, session_factory
from app.models import GeneratedMCQ, Poll, QueueHistoryEntry, QueueSettings, QueueStatus, Session
from app.services.notifier import QueueNotifier
from app.services.scheduler import QueueScheduler


class RecordingNotifier(QueueNotifier):
    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)

    def types(self):
        return [event.type for event in self.events]


@pytest.fixture
async def engine(tmp_path):
    bind = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}", poolclass=NullPool)
    await init_db(bind)
    yield bind
    await bind.dispose()


@pytest.fixture
def db_factory(engine):
    return session_factory(engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduler(db_factory, notifier):
    return QueueScheduler(db_factory, notifier=notifier, default_poll_duration=60, default_break_between_polls=10)


@pytest.fixture
def make_session(db_factory):
    async def _make(code="ABC123"):
        async with db_factory() as db:
            session = Session(session_code=code.upper(), title=f"Lecture {code}")
            db.add(session)
            await db.commit()
            return session

    return _make


@pytest.fixture
async def classroom(make_session):
    return await make_session("ABC123")


@pytest.fixture
def make_mcqs(db_factory):
    async def _make(session, count=3, time_limit=None):
        ids = []
        async with db_factory() as db:
            for n in range(1, count + 1):
                mcq = GeneratedMCQ(
                    session_id=session.id,
                    question=f"Question {n}?",
                    options=[f"{n}a", f"{n}b", f"{n}c", f"{n}d"],
                    correct_answer=n % 4,
                    justification=f"Because {n}",
                    time_limit=time_limit,
                )
                db.add(mcq)
                await db.flush()
                ids.append(mcq.id)
            await db.commit()
        return ids

    return _make


@pytest.fixture
def fetch_polls(db_factory):
    async def _fetch(session):
        async with db_factory() as db:
            result = await db.exec(select(Poll).where(Poll.session_id == session.id).order_by(Poll.id))
            return list(result.all())

    return _fetch


@pytest.fixture
def active_ids(fetch_polls):
    async def _active(session):
        return [p.id for p in await fetch_polls(session) if p.queue_status == QueueStatus.ACTIVE]

    return _active


@pytest.fixture
def fetch_history(db_factory):
    async def _fetch(session):
        async with db_factory() as db:
            result = await db.exec(
                select(QueueHistoryEntry)
                .where(QueueHistoryEntry.session_id == session.id)
                .order_by(QueueHistoryEntry.id)
            )
            return list(result.all())

    return _fetch


@pytest.fixture
def fetch_settings(db_factory):
    async def _fetch(session):
        async with db_factory() as db:
            result = await db.exec(select(QueueSettings).where(QueueSettings.session_id == session.id))
            return result.first()

    return _fetch


@pytest.fixture
def set_status(db_factory):
    """Force a poll into a status the scheduler never assigns on its own, such as paused."""

    async def _set(poll_id, status):
        async with db_factory() as db:
            poll = await db.get(Poll, poll_id)
            poll.queue_status = status
            poll.is_active = status == QueueStatus.ACTIVE
            db.add(poll)
            await db.commit()

    return _set
