import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.time import as_utc, utc_now
from app.db import SessionFactory
from app.models import Actor, Poll, QueueAction, QueueHistoryEntry, QueueSettings, QueueStatus, Session
from app.models.poll import STATUS_DISPLAY
from app.schemas import (
    Ack,
    ActivationResult,
    AddToQueueResult,
    CompletionResult,
    EventType,
    HistoryRead,
    PollDetail,
    PollPublic,
    PollRead,
    QueueEvent,
    QueueOptions,
    QueueStatusRead,
    ReorderResult,
    SkipResult,
)
from app.services import questions, registry, responses, store
from app.services.errors import InvalidReorderInput, NoActivePoll, PollNotFound, TransactionConflict
from app.services.notifier import QueueNotifier


class QueueScheduler:
    """Owns every transition of a session's poll queue.

    Mutations for one session run under that session's lock and inside a
    single transaction that also row-locks the session, so two polls of the
    same session are never active at once. Events are published only after
    the transaction commits.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        notifier: Optional[QueueNotifier] = None,
        default_poll_duration: int = 60,
        default_break_between_polls: int = 10,
    ):
        self.logger = logging.getLogger("scheduler")
        self.session_factory = session_factory
        self.notifier = notifier
        self.default_poll_duration = default_poll_duration
        self.default_break_between_polls = default_break_between_polls
        self._locks: Dict[int, asyncio.Lock] = {}

    # ------------------------------------------------------------------ #
    # Enqueue
    # ------------------------------------------------------------------ #

    async def add_to_queue(
        self,
        session_code: str,
        mcq_ids: Sequence[int],
        options: Optional[QueueOptions] = None,
        actor: str = Actor.TEACHER,
    ) -> AddToQueueResult:
        options = options or QueueOptions()
        poll_duration = options.poll_duration or self.default_poll_duration
        break_between_polls = (
            options.break_between_polls
            if options.break_between_polls is not None
            else self.default_break_between_polls
        )
        session_id = await self._session_id(session_code)

        async with self._exclusive(session_id) as db:
            session = await registry.lock_session(db, session_id)
            await self._upsert_settings(
                db,
                session.id,
                auto_advance=options.auto_advance,
                poll_duration=poll_duration,
                break_between_polls=break_between_polls,
            )

            activate = options.activate_first
            if activate and await store.find_active(db, session.id) is not None:
                self.logger.info("Session %s already has an active poll; new polls stay queued", session.session_code)
                activate = False

            inserted: List[Poll] = []
            skipped: List[int] = []
            for mcq_id in mcq_ids:
                mcq = await questions.take_pending(db, session.id, mcq_id)
                if mcq is None:
                    self.logger.warning("MCQ %s not found or already sent session=%s", mcq_id, session.session_code)
                    skipped.append(mcq_id)
                    continue

                now = utc_now()
                status = QueueStatus.ACTIVE if activate and not inserted else QueueStatus.QUEUED
                poll = Poll(
                    session_id=session.id,
                    question=mcq.question,
                    options=list(mcq.options),
                    correct_answer=mcq.correct_answer,
                    justification=mcq.justification,
                    time_limit=mcq.time_limit or poll_duration,
                    is_active=status == QueueStatus.ACTIVE,
                    queue_status=status,
                    activated_at=now if status == QueueStatus.ACTIVE else None,
                    created_at=now,
                    updated_at=now,
                )
                await store.append(db, poll)
                self._record(db, session.id, QueueAction.ENQUEUED, poll_id=poll.id, new_status=status, actor=actor)
                questions.mark_sent(db, mcq, now)
                inserted.append(poll)

            queue_status = await self._status(db, session)

        self.logger.info(
            "Enqueued %s polls session=%s skipped=%s activated=%s",
            len(inserted),
            queue_status.session_code,
            skipped,
            inserted[0].id if inserted and inserted[0].is_active else None,
        )
        return AddToQueueResult(
            message=f"{len(inserted)} MCQs added to queue successfully",
            polls=[PollRead.model_validate(p) for p in inserted],
            skipped_mcq_ids=skipped,
            queue_status=queue_status,
        )

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    async def activate_next(self, session_code: str, actor: str = Actor.TEACHER) -> ActivationResult:
        session_id = await self._session_id(session_code)
        events: List[QueueEvent] = []
        async with self._exclusive(session_id) as db:
            session = await registry.lock_session(db, session_id)
            result = await self._activate_next(db, session, actor, events)
        await self._publish(events)
        return result

    async def complete_and_advance(
        self,
        poll_id: int,
        action: str = QueueAction.MANUAL_COMPLETE,
        actor: str = Actor.TEACHER,
        expired_as_of: Optional[datetime] = None,
    ) -> CompletionResult:
        """Complete ``poll_id`` and, if it was the active poll, activate the next one.

        With ``expired_as_of`` the completion only happens if the poll is still
        active, its session still auto-advances and its time is up at that
        instant. Completing an already completed poll changes nothing.
        """
        session_id = await self._session_id_for_poll(poll_id)
        events: List[QueueEvent] = []
        async with self._exclusive(session_id) as db:
            session = await registry.lock_session(db, session_id)
            poll = await db.get(Poll, poll_id)
            if poll is None:
                raise PollNotFound(poll_id)

            if poll.queue_status == QueueStatus.COMPLETED:
                return CompletionResult(
                    completed_poll_id=poll.id,
                    changed=False,
                    message="Poll already completed",
                )
            if expired_as_of is not None and not await self._is_expired(db, poll, expired_as_of):
                return CompletionResult(
                    completed_poll_id=poll.id,
                    changed=False,
                    message="Poll is no longer due for auto-advance",
                )

            nxt = await self._complete(db, session, poll, action, actor, events)

        await self._publish(events)
        if nxt is not None and nxt.activated:
            return CompletionResult(
                completed_poll_id=poll_id,
                next_poll_id=nxt.poll_id,
                next_position=nxt.position,
                message="Poll completed and next poll activated",
            )
        return CompletionResult(completed_poll_id=poll_id, message="Poll completed, no more polls in queue")

    async def skip_current(self, session_code: str, actor: str = Actor.TEACHER) -> SkipResult:
        session_id = await self._session_id(session_code)
        events: List[QueueEvent] = []
        async with self._exclusive(session_id) as db:
            session = await registry.lock_session(db, session_id)
            active = await store.find_active(db, session.id)
            if active is None:
                message = "No active poll to skip"
                return SkipResult(
                    next_poll=ActivationResult(activated=False, reason="no_active_poll", message=message),
                    message=message,
                )
            nxt = await self._complete(db, session, active, QueueAction.SKIPPED, actor, events)
            skipped_id = active.id

        await self._publish(events)
        self.logger.info("Skipped poll %s session=%s next=%s", skipped_id, session.session_code, nxt.poll_id)
        return SkipResult(skipped_poll_id=skipped_id, next_poll=nxt, message="Poll skipped successfully")

    async def pause_queue(self, session_code: str, actor: str = Actor.TEACHER) -> Ack:
        await self._set_auto_advance(session_code, False, QueueAction.PAUSED, actor)
        return Ack(message="Queue paused successfully")

    async def resume_queue(self, session_code: str, actor: str = Actor.TEACHER) -> Ack:
        await self._set_auto_advance(session_code, True, QueueAction.RESUMED, actor)
        return Ack(message="Queue resumed successfully")

    async def reorder_queue(
        self, session_code: str, new_order: Sequence[int], actor: str = Actor.TEACHER
    ) -> ReorderResult:
        """Rewrite positions of queued/paused polls.

        Listed eligible polls take positions 1..k in the given order, unlisted
        eligible polls follow in their previous order. Ids that are unknown,
        foreign to the session, active or completed are ignored.
        """
        if not new_order:
            raise InvalidReorderInput("new_order must list at least one poll id")
        session_id = await self._session_id(session_code)

        async with self._exclusive(session_id) as db:
            session = await registry.lock_session(db, session_id)
            eligible = await store.list_eligible(db, session.id)
            by_id = {p.id: p for p in eligible}

            listed: List[int] = []
            ignored: List[int] = []
            for poll_id in new_order:
                if poll_id in listed or poll_id in ignored:
                    continue
                if poll_id in by_id:
                    listed.append(poll_id)
                else:
                    ignored.append(poll_id)
            applied = listed + [p.id for p in eligible if p.id not in listed]

            now = utc_now()
            for position, poll_id in enumerate(applied, start=1):
                poll = by_id[poll_id]
                if poll.queue_position != position:
                    poll.queue_position = position
                    poll.updated_at = now
                    db.add(poll)
            self._record(
                db,
                session.id,
                QueueAction.REORDERED,
                actor=actor,
                details={
                    "new_order": list(new_order),
                    "applied_order": applied,
                    "ignored": ignored,
                    "timestamp": now.isoformat(),
                },
            )

        if ignored:
            self.logger.info("Reorder session=%s ignored ineligible polls %s", session.session_code, ignored)
        return ReorderResult(applied_order=applied, ignored_poll_ids=ignored, message="Queue reordered successfully")

    # ------------------------------------------------------------------ #
    # Projections
    # ------------------------------------------------------------------ #

    async def get_queue_status(self, session_code: str) -> QueueStatusRead:
        async with self.session_factory() as db:
            session = await registry.resolve(db, session_code)
            return await self._status(db, session)

    async def get_active_poll(self, session_code: str) -> PollPublic:
        """The live poll as students see it, for clients joining mid-poll."""
        async with self.session_factory() as db:
            session = await registry.resolve(db, session_code)
            active = await store.find_active(db, session.id)
        if active is None:
            raise NoActivePoll(session.session_code)
        return PollPublic.model_validate(active)

    async def get_detailed_queue(self, session_code: str) -> List[PollDetail]:
        async with self.session_factory() as db:
            session = await registry.resolve(db, session_code)
            polls = await store.list_by_session(db, session.id)
            counts = await responses.count_responses(db, [p.id for p in polls])
        return [
            PollDetail(
                **PollRead.model_validate(p).model_dump(),
                status_display=STATUS_DISPLAY.get(p.queue_status, p.queue_status),
                response_count=counts.get(p.id, 0),
            )
            for p in polls
        ]

    async def list_history(self, session_code: str, limit: int = 100) -> List[HistoryRead]:
        async with self.session_factory() as db:
            session = await registry.resolve(db, session_code)
            result = await db.exec(
                select(QueueHistoryEntry)
                .where(QueueHistoryEntry.session_id == session.id)
                .order_by(col(QueueHistoryEntry.id).desc())
                .limit(limit)
            )
            return [HistoryRead.model_validate(entry) for entry in result.all()]

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _lock_for(self, session_id: int) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    @asynccontextmanager
    async def _exclusive(self, session_id: int) -> AsyncIterator[AsyncSession]:
        async with self._lock_for(session_id):
            async with self.session_factory() as db:
                try:
                    async with db.begin():
                        yield db
                except (IntegrityError, OperationalError) as exc:
                    self.logger.warning("Queue transaction rolled back session_id=%s: %s", session_id, exc)
                    raise TransactionConflict(
                        f"Concurrent queue update for session {session_id}, please retry"
                    ) from exc

    async def _session_id(self, session_code: str) -> int:
        async with self.session_factory() as db:
            session = await registry.resolve(db, session_code)
            return session.id

    async def _session_id_for_poll(self, poll_id: int) -> int:
        async with self.session_factory() as db:
            poll = await db.get(Poll, poll_id)
            if poll is None:
                raise PollNotFound(poll_id)
            return poll.session_id

    async def _activate_next(
        self, db: AsyncSession, session: Session, actor: str, events: List[QueueEvent]
    ) -> ActivationResult:
        active = await store.find_active(db, session.id)
        if active is not None:
            return ActivationResult(
                activated=False,
                poll_id=active.id,
                position=active.queue_position,
                reason="already_active",
                message=f"Poll {active.queue_position} is already active",
            )

        nxt = await store.find_next_eligible(db, session.id)
        if nxt is None:
            return ActivationResult(activated=False, reason="no_eligible_poll", message="No more polls in queue")

        previous = nxt.queue_status
        await store.update_status(db, nxt, QueueStatus.ACTIVE, utc_now())
        self._record(
            db, session.id, QueueAction.ACTIVATED, poll_id=nxt.id, previous_status=previous,
            new_status=QueueStatus.ACTIVE, actor=actor,
        )
        events.append(
            QueueEvent(
                type=EventType.POLL_ACTIVATED,
                session_code=session.session_code,
                poll=PollPublic.model_validate(nxt),
            )
        )
        self.logger.info("Activated poll %s position=%s session=%s", nxt.id, nxt.queue_position, session.session_code)
        return ActivationResult(
            activated=True,
            poll_id=nxt.id,
            position=nxt.queue_position,
            message=f"Poll {nxt.queue_position} activated successfully",
        )

    async def _complete(
        self,
        db: AsyncSession,
        session: Session,
        poll: Poll,
        action: str,
        actor: str,
        events: List[QueueEvent],
    ) -> Optional[ActivationResult]:
        was_active = poll.queue_status == QueueStatus.ACTIVE
        previous = poll.queue_status
        await store.update_status(db, poll, QueueStatus.COMPLETED, utc_now())
        self._record(
            db, session.id, action, poll_id=poll.id, previous_status=previous,
            new_status=QueueStatus.COMPLETED, actor=actor,
        )
        events.append(
            QueueEvent(
                type=EventType.POLL_COMPLETED,
                session_code=session.session_code,
                completed_poll_id=poll.id,
                action=action,
            )
        )
        self.logger.info("Completed poll %s action=%s session=%s", poll.id, action, session.session_code)
        if not was_active:
            return None

        nxt = await self._activate_next(db, session, actor, events)
        if not nxt.activated:
            events.append(
                QueueEvent(type=EventType.QUEUE_EMPTY, session_code=session.session_code, completed_poll_id=poll.id)
            )
        return nxt

    async def _is_expired(self, db: AsyncSession, poll: Poll, now: datetime) -> bool:
        if poll.queue_status != QueueStatus.ACTIVE or poll.activated_at is None:
            return False
        settings_row = await self._get_settings(db, poll.session_id)
        if settings_row is None or not settings_row.auto_advance:
            return False
        return seconds_since(poll.activated_at, now) > settings_row.poll_duration

    async def _set_auto_advance(self, session_code: str, value: bool, action: str, actor: str) -> None:
        session_id = await self._session_id(session_code)
        async with self._exclusive(session_id) as db:
            session = await registry.lock_session(db, session_id)
            now = utc_now()
            settings_row = await self._get_settings(db, session.id)
            if settings_row is None:
                settings_row = QueueSettings(
                    session_id=session.id,
                    poll_duration=self.default_poll_duration,
                    break_between_polls=self.default_break_between_polls,
                )
            settings_row.auto_advance = value
            settings_row.updated_at = now
            db.add(settings_row)
            self._record(db, session.id, action, actor=actor, details={"timestamp": now.isoformat()})
        self.logger.info("Auto-advance %s session=%s", "resumed" if value else "paused", session.session_code)

    async def _get_settings(self, db: AsyncSession, session_id: int) -> Optional[QueueSettings]:
        result = await db.exec(select(QueueSettings).where(QueueSettings.session_id == session_id))
        return result.first()

    async def _upsert_settings(self, db: AsyncSession, session_id: int, **values: Any) -> QueueSettings:
        settings_row = await self._get_settings(db, session_id)
        if settings_row is None:
            settings_row = QueueSettings(session_id=session_id)
        for field, value in values.items():
            setattr(settings_row, field, value)
        settings_row.updated_at = utc_now()
        db.add(settings_row)
        await db.flush()
        return settings_row

    async def _status(self, db: AsyncSession, session: Session) -> QueueStatusRead:
        counts = await store.count_by_status(db, session.id)
        active = await store.find_active(db, session.id)
        settings_row = await self._get_settings(db, session.id)
        total = sum(counts.values())
        completed = counts.get(QueueStatus.COMPLETED, 0)
        return QueueStatusRead(
            session_code=session.session_code,
            total_polls=total,
            queued_polls=counts.get(QueueStatus.QUEUED, 0),
            paused_polls=counts.get(QueueStatus.PAUSED, 0),
            active_polls=counts.get(QueueStatus.ACTIVE, 0),
            completed_polls=completed,
            current_position=active.queue_position if active else None,
            total_positions=total - completed,
            auto_advance=settings_row.auto_advance if settings_row else None,
            poll_duration=settings_row.poll_duration if settings_row else None,
            break_between_polls=settings_row.break_between_polls if settings_row else None,
        )

    def _record(
        self,
        db: AsyncSession,
        session_id: int,
        action: str,
        poll_id: Optional[int] = None,
        previous_status: Optional[str] = None,
        new_status: Optional[str] = None,
        actor: str = Actor.TEACHER,
        details: Optional[dict] = None,
    ) -> None:
        db.add(
            QueueHistoryEntry(
                session_id=session_id,
                poll_id=poll_id,
                action=action,
                previous_status=previous_status,
                new_status=new_status,
                triggered_by=actor,
                details=details or {},
            )
        )

    async def _publish(self, events: List[QueueEvent]) -> None:
        if not self.notifier:
            return
        for event in events:
            try:
                await self.notifier.publish(event)
            except Exception:
                self.logger.exception("Failed to publish %s session=%s", event.type, event.session_code)


def seconds_since(moment: datetime, now: datetime) -> float:
    return (as_utc(now) - as_utc(moment)).total_seconds()

