import asyncio

import pytest

from app.models import Actor, QueueAction, QueueStatus
from app.schemas import EventType, QueueOptions
from app.services.errors import PollNotFound, SessionNotFound


@pytest.fixture
def queue_of(scheduler, classroom, make_mcqs):
    async def _queue(count=3, activate_first=True, **options):
        ids = await make_mcqs(classroom, count)
        result = await scheduler.add_to_queue(
            classroom.session_code, ids, QueueOptions(activate_first=activate_first, **options)
        )
        return [p.id for p in result.polls]

    return _queue


async def test_completion_drains_in_position_order(scheduler, queue_of):
    first, second, third = await queue_of(3)

    step1 = await scheduler.complete_and_advance(first)
    assert (step1.completed_poll_id, step1.next_poll_id) == (first, second)

    step2 = await scheduler.complete_and_advance(second)
    assert (step2.completed_poll_id, step2.next_poll_id) == (second, third)

    step3 = await scheduler.complete_and_advance(third)
    assert step3.completed_poll_id == third
    assert step3.next_poll_id is None
    assert step3.message == "Poll completed, no more polls in queue"


async def test_completed_poll_gets_timestamps_and_flags(scheduler, queue_of, fetch_polls, classroom):
    first, second = await queue_of(2)

    await scheduler.complete_and_advance(first)

    by_id = {p.id: p for p in await fetch_polls(classroom)}
    assert by_id[first].queue_status == QueueStatus.COMPLETED
    assert by_id[first].is_active is False
    assert by_id[first].completed_at is not None
    assert by_id[second].is_active is True
    assert by_id[second].activated_at is not None


async def test_activate_next_is_noop_while_a_poll_is_active(scheduler, queue_of, active_ids, classroom):
    first, _ = await queue_of(2)

    result = await scheduler.activate_next("ABC123")

    assert result.activated is False
    assert result.reason == "already_active"
    assert result.poll_id == first
    assert await active_ids(classroom) == [first]


async def test_activate_next_picks_lowest_position(scheduler, queue_of):
    ids = await queue_of(3, activate_first=False)

    result = await scheduler.activate_next("abc123")

    assert result.activated is True
    assert result.poll_id == ids[0]
    assert result.position == 1


async def test_activate_next_on_empty_queue(scheduler, classroom):
    result = await scheduler.activate_next("ABC123")

    assert result.activated is False
    assert result.reason == "no_eligible_poll"
    assert result.message == "No more polls in queue"


async def test_activate_next_unknown_session(scheduler):
    with pytest.raises(SessionNotFound):
        await scheduler.activate_next("MISSING")


async def test_concurrent_activation_keeps_single_active(scheduler, queue_of, active_ids, classroom):
    await queue_of(5, activate_first=False)

    results = await asyncio.gather(*(scheduler.activate_next("ABC123") for _ in range(6)))

    assert sum(r.activated for r in results) == 1
    assert len(await active_ids(classroom)) == 1


async def test_concurrent_completion_of_same_poll_advances_once(scheduler, queue_of, fetch_polls, classroom):
    first, second, third = await queue_of(3)

    results = await asyncio.gather(
        scheduler.complete_and_advance(first),
        scheduler.complete_and_advance(first, action=QueueAction.EXPIRED, actor=Actor.SYSTEM),
    )

    assert sorted(r.changed for r in results) == [False, True]
    statuses = {p.id: p.queue_status for p in await fetch_polls(classroom)}
    assert statuses == {first: "completed", second: "active", third: "queued"}


async def test_completing_a_completed_poll_changes_nothing(scheduler, queue_of, fetch_history, classroom):
    first, _ = await queue_of(2)
    await scheduler.complete_and_advance(first)
    before = len(await fetch_history(classroom))

    again = await scheduler.complete_and_advance(first)

    assert again.changed is False
    assert again.next_poll_id is None
    assert len(await fetch_history(classroom)) == before


async def test_completing_a_queued_poll_does_not_activate(scheduler, queue_of, active_ids, classroom):
    first, second, third = await queue_of(3)

    result = await scheduler.complete_and_advance(third)

    assert result.next_poll_id is None
    assert await active_ids(classroom) == [first]


async def test_complete_unknown_poll(scheduler):
    with pytest.raises(PollNotFound) as exc:
        await scheduler.complete_and_advance(424242)
    assert exc.value.status_code == 404


async def test_skip_completes_active_and_activates_next(scheduler, queue_of, fetch_history, classroom):
    first, second, _ = await queue_of(3)

    result = await scheduler.skip_current("ABC123")

    assert result.skipped_poll_id == first
    assert result.next_poll.activated is True
    assert result.next_poll.poll_id == second
    skips = [h for h in await fetch_history(classroom) if h.action == QueueAction.SKIPPED]
    assert len(skips) == 1
    assert (skips[0].poll_id, skips[0].previous_status, skips[0].new_status) == (first, "active", "completed")


async def test_skip_without_active_poll_reports_failure(scheduler, queue_of):
    await queue_of(2, activate_first=False)

    result = await scheduler.skip_current("ABC123")

    assert result.skipped_poll_id is None
    assert result.next_poll.activated is False
    assert result.message == "No active poll to skip"


async def test_manual_completion_is_audited_separately_from_skip(scheduler, queue_of, fetch_history, classroom):
    first, second = await queue_of(2)

    await scheduler.complete_and_advance(first)
    await scheduler.skip_current("ABC123")

    actions = [(h.poll_id, h.action) for h in await fetch_history(classroom) if h.new_status == "completed"]
    assert actions == [(first, QueueAction.MANUAL_COMPLETE), (second, QueueAction.SKIPPED)]


async def test_transitions_publish_events(scheduler, notifier, queue_of):
    first, second = await queue_of(2)

    await scheduler.complete_and_advance(first)
    assert notifier.types() == [EventType.POLL_COMPLETED, EventType.POLL_ACTIVATED]
    activated = notifier.events[1]
    assert activated.session_code == "ABC123"
    assert activated.poll.id == second
    assert not hasattr(activated.poll, "correct_answer")

    await scheduler.complete_and_advance(second)
    assert notifier.types()[-2:] == [EventType.POLL_COMPLETED, EventType.QUEUE_EMPTY]
    assert notifier.events[-1].poll is None


async def test_failing_notifier_does_not_undo_transition(scheduler, queue_of, active_ids, classroom):
    first, second = await queue_of(2)

    class Broken:
        async def publish(self, event):
            raise ConnectionError("transport down")

    scheduler.notifier = Broken()
    result = await scheduler.complete_and_advance(first)

    assert result.next_poll_id == second
    assert await active_ids(classroom) == [second]


async def test_pause_and_resume_only_touch_settings(
    scheduler, queue_of, fetch_settings, fetch_polls, fetch_history, classroom
):
    await queue_of(2)
    before = [(p.id, p.queue_status) for p in await fetch_polls(classroom)]

    paused = await scheduler.pause_queue("ABC123")
    assert paused.message == "Queue paused successfully"
    assert (await fetch_settings(classroom)).auto_advance is False
    assert [(p.id, p.queue_status) for p in await fetch_polls(classroom)] == before

    await scheduler.resume_queue("ABC123")
    assert (await fetch_settings(classroom)).auto_advance is True

    session_level = [h for h in await fetch_history(classroom) if h.poll_id is None]
    assert [h.action for h in session_level] == [QueueAction.PAUSED, QueueAction.RESUMED]
    assert "timestamp" in session_level[0].details


async def test_pause_before_any_enqueue_creates_settings(scheduler, classroom, fetch_settings):
    await scheduler.pause_queue("ABC123")

    settings_row = await fetch_settings(classroom)
    assert settings_row.auto_advance is False
    assert settings_row.poll_duration == 60


async def test_queue_status_and_detailed_queue(scheduler, queue_of):
    first, second, third = await queue_of(3, poll_duration=30)
    await scheduler.complete_and_advance(first)

    status = await scheduler.get_queue_status("abc123")
    assert status.total_polls == 3
    assert status.completed_polls == 1
    assert status.active_polls == 1
    assert status.queued_polls == 1
    assert status.current_position == 2
    assert status.total_positions == 2
    assert status.poll_duration == 30

    detail = await scheduler.get_detailed_queue("ABC123")
    assert [d.id for d in detail] == [first, second, third]
    assert [d.status_display for d in detail] == ["Completed", "Currently Active", "In Queue"]
    assert all(d.response_count == 0 for d in detail)


async def test_history_listing_is_newest_first(scheduler, queue_of):
    first, _ = await queue_of(2)
    await scheduler.complete_and_advance(first)

    history = await scheduler.list_history("ABC123", limit=2)

    assert [h.action for h in history] == [QueueAction.ACTIVATED, QueueAction.MANUAL_COMPLETE]


async def test_paused_entry_is_activated_by_position(scheduler, queue_of, set_status, fetch_history, classroom):
    first, second, third = await queue_of(3, activate_first=False)
    await set_status(first, QueueStatus.PAUSED)

    result = await scheduler.activate_next("ABC123")

    assert (result.activated, result.poll_id, result.position) == (True, first, 1)
    activation = [h for h in await fetch_history(classroom) if h.action == QueueAction.ACTIVATED][0]
    assert (activation.previous_status, activation.new_status) == ("paused", "active")


async def test_paused_entry_follows_queued_entries_ahead_of_it(scheduler, queue_of, set_status):
    first, second, third = await queue_of(3)
    await set_status(third, QueueStatus.PAUSED)

    assert (await scheduler.complete_and_advance(first)).next_poll_id == second
    assert (await scheduler.complete_and_advance(second)).next_poll_id == third
