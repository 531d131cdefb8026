import pytest

from app.models import QueueAction, QueueStatus
from app.schemas import QueueOptions
from app.services.errors import InvalidReorderInput


@pytest.fixture
def enqueue(scheduler, classroom, make_mcqs):
    async def _enqueue(count, activate_first=False):
        ids = await make_mcqs(classroom, count)
        result = await scheduler.add_to_queue("ABC123", ids, QueueOptions(activate_first=activate_first))
        return [p.id for p in result.polls]

    return _enqueue


async def positions(fetch_polls, session):
    return {p.id: (p.queue_status, p.queue_position) for p in await fetch_polls(session)}


async def test_reorder_rewrites_positions_in_given_order(scheduler, enqueue, fetch_polls, classroom):
    a, b, c = await enqueue(3)

    result = await scheduler.reorder_queue("ABC123", [c, a, b])

    assert result.applied_order == [c, a, b]
    assert result.ignored_poll_ids == []
    state = await positions(fetch_polls, classroom)
    assert state[c][1] == 1 and state[a][1] == 2 and state[b][1] == 3

    activation = await scheduler.activate_next("ABC123")
    assert activation.poll_id == c


async def test_reorder_leaves_active_and_completed_untouched(scheduler, enqueue, fetch_polls, classroom):
    done, active, q1, q2 = await enqueue(4, activate_first=True)
    await scheduler.complete_and_advance(done)
    before = await positions(fetch_polls, classroom)

    result = await scheduler.reorder_queue("ABC123", [q2, active, done, q1])

    after = await positions(fetch_polls, classroom)
    assert after[done] == before[done]
    assert after[active] == before[active]
    assert sorted(result.ignored_poll_ids) == sorted([active, done])
    assert after[q2] == (QueueStatus.QUEUED, 1)
    assert after[q1] == (QueueStatus.QUEUED, 2)


async def test_positions_stay_dense_after_partial_order(scheduler, enqueue, fetch_polls, classroom):
    a, b, c, d = await enqueue(4)

    result = await scheduler.reorder_queue("ABC123", [d, b, 999, d])

    assert result.applied_order == [d, b, a, c]
    assert result.ignored_poll_ids == [999]
    eligible = [
        p.queue_position
        for p in await fetch_polls(classroom)
        if p.queue_status in (QueueStatus.QUEUED, QueueStatus.PAUSED)
    ]
    assert sorted(eligible) == [1, 2, 3, 4]


async def test_reorder_ignores_polls_of_other_sessions(scheduler, enqueue, make_session, make_mcqs, fetch_polls):
    a, b = await enqueue(2)
    other = await make_session("OTHER1")
    foreign_ids = await make_mcqs(other, 1)
    foreign = (await scheduler.add_to_queue("OTHER1", foreign_ids, QueueOptions(activate_first=False))).polls[0]

    result = await scheduler.reorder_queue("ABC123", [foreign.id, b, a])

    assert result.ignored_poll_ids == [foreign.id]
    assert (await fetch_polls(other))[0].queue_position == 1


async def test_reorder_logs_single_history_entry(scheduler, enqueue, fetch_history, classroom):
    a, b = await enqueue(2)

    await scheduler.reorder_queue("ABC123", [b, a, 77])

    reorders = [h for h in await fetch_history(classroom) if h.action == QueueAction.REORDERED]
    assert len(reorders) == 1
    assert reorders[0].poll_id is None
    assert reorders[0].details["new_order"] == [b, a, 77]
    assert reorders[0].details["applied_order"] == [b, a]
    assert reorders[0].details["ignored"] == [77]


async def test_empty_reorder_is_rejected(scheduler, classroom):
    with pytest.raises(InvalidReorderInput) as exc:
        await scheduler.reorder_queue("ABC123", [])
    assert exc.value.status_code == 400


async def test_reorder_moves_paused_entries_and_keeps_them_paused(
    scheduler, enqueue, set_status, fetch_polls, classroom
):
    done, active, q1, q2, q3 = await enqueue(5, activate_first=True)
    await scheduler.complete_and_advance(done)
    await set_status(q3, QueueStatus.PAUSED)
    before = await positions(fetch_polls, classroom)

    result = await scheduler.reorder_queue("ABC123", [q3, q1])

    assert result.applied_order == [q3, q1, q2]
    assert result.ignored_poll_ids == []
    after = await positions(fetch_polls, classroom)
    assert after[q3] == (QueueStatus.PAUSED, 1)
    assert after[q1] == (QueueStatus.QUEUED, 2)
    assert after[q2] == (QueueStatus.QUEUED, 3)
    assert after[done] == before[done]
    assert after[active] == before[active]

    nxt = await scheduler.complete_and_advance(active)
    assert nxt.next_poll_id == q3
