# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from pocket_pilot.device.lock import DeviceLock, OwnerKind
from pocket_pilot.tasks.task_models import RunOutcome
from pocket_pilot.tasks.task_scheduler import Scheduler
from pocket_pilot.tasks.task_store import TaskStore

from .fakes import FakeAgent, FakeWake, MemoryDocumentStore

NINE_AM_MONDAY = datetime(2024, 1, 1, 9, 0)


def make_scheduler(
    task_store: TaskStore,
    lock: DeviceLock,
    wake: FakeWake,
    agent: FakeAgent,
    **kwargs,
) -> Scheduler:
    kwargs.setdefault("now", lambda: NINE_AM_MONDAY)
    return Scheduler(task_store, lock, wake, agent, **kwargs)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_tick_runs_due_tasks_in_order_and_records_results(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent, clock=lambda: 500.0)
    first = sched.add_task(name="first", prompt="p1", cron_expression="0 9 * * 1")
    sched.add_task(name="never", prompt="p2", cron_expression="0 10 * * *")
    third = sched.add_task(name="third", prompt="p3", cron_expression="*/15 * * * *")
    off = sched.add_task(name="off", prompt="p4", cron_expression="* * * * *")
    sched.disable_task(off.id)

    entries = await sched.tick(NINE_AM_MONDAY)

    assert agent.prompts == ["p1", "p3"]
    assert [e.task_id for e in entries] == [first.id, third.id]
    assert all(e.outcome is RunOutcome.OK and e.success and e.turns == 3 for e in entries)
    assert sched.get_task(first.id).last_run_at == 500.0  # type: ignore[union-attr]
    assert sched.get_task(first.id).last_result == "done"  # type: ignore[union-attr]
    assert [e.task_id for e in sched.get_log()] == [first.id, third.id]
    assert not lock.is_locked()
    assert not sched.is_executing()


@pytest.mark.asyncio
async def test_agent_runs_while_holding_scheduled_lock(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")
    holders: list[OwnerKind | None] = []
    agent.on_run = lambda _prompt: holders.append(lock.get_state().owner_kind)

    await sched.run_now(task.id)

    assert holders == [OwnerKind.SCHEDULED_TASK]
    assert not lock.is_locked()


@pytest.mark.asyncio
async def test_skipped_when_user_holds_device(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")
    lock.acquire("human", OwnerKind.INTERACTIVE_USER)
    wake.screen_on = False

    entry = await sched.run_now(task.id)

    assert entry is not None
    assert entry.outcome is RunOutcome.SKIPPED
    assert entry.result == "Skipped: device busy (locked by user)"
    assert agent.prompts == []
    assert wake.wake_calls == 0
    assert lock.is_locked_by("human")
    assert sched.get_task(task.id).last_run_at is None  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_skipped_when_lock_contended(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")
    lock.acquire("triage", OwnerKind.NOTIFICATION_AGENT)

    entry = await sched.run_now(task.id)

    assert entry is not None
    assert entry.outcome is RunOutcome.SKIPPED
    assert entry.result == "Skipped: could not acquire device lock"
    assert agent.prompts == []
    assert lock.is_locked_by("triage")


@pytest.mark.asyncio
async def test_agent_error_releases_lock_and_logs_error(task_store, lock, wake) -> None:
    agent = FakeAgent(error=RuntimeError("model exploded"))
    sched = make_scheduler(task_store, lock, wake, agent)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")

    entries = await sched.tick(NINE_AM_MONDAY)

    assert len(entries) == 1
    assert entries[0].outcome is RunOutcome.ERROR
    assert entries[0].result == "Error: model exploded"
    assert not entries[0].success
    assert not lock.is_locked()
    assert sched.get_log()[-1].task_id == task.id
    assert sched.get_task(task.id).last_run_at is None  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_wakes_and_resleeps_only_when_it_woke_the_device(task_store, lock, agent) -> None:
    asleep = FakeWake(screen_on=False)
    sched = make_scheduler(task_store, lock, asleep, agent)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")

    entry = await sched.run_now(task.id)

    assert entry is not None and entry.outcome is RunOutcome.OK
    assert asleep.wake_calls == 1
    assert asleep.sleep_calls == 1

    awake = FakeWake(screen_on=True)
    sched = make_scheduler(task_store, lock, awake, agent)
    await sched.run_now(task.id)

    assert awake.wake_calls == 0
    assert awake.sleep_calls == 0


@pytest.mark.asyncio
async def test_resleeps_even_when_agent_fails(task_store, lock) -> None:
    wake = FakeWake(screen_on=False)
    agent = FakeAgent(error=RuntimeError("boom"))
    sched = make_scheduler(task_store, lock, wake, agent)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")

    entry = await sched.run_now(task.id)

    assert entry is not None and entry.outcome is RunOutcome.ERROR
    assert wake.sleep_calls == 1


@pytest.mark.asyncio
async def test_wake_failure_is_logged_as_failed(task_store, lock, agent) -> None:
    wake = FakeWake(screen_on=False, wake_ok=False)
    sched = make_scheduler(task_store, lock, wake, agent)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")

    entry = await sched.run_now(task.id)

    assert entry is not None
    assert entry.outcome is RunOutcome.FAILED
    assert entry.result == "Failed to wake/unlock device"
    assert agent.prompts == []
    assert wake.sleep_calls == 0
    assert not lock.is_locked()


@pytest.mark.asyncio
async def test_results_are_truncated(task_store, lock, wake) -> None:
    agent = FakeAgent(text="x" * 50)
    sched = make_scheduler(task_store, lock, wake, agent, result_max_chars=10)
    task = sched.add_task(name="t", prompt="p", cron_expression="* * * * *")

    entry = await sched.run_now(task.id)

    assert entry is not None
    assert entry.result == "x" * 10
    assert sched.get_task(task.id).last_result == "x" * 10  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_overlapping_tick_is_dropped(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent)
    sched.add_task(name="slow", prompt="p", cron_expression="* * * * *")
    agent.gate = asyncio.Event()
    agent.entered = asyncio.Event()

    first = asyncio.create_task(sched.tick(NINE_AM_MONDAY))
    await asyncio.wait_for(agent.entered.wait(), timeout=1.0)

    assert sched.is_executing()
    assert await sched.tick(NINE_AM_MONDAY) == []

    agent.gate.set()
    entries = await first

    assert len(entries) == 1
    assert agent.prompts == ["p"]
    assert not sched.is_executing()


@pytest.mark.asyncio
async def test_run_now_unknown_task(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent)
    assert await sched.run_now("sched-missing") is None


@pytest.mark.asyncio
async def test_start_stop_persist_running_flag(lock, wake, agent) -> None:
    documents = MemoryDocumentStore()
    sched = make_scheduler(TaskStore(documents), lock, wake, agent, interval_seconds=60)

    assert sched.start() is True
    assert sched.start() is False
    assert sched.is_running()
    assert TaskStore(documents).load_running_flag() is True

    assert await sched.stop() is True
    assert await sched.stop() is False
    assert not sched.is_running()
    assert TaskStore(documents).load_running_flag() is False


@pytest.mark.asyncio
async def test_shutdown_keeps_flag_and_resume_restarts(lock, wake, agent) -> None:
    documents = MemoryDocumentStore()
    sched = make_scheduler(TaskStore(documents), lock, wake, agent, interval_seconds=60)
    sched.start()
    await sched.shutdown()
    assert not sched.is_running()

    restarted = make_scheduler(TaskStore(documents), lock, wake, agent, interval_seconds=60)
    assert restarted.resume_if_was_running() is True
    assert restarted.is_running()
    await restarted.shutdown()

    idle = make_scheduler(TaskStore(MemoryDocumentStore()), lock, wake, agent)
    assert idle.resume_if_was_running() is False
    assert not idle.is_running()


@pytest.mark.asyncio
async def test_loop_ticks_on_interval(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent, interval_seconds=0.01)
    sched.add_task(name="t", prompt="p", cron_expression="* * * * *")

    sched.start()
    for _ in range(100):
        if agent.prompts:
            break
        await asyncio.sleep(0.01)
    await sched.stop()
    assert await sched.wait_idle(1.0)

    assert agent.prompts
    assert all(e.outcome is RunOutcome.OK for e in sched.get_log())


@pytest.mark.asyncio
async def test_status_snapshot(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent)
    a = sched.add_task(name="a", prompt="p", cron_expression="* * * * *")
    sched.add_task(name="b", prompt="p", cron_expression="* * * * *")
    sched.disable_task(a.id)

    st = sched.status()

    assert st == {"running": False, "executing": False, "tasks": 2, "enabled": 1, "log_entries": 0}


@pytest.mark.asyncio
async def test_stop_lets_running_task_finish_and_log(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent, interval_seconds=0.01, clock=lambda: 700.0)
    task = sched.add_task(name="slow", prompt="p", cron_expression="* * * * *")
    agent.gate = asyncio.Event()
    agent.entered = asyncio.Event()

    sched.start()
    await asyncio.wait_for(agent.entered.wait(), timeout=1.0)

    assert await sched.stop() is True
    assert not sched.is_running()
    assert sched.is_executing()

    agent.gate.set()
    assert await sched.wait_idle(1.0) is True

    assert agent.prompts == ["p"]
    assert [(e.task_id, e.outcome) for e in sched.get_log()] == [(task.id, RunOutcome.OK)]
    assert sched.get_task(task.id).last_run_at == 700.0  # type: ignore[union-attr]
    assert not lock.is_locked()


@pytest.mark.asyncio
async def test_shutdown_gives_up_waiting_after_drain_timeout(task_store, lock, wake, agent) -> None:
    sched = make_scheduler(task_store, lock, wake, agent, interval_seconds=0.01, drain_timeout_seconds=0.05)
    sched.add_task(name="slow", prompt="p", cron_expression="* * * * *")
    agent.gate = asyncio.Event()
    agent.entered = asyncio.Event()

    sched.start()
    await asyncio.wait_for(agent.entered.wait(), timeout=1.0)
    await sched.shutdown()

    assert sched.is_executing()
    assert task_store.load_running_flag() is True

    agent.gate.set()
    assert await sched.wait_idle(1.0) is True
    assert sched.get_log()[-1].outcome is RunOutcome.OK
