# src/pocket_pilot/tasks/task_scheduler.py

from __future__ import annotations

"""
Cron-driven task scheduler.

A small polling loop that, once per interval:
- finds enabled tasks whose cron expression matches "now",
- runs them one after another through the device protocol
  (user-busy check -> wake/unlock -> lock -> agent -> record -> release/re-sleep).

Only one sweep runs at a time; a tick that arrives during a sweep is dropped.
Nothing is retried: a task that fails is logged and waits for its next match.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..core.ports import AgentRunner
from ..device.lock import DeviceLock, OwnerKind
from ..device.wake import DeviceWakeController
from .cron import matches_cron
from .task_models import RunOutcome, ScheduledTask, ScheduleLogEntry
from .task_store import TaskStore

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT_SECONDS = 30.0


class Scheduler:
    def __init__(
            self,
            store: TaskStore,
            lock: DeviceLock,
            wake: DeviceWakeController,
            agent: AgentRunner,
            *,
            interval_seconds: float = 60.0,
            result_max_chars: int = 500,
            lock_timeout_seconds: float | None = None,
            drain_timeout_seconds: float = DRAIN_TIMEOUT_SECONDS,
            clock: Callable[[], float] = time.time,
            now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._lock = lock
        self._wake = wake
        self._agent = agent
        self._interval = max(0.01, float(interval_seconds))
        self._max_chars = max(1, int(result_max_chars))
        self._lock_timeout = lock_timeout_seconds
        self._drain_timeout = max(0.0, float(drain_timeout_seconds))
        self._clock = clock
        self._now = now

        self._loop_task: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[Any]] = set()
        self._executing = False

    # ---- lifecycle ----

    def start(self) -> bool:
        """Start the tick loop (needs a running event loop). False if already running."""
        if self._loop_task is not None:
            return False
        self._store.save_running_flag(True)
        self._loop_task = asyncio.get_running_loop().create_task(self._run_loop(), name="scheduler-loop")
        logger.info("Scheduler started (%.0fs interval)", self._interval)
        return True

    async def stop(self) -> bool:
        """
        Stop ticking. A sweep already in progress runs to completion and is
        logged as usual; use wait_idle() to wait for it.
        """
        if not await self._cancel_loop():
            return False
        self._store.save_running_flag(False)
        logger.info("Scheduler stopped")
        return True

    async def shutdown(self) -> None:
        """Process exit: stop ticking, keep the persisted running flag, give running tasks a bounded grace period."""
        if await self._cancel_loop():
            logger.info("Scheduler loop cancelled for shutdown")
        if not await self.wait_idle(self._drain_timeout):
            logger.warning("Scheduled task still running after %.0fs; leaving it to the event loop", self._drain_timeout)

    async def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for in-flight sweeps. False if one was still running at the timeout."""
        ticks = list(self._ticks)
        if not ticks:
            return True
        _, pending = await asyncio.wait(ticks, timeout=timeout)
        return not pending

    async def _cancel_loop(self) -> bool:
        # Only the interval loop is cancelled; spawned sweeps are never interrupted.
        if self._loop_task is None:
            return False
        task, self._loop_task = self._loop_task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    def resume_if_was_running(self) -> bool:
        """Restart the loop after a process restart if it was running before."""
        if self._store.load_running_flag():
            logger.info("Scheduler was running before restart; resuming.")
            return self.start()
        return False

    def is_running(self) -> bool:
        return self._loop_task is not None

    def is_executing(self) -> bool:
        return self._executing

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            # Spawn instead of awaiting so a slow sweep does not delay the clock;
            # the tick guard drops overlapping sweeps.
            t = asyncio.get_running_loop().create_task(self._safe_tick())
            self._ticks.add(t)
            t.add_done_callback(self._ticks.discard)

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception:
            logger.exception("Scheduler tick failed")

    # ---- task management ----

    def add_task(self, *, name: str, prompt: str, cron_expression: str) -> ScheduledTask:
        return self._store.add_task(name=name, prompt=prompt, cron_expression=cron_expression)

    def remove_task(self, task_id: str) -> bool:
        return self._store.remove_task(task_id)

    def enable_task(self, task_id: str) -> bool:
        return self._store.set_enabled(task_id, True)

    def disable_task(self, task_id: str) -> bool:
        return self._store.set_enabled(task_id, False)

    def get_tasks(self) -> list[ScheduledTask]:
        return self._store.list_tasks()

    def get_task(self, task_id: str) -> ScheduledTask | None:
        return self._store.get_task(task_id)

    def get_log(self) -> list[ScheduleLogEntry]:
        return self._store.get_log()

    def status(self) -> dict[str, Any]:
        tasks = self._store.list_tasks()
        return {
            "running": self.is_running(),
            "executing": self._executing,
            "tasks": len(tasks),
            "enabled": sum(1 for t in tasks if t.enabled),
            "log_entries": len(self._store.get_log()),
        }

    # ---- execution ----

    def due_tasks(self, when: datetime) -> list[ScheduledTask]:
        return [t for t in self._store.list_tasks() if t.enabled and matches_cron(t.cron_expression, when)]

    async def tick(self, now: datetime | None = None) -> list[ScheduleLogEntry]:
        if self._executing:
            logger.debug("Tick dropped: previous sweep still running")
            return []

        when = now or self._now()
        due = self.due_tasks(when)
        if not due:
            return []

        self._executing = True
        try:
            entries: list[ScheduleLogEntry] = []
            for task in due:
                entries.append(await self.execute_task(task))
            return entries
        finally:
            self._executing = False

    async def run_now(self, task_id: str) -> ScheduleLogEntry | None:
        task = self._store.get_task(task_id)
        if task is None:
            return None
        return await self.execute_task(task)

    def _entry(self, task: ScheduledTask, outcome: RunOutcome, result: str, turns: int = 0) -> ScheduleLogEntry:
        return ScheduleLogEntry(
            timestamp=self._clock(),
            task_id=task.id,
            task_name=task.name,
            outcome=outcome,
            result=result[: self._max_chars],
            turns=turns,
        )

    async def execute_task(self, task: ScheduledTask) -> ScheduleLogEntry:
        logger.info("Executing task %s (%s)", task.id, task.name)

        owner_id = f"{OwnerKind.SCHEDULED_TASK.value}-{task.id}-{uuid.uuid4().hex[:8]}"
        woke_device = False
        entry: ScheduleLogEntry

        try:
            # Scheduled work never contends with a human.
            if self._lock.is_held_by_user():
                entry = self._entry(task, RunOutcome.SKIPPED, "Skipped: device busy (locked by user)")
                return self._finish(entry)

            if not await self._wake.is_screen_on():
                if not await self._wake.wake_and_unlock():
                    entry = self._entry(task, RunOutcome.FAILED, "Failed to wake/unlock device")
                    return self._finish(entry)
                woke_device = True

            if not self._lock.acquire(owner_id, OwnerKind.SCHEDULED_TASK, self._lock_timeout):
                entry = self._entry(task, RunOutcome.SKIPPED, "Skipped: could not acquire device lock")
                return self._finish(entry)

            result = await self._agent.run(task.prompt)
            text = (result.text or "")[: self._max_chars]
            self._store.record_run(task.id, result=text, ran_at=self._clock())
            entry = self._entry(task, RunOutcome.OK, text, turns=int(result.turn_count))
        except Exception as e:
            logger.exception("Task %s failed", task.id)
            entry = self._entry(task, RunOutcome.ERROR, f"Error: {e}")
        finally:
            self._lock.release(owner_id)
            # Only put the device back to sleep if this task woke it.
            if woke_device:
                try:
                    await self._wake.sleep_device()
                except Exception:
                    logger.warning("Failed to put device back to sleep after task %s", task.id, exc_info=True)

        return self._finish(entry)

    def _finish(self, entry: ScheduleLogEntry) -> ScheduleLogEntry:
        self._store.append_log(entry)
        logger.info("Finished task %s (%s): %s %s", entry.task_id, entry.task_name, entry.outcome.value, entry.result[:80])
        return entry
