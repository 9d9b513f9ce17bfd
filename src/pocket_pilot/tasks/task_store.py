# src/pocket_pilot/tasks/task_store.py

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import replace

from ..core.ports import DocumentStore
from .cron import is_valid_cron
from .task_models import ScheduledTask, ScheduleLogEntry

logger = logging.getLogger(__name__)

TASKS_DOC = "scheduled-tasks"
STATE_DOC = "scheduler-state"


class TaskStore:
    """
    Scheduled tasks + execution log.

    Tasks live in memory and are written through to the document store on every
    effective mutation (before the call returns). The execution log is an
    in-memory ring buffer and is never persisted.
    """

    def __init__(
            self,
            documents: DocumentStore,
            *,
            log_capacity: int = 100,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._docs = documents
        self._clock = clock
        self._log: deque[ScheduleLogEntry] = deque(maxlen=max(1, int(log_capacity)))
        self._tasks: list[ScheduledTask] = self._load_tasks()
        logger.info("TaskStore ready total=%s", len(self._tasks))

    # ---- persistence helpers ----

    def _load_tasks(self) -> list[ScheduledTask]:
        raw = self._docs.read(TASKS_DOC, [])
        if not isinstance(raw, list):
            logger.warning("Scheduled tasks document is not a list; starting empty.")
            return []
        out: list[ScheduledTask] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                out.append(ScheduledTask.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed scheduled task record: %r", item)
        return out

    def _commit(self, tasks: list[ScheduledTask]) -> None:
        """Write `tasks`, then adopt them. A failed write leaves memory untouched."""
        self._docs.write(TASKS_DOC, [t.to_dict() for t in tasks])
        self._tasks = tasks

    def load_running_flag(self) -> bool:
        data = self._docs.read(STATE_DOC, {})
        return isinstance(data, dict) and data.get("running") is True

    def save_running_flag(self, running: bool) -> None:
        self._docs.write(STATE_DOC, {"running": bool(running)})

    # ---- tasks ----

    def count_tasks(self) -> int:
        return len(self._tasks)

    def list_tasks(self) -> list[ScheduledTask]:
        return list(self._tasks)

    def get_task(self, task_id: str) -> ScheduledTask | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def add_task(self, *, name: str, prompt: str, cron_expression: str) -> ScheduledTask:
        if not name or not name.strip():
            raise ValueError("name is required")
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required")
        if not is_valid_cron(cron_expression):
            raise ValueError(f"invalid cron expression: {cron_expression!r}")

        task = ScheduledTask(
            id=f"sched-{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            prompt=prompt.strip(),
            cron_expression=" ".join(cron_expression.split()),
            enabled=True,
            created_at=self._clock(),
        )
        self._commit([*self._tasks, task])
        logger.info("Task added id=%s name=%s cron=%s", task.id, task.name, task.cron_expression)
        return task

    def remove_task(self, task_id: str) -> bool:
        for idx, t in enumerate(self._tasks):
            if t.id == task_id:
                self._commit(self._tasks[:idx] + self._tasks[idx + 1 :])
                logger.info("Task removed id=%s name=%s", t.id, t.name)
                return True
        return False

    def set_enabled(self, task_id: str, enabled: bool) -> bool:
        """Returns False only if the task does not exist. No write when nothing changes."""
        task = self.get_task(task_id)
        if task is None:
            return False
        if task.enabled == bool(enabled):
            return True
        self._swap(replace(task, enabled=bool(enabled)))
        logger.info("Task %s -> %s", task_id, "enabled" if enabled else "disabled")
        return True

    def record_run(self, task_id: str, *, result: str, ran_at: float | None = None) -> None:
        task = self.get_task(task_id)
        if task is None:
            # Removed while it was running.
            return
        ran = self._clock() if ran_at is None else float(ran_at)
        self._swap(replace(task, last_run_at=ran, last_result=result))

    def _swap(self, updated: ScheduledTask) -> None:
        self._commit([updated if t.id == updated.id else t for t in self._tasks])

    # ---- execution log ----

    def append_log(self, entry: ScheduleLogEntry) -> None:
        self._log.append(entry)

    def get_log(self) -> list[ScheduleLogEntry]:
        return list(self._log)
