# src/pocket_pilot/notifications/watcher.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..core.ports import ShellExecutor
from .models import NotificationEvent
from .parser import parse_notification_dump

logger = logging.getLogger(__name__)

DUMP_COMMAND = "dumpsys notification --noredact"
DUMP_TIMEOUT_SECONDS = 15.0

NewCallback = Callable[[NotificationEvent], None]
RemovedCallback = Callable[[str], None]


class NotificationFetchError(RuntimeError):
    pass


async def fetch_notifications(shell: ShellExecutor) -> list[NotificationEvent]:
    res = await shell.execute(DUMP_COMMAND, timeout=DUMP_TIMEOUT_SECONDS)
    if not res.ok:
        raise NotificationFetchError(f"dumpsys notification failed (exit={res.exit_code}): {res.stderr.strip()[:200]}")
    return parse_notification_dump(res.stdout)


class NotificationPoller:
    """
    Polls the device notification list and emits diff events.

    - "new": one NotificationEvent per key absent from the previous snapshot
    - "removed": one key per key absent from the current snapshot

    A failed poll emits nothing and keeps the previous snapshot as the baseline.
    """

    def __init__(self, shell: ShellExecutor, *, interval_seconds: float = 5.0) -> None:
        self._shell = shell
        self._interval = max(0.01, float(interval_seconds))
        self._previous_keys: set[str] = set()
        self._new_listeners: list[NewCallback] = []
        self._removed_listeners: list[RemovedCallback] = []
        self._task: asyncio.Task[None] | None = None

    def on_new(self, callback: NewCallback) -> None:
        self._new_listeners.append(callback)

    def on_removed(self, callback: RemovedCallback) -> None:
        self._removed_listeners.append(callback)

    def is_running(self) -> bool:
        return self._task is not None

    def start(self) -> bool:
        if self._task is not None:
            return False
        self._task = asyncio.get_running_loop().create_task(self._run(), name="notification-poller")
        return True

    async def stop(self) -> bool:
        if self._task is None:
            return False
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    def reset(self) -> None:
        self._previous_keys.clear()

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self._interval)

    async def poll_once(self) -> tuple[list[NotificationEvent], list[str]]:
        try:
            notifications = await fetch_notifications(self._shell)
        except Exception as e:
            logger.debug("Notification poll failed: %s", e)
            return [], []

        # A dump can list the same key twice; the first record wins.
        current: dict[str, NotificationEvent] = {}
        for n in notifications:
            current.setdefault(n.key, n)

        new_items = [n for key, n in current.items() if key not in self._previous_keys]
        removed = [k for k in self._previous_keys if k not in current]
        self._previous_keys = set(current)

        for n in new_items:
            self._emit(self._new_listeners, n)
        for key in removed:
            self._emit(self._removed_listeners, key)

        if new_items or removed:
            logger.debug("Notification poll: %d new, %d removed", len(new_items), len(removed))
        return new_items, removed

    @staticmethod
    def _emit(listeners: list, payload: object) -> None:
        for cb in list(listeners):
            try:
                cb(payload)
            except Exception:
                logger.exception("Notification listener failed")
