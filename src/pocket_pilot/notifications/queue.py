# src/pocket_pilot/notifications/queue.py

from __future__ import annotations

"""
Notification triage queue.

poller "new" event -> whitelist filter -> FIFO -> single consumer:
- skip notifications older than max_age_seconds
- skip while the interactive user holds the device
- acquire the lock as notification-agent, triage, always release

At most one notification is triaged at any instant, in arrival order.
Skipped or failed items are logged and never retried.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from collections.abc import Callable
from typing import Any

from ..core.ports import TriageAgent
from ..device.lock import DeviceLock, OwnerKind
from .filter import NotificationFilter
from .models import NotificationEvent, TriageLogEntry
from .watcher import NotificationPoller

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_SECONDS = 60.0


class NotificationQueue:
    def __init__(
            self,
            poller: NotificationPoller,
            notification_filter: NotificationFilter,
            lock: DeviceLock,
            agent: TriageAgent,
            *,
            max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
            log_capacity: int = 100,
            lock_timeout_seconds: float | None = None,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._poller = poller
        self._filter = notification_filter
        self._lock = lock
        self._agent = agent
        self._max_age = float(max_age_seconds)
        self._lock_timeout = lock_timeout_seconds
        self._clock = clock

        self._queue: deque[NotificationEvent] = deque()
        self._log: deque[TriageLogEntry] = deque(maxlen=max(1, int(log_capacity)))
        self._draining = False
        self._consumer: asyncio.Task[None] | None = None
        self._running = False

        self._poller.on_new(self.on_notification)

    # ---- lifecycle ----

    def start(self) -> bool:
        if self._running:
            return False
        self._running = True
        self._poller.start()
        logger.info("Notification watcher started")
        return True

    async def stop(self) -> bool:
        if not self._running:
            return False
        self._running = False
        await self._poller.stop()
        self._queue.clear()
        logger.info("Notification watcher stopped")
        return True

    def is_running(self) -> bool:
        return self._running

    def is_draining(self) -> bool:
        return self._draining

    def get_queue_length(self) -> int:
        return len(self._queue)

    def get_triage_log(self) -> list[TriageLogEntry]:
        return list(self._log)

    def status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "draining": self._draining,
            "queued": len(self._queue),
            "whitelist": self._filter.get_whitelist(),
            "log_entries": len(self._log),
        }

    async def wait_idle(self) -> None:
        """Wait until the consumer has drained the FIFO."""
        while self._consumer is not None and not self._consumer.done():
            await asyncio.shield(self._consumer)

    # ---- intake ----

    def on_notification(self, notification: NotificationEvent) -> bool:
        """Poller callback. Returns True if the notification was queued."""
        if not self._filter.is_allowed(notification.package_name):
            return False

        self._queue.append(notification)
        logger.info("Queued notification: %s - %s", notification.package_name, notification.title)

        if not self._draining:
            # Set before scheduling so a burst of arrivals starts only one consumer.
            self._draining = True
            self._consumer = asyncio.get_running_loop().create_task(self._drain(), name="notification-triage")
        return True

    # ---- consumer ----

    async def _drain(self) -> None:
        try:
            while self._queue:
                notification = self._queue.popleft()
                try:
                    await self._process(notification)
                except Exception:
                    logger.exception("Unexpected error while processing notification %s", notification.key)
        finally:
            self._draining = False

    async def _process(self, n: NotificationEvent) -> None:
        if n.posted_at and self._clock() - n.posted_at > self._max_age:
            self._add_log(n, "skip", f"Notification too old (>{self._max_age:.0f}s)")
            return

        # Never interrupt a human.
        if self._lock.is_held_by_user():
            self._add_log(n, "skip", "Device locked by user")
            return

        owner_id = f"{OwnerKind.NOTIFICATION_AGENT.value}-{uuid.uuid4().hex[:12]}"
        if not self._lock.acquire(owner_id, OwnerKind.NOTIFICATION_AGENT, self._lock_timeout):
            self._add_log(n, "skip", "Could not acquire device lock")
            return

        try:
            logger.info("Triaging: %s - %s", n.package_name, n.title)
            decision = await self._agent.triage(n)
            self._add_log(n, decision.action, decision.reason)
            logger.info("Triage decision for %s: %s", n.key, decision.action)
        except Exception as e:
            logger.error("Triage error for %s: %s", n.key, e)
            self._add_log(n, "error", str(e) or e.__class__.__name__)
        finally:
            self._lock.release(owner_id)

    def _add_log(self, n: NotificationEvent, action: str, reason: str) -> None:
        self._log.append(
            TriageLogEntry(
                timestamp=self._clock(),
                package_name=n.package_name,
                title=n.title,
                action=action,
                reason=reason,
            )
        )
