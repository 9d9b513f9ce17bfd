# src/pocket_pilot/device/lock.py

from __future__ import annotations

"""
Exclusive ownership of the device.

Three actors compete for one phone: the interactive user, the notification
triage agent and the scheduler. The lock never queues waiters: acquire()
answers immediately and callers skip their work when it says no.

Preemption: the interactive user always wins against an automated holder.
Automated holders never preempt each other or the user.

Expiry: every grant/refresh re-arms a single timer. When it fires, the lock
is force-released. The expired holder's in-flight shell/agent work is NOT
cancelled; it may keep touching the device after the lock is gone.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0


class OwnerKind(StrEnum):
    INTERACTIVE_USER = "interactive-user"
    NOTIFICATION_AGENT = "notification-agent"
    SCHEDULED_TASK = "scheduled-task"

    @property
    def is_automated(self) -> bool:
        return self is not OwnerKind.INTERACTIVE_USER


@dataclass(slots=True, frozen=True)
class LockState:
    held_by: str | None
    owner_kind: OwnerKind | None
    acquired_at: float | None

    @property
    def locked(self) -> bool:
        return self.held_by is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "locked": self.locked,
            "held_by": self.held_by,
            "owner_kind": self.owner_kind.value if self.owner_kind else None,
            "acquired_at": self.acquired_at,
        }


StateChangeCallback = Callable[[LockState], None]


class DeviceLock:
    """
    Single mutable ownership slot with preemption and auto-expiry.

    Must be used from the event loop thread: the expiry timer is a loop.call_later handle.
    """

    def __init__(
            self,
            *,
            default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._default_timeout = float(default_timeout_seconds)
        self._clock = clock
        self._owner: str | None = None
        self._owner_kind: OwnerKind | None = None
        self._acquired_at: float | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[StateChangeCallback] = []

    # ---- queries ----

    def get_state(self) -> LockState:
        return LockState(held_by=self._owner, owner_kind=self._owner_kind, acquired_at=self._acquired_at)

    def is_locked(self) -> bool:
        return self._owner is not None

    def is_locked_by(self, owner_id: str) -> bool:
        return self._owner is not None and self._owner == owner_id

    def is_held_by_user(self) -> bool:
        return self._owner is not None and self._owner_kind is OwnerKind.INTERACTIVE_USER

    # ---- transitions ----

    def acquire(self, owner_id: str, owner_kind: OwnerKind | str, timeout_seconds: float | None = None) -> bool:
        if not owner_id:
            raise ValueError("owner_id is required")
        owner_kind = OwnerKind(owner_kind)
        timeout_s = self._default_timeout if timeout_seconds is None else float(timeout_seconds)

        # Reentrant: same owner refreshes the hold.
        if self._owner == owner_id:
            self._arm_timer(timeout_s)
            logger.debug("Lock refreshed by %s", owner_id)
            return True

        if self._owner is not None:
            if owner_kind is OwnerKind.INTERACTIVE_USER and self._owner_kind is not None and self._owner_kind.is_automated:
                logger.info("Lock preempted: %s (%s) -> %s", self._owner, self._owner_kind, owner_id)
                self._grant(owner_id, owner_kind, timeout_s)
                return True
            logger.debug("Lock busy: %s (%s) refused %s (%s)", self._owner, self._owner_kind, owner_id, owner_kind)
            return False

        self._grant(owner_id, owner_kind, timeout_s)
        logger.debug("Lock acquired by %s (%s)", owner_id, owner_kind)
        return True

    def release(self, owner_id: str) -> bool:
        if self._owner is None or self._owner != owner_id:
            return False
        self._clear()
        logger.debug("Lock released by %s", owner_id)
        return True

    def force_release(self) -> None:
        previous = self._owner
        self._clear()
        if previous is not None:
            logger.info("Lock force-released (was %s)", previous)

    # ---- listeners ----

    def on_state_change(self, callback: StateChangeCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # ---- internals ----

    def _grant(self, owner_id: str, owner_kind: OwnerKind, timeout_s: float) -> None:
        self._owner = owner_id
        self._owner_kind = owner_kind
        self._acquired_at = self._clock()
        self._arm_timer(timeout_s)
        self._notify()

    def _clear(self) -> None:
        self._cancel_timer()
        self._owner = None
        self._owner_kind = None
        self._acquired_at = None
        self._notify()

    def _notify(self) -> None:
        state = self.get_state()
        for cb in list(self._listeners):
            try:
                cb(state)
            except Exception:
                logger.debug("Lock state listener failed.", exc_info=True)

    def _arm_timer(self, timeout_s: float) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(max(0.0, timeout_s), self._on_timeout)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self) -> None:
        self._timer = None
        logger.warning("Lock auto-timeout: releasing lock held by %s (%s)", self._owner, self._owner_kind)
        self.force_release()
