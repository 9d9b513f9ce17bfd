# src/pocket_pilot/device/indicator.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..core.ports import ShellExecutor
from .lock import DeviceLock, LockState, OwnerKind

logger = logging.getLogger(__name__)

NOTIFICATION_ID = "pocket_pilot_agent_active"
NOTIFICATION_TAG = "pocket_pilot_lock"
TITLE = "Pocket Pilot agent active"
CONTENT = "The notification agent is controlling the device"


class PresenceIndicator:
    """
    Cosmetic on-device indicator: an ongoing notification while the
    notification agent holds the device lock.

    Lock listeners are synchronous, so shell work is scheduled as loop tasks.
    """

    def __init__(self, lock: DeviceLock, shell: ShellExecutor) -> None:
        self._lock = lock
        self._shell = shell
        self._unsubscribe: Callable[[], None] | None = None
        self._shown = False
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def shown(self) -> bool:
        return self._shown

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._lock.on_state_change(self._on_lock_change)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._shown:
            await self._hide()

    def _on_lock_change(self, state: LockState) -> None:
        want_shown = state.locked and state.owner_kind is OwnerKind.NOTIFICATION_AGENT
        if want_shown == self._shown:
            return
        # Flip the flag now so a burst of transitions schedules one show/hide each.
        self._shown = want_shown
        task = asyncio.get_running_loop().create_task(self._show() if want_shown else self._hide())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _has_termux(self) -> bool:
        res = await self._shell.execute("which termux-notification", as_root=False, timeout=3.0)
        return res.ok

    async def _show(self) -> None:
        try:
            if await self._has_termux():
                await self._shell.execute(
                    f'termux-notification --id "{NOTIFICATION_ID}" --title "{TITLE}" '
                    f'--content "{CONTENT}" --ongoing',
                    as_root=False,
                    timeout=5.0,
                )
                return
            await self._shell.execute(
                f'cmd notification post -t "{TITLE}" "{NOTIFICATION_TAG}" "{CONTENT}"',
                timeout=5.0,
            )
        except Exception:
            logger.warning("Failed to show presence indicator.", exc_info=True)

    async def _hide(self) -> None:
        self._shown = False
        try:
            if await self._has_termux():
                await self._shell.execute(f'termux-notification-remove "{NOTIFICATION_ID}"', as_root=False, timeout=5.0)
                return
            await self._shell.execute(f'cmd notification cancel "{NOTIFICATION_TAG}"', timeout=5.0)
        except Exception:
            logger.warning("Failed to hide presence indicator.", exc_info=True)
