# src/pocket_pilot/device/wake.py

from __future__ import annotations

import asyncio
import logging
import shlex
from collections.abc import Awaitable, Callable

from ..core.ports import ShellExecutor

logger = logging.getLogger(__name__)

KEYCODE_SLEEP = 223


class DeviceWakeController:
    """
    Screen power + keyguard handling.

    wake_and_unlock():
    - KEYCODE_WAKEUP
    - swipe up to reveal the PIN pad
    - type the PIN + ENTER
    - poll until the keyguard is gone (it can take 1-2 seconds)
    """

    def __init__(
            self,
            shell: ShellExecutor,
            *,
            pin: str = "",
            settle_seconds: float = 0.5,
            unlock_attempts: int = 5,
            unlock_poll_seconds: float = 0.8,
            swipe: tuple[int, int, int, int, int] = (360, 1200, 360, 400, 300),
            sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._shell = shell
        self._pin = (pin or "").strip()
        self._settle = max(0.0, float(settle_seconds))
        self._attempts = max(1, int(unlock_attempts))
        self._poll = max(0.0, float(unlock_poll_seconds))
        self._swipe = swipe
        self._sleep = sleep

    async def is_screen_on(self) -> bool:
        """True only if the display is on AND the lock screen is not showing."""
        display, keyguard = await asyncio.gather(
            self._shell.execute("dumpsys display | grep mScreenState", timeout=5.0),
            self._shell.execute("dumpsys window | grep isKeyguardShowing", timeout=5.0),
        )
        screen_on = "ON" in display.stdout
        locked = "isKeyguardShowing=true" in keyguard.stdout
        return screen_on and not locked

    async def wake_and_unlock(self) -> bool:
        if not self._pin:
            logger.error("No device PIN configured (POCKET_DEVICE_PIN); cannot unlock.")
            return False

        await self._shell.execute("input keyevent KEYCODE_WAKEUP")
        await self._sleep(self._settle)

        x1, y1, x2, y2, duration_ms = self._swipe
        await self._shell.execute(f"input swipe {x1} {y1} {x2} {y2} {duration_ms}")
        await self._sleep(self._settle)

        await self._shell.execute(f"input text {shlex.quote(self._pin)}")
        await self._shell.execute("input keyevent KEYCODE_ENTER")

        for _ in range(self._attempts):
            await self._sleep(self._poll)
            if await self.is_screen_on():
                logger.info("Device woken and unlocked.")
                return True

        logger.warning("Failed to wake/unlock device after %d checks.", self._attempts)
        return False

    async def sleep_device(self) -> None:
        await self._shell.execute(f"input keyevent {KEYCODE_SLEEP}")
        logger.info("Device put to sleep.")
