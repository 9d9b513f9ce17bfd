# src/pocket_pilot/device/shell.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import shlex

from ..core.ports import ShellResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
TIMEOUT_EXIT_CODE = 124


def wrap_as_root(command: str) -> str:
    """
    Run `command` through `su -c`.

    LD_LIBRARY_PATH is unset so system binaries (screencap, uiautomator, input, ...)
    load /system libs instead of the ones from the hosting terminal app.
    """
    inner = 'sh -c "unset LD_LIBRARY_PATH; ' + command.replace('"', '\\"') + '"'
    return f"su -c {shlex.quote(inner)}"


class AndroidShell:
    """
    Async shell executor for the device we are running on.

    Never raises on command failure: a non-zero exit code, a timeout
    (exit code 124) or a spawn error all come back as a ShellResult.
    """

    def __init__(self, *, default_timeout: float = DEFAULT_TIMEOUT_SECONDS, as_root: bool = True) -> None:
        self._default_timeout = float(default_timeout)
        self._as_root = bool(as_root)

    async def execute(
            self,
            command: str,
            *,
            timeout: float | None = None,
            as_root: bool | None = None,
    ) -> ShellResult:
        use_root = self._as_root if as_root is None else bool(as_root)
        timeout_s = self._default_timeout if timeout is None else float(timeout)
        wrapped = wrap_as_root(command) if use_root else command

        try:
            proc = await asyncio.create_subprocess_shell(
                wrapped,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("Failed to spawn shell command %r: %s", command, e)
            return ShellResult(stdout="", stderr=str(e), exit_code=127)

        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            with contextlib.suppress(Exception):
                await proc.wait()
            logger.warning("Shell command timed out after %.1fs: %s", timeout_s, command)
            return ShellResult(stdout="", stderr=f"timed out after {timeout_s:.1f}s", exit_code=TIMEOUT_EXIT_CODE)

        code = proc.returncode if proc.returncode is not None else 0
        if code != 0:
            logger.debug("Shell command exit=%s: %s", code, command)
        return ShellResult(
            stdout=out.decode("utf-8", errors="replace"),
            stderr=err.decode("utf-8", errors="replace"),
            exit_code=int(code),
        )
