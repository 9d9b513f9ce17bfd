# src/pocket_pilot/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs everything on one event loop:
- scheduler loop (resumed if it was running before the restart),
- notification watcher (optional autostart),
- console REPL (optional; otherwise runs until SIGINT/SIGTERM).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import (
    create_initial_state,
    load_transcript,
    save_transcript,
    start_background_services,
    stop_background_services,
)
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _amain() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    state.transcript = load_transcript(state)

    start_background_services(state)

    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Not supported on every platform (e.g. Windows event loops).
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_main.set)

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state))
            stopper = asyncio.create_task(stop_main.wait())
            await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            stopper.cancel()
            if not console.done():
                console.cancel()
        else:
            logger.info("Console disabled. Running background services only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        await stop_background_services(state)
        save_transcript(state)
        logger.info("Bye.")


def main() -> None:
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_amain())


if __name__ == "__main__":
    main()
