# src/pocket_pilot/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..device.lock import OwnerKind
from ..llm.agent import friendly_llm_error_message

logger = logging.getLogger(__name__)

CONSOLE_OWNER_ID = "console-user"


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def run_agent_as_user(state: AppState, prompt: str) -> str:
    """
    Run the interactive agent while holding the device as the interactive user.

    The user always preempts automated holders, so acquire() only fails if
    this console already holds the lock (reentrant refresh) - never blocks.
    """
    state.lock.acquire(CONSOLE_OWNER_ID, OwnerKind.INTERACTIVE_USER)
    try:
        result = await state.agent.run(prompt, history=list(state.transcript))
    finally:
        state.lock.release(CONSOLE_OWNER_ID)

    state.transcript.append({"role": "user", "content": prompt})
    state.transcript.append({"role": "assistant", "content": result.text})
    return f"{result.text}\n[{result.turn_count} turns]"


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    app_name = str(getattr(state.settings, "app_name", "pocket-pilot"))
    _print_ts("[CONSOLE] Type a request for the phone. Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> You: ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit", "/q"):
            logger.info("Console exit command received.")
            break

        try:
            cmd_response = await command_registry.handle(state, user_input, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)
            continue

        try:
            reply = await run_agent_as_user(state, user_input)
        except RuntimeError as e:
            msg = friendly_llm_error_message(e)
            logger.info("LLM runtime error: %s", msg)
            _print_ts(f"[LLM] {msg}")
            continue
        except Exception:
            logger.exception("Console agent run crashed.")
            _print_ts("Internal error while running the agent.")
            continue

        _print_ts(f"<<< {app_name}: {reply}\n")

    logger.info("Console connector finished.")
