# src/pocket_pilot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- wires concrete implementations into AppState (shell/lock/scheduler/notifications/agent),
- persists the console session transcript as JSON.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, cast

from ..config import get_settings
from ..core.ports import AgentRunner, ChatMessage, DocumentStore, ShellExecutor, TriageAgent
from ..core.state import AppState
from ..device.indicator import PresenceIndicator
from ..device.lock import DeviceLock
from ..device.shell import AndroidShell
from ..device.wake import DeviceWakeController
from ..llm.agent import OpenAIAgent
from ..llm.offline import OfflineAgent
from ..notifications.filter import NotificationFilter
from ..notifications.queue import NotificationQueue
from ..notifications.watcher import NotificationPoller
from ..storage.json_store import JsonDocumentStore
from ..tasks.task_scheduler import Scheduler
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

SESSION_DOC = "session"


def _build_agent(settings) -> OpenAIAgent | OfflineAgent:
    try:
        return OpenAIAgent(settings)
    except RuntimeError as e:
        # Fallback for demos / local runs without external services.
        logger.info("Using offline agent: %s", e)
        return OfflineAgent()


def create_initial_state(
        *,
        settings=None,
        documents: DocumentStore | None = None,
        shell: ShellExecutor | None = None,
        agent: AgentRunner | None = None,
        triage_agent: TriageAgent | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Collaborators are injectable to keep tests free of a real device / LLM.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    documents = documents or JsonDocumentStore(settings.data_dir)
    shell = shell or AndroidShell(default_timeout=settings.shell_timeout_seconds, as_root=settings.shell_as_root)
    if agent is None or triage_agent is None:
        default_agent = _build_agent(settings)
        agent = agent or default_agent
        triage_agent = triage_agent or default_agent

    lock = DeviceLock(default_timeout_seconds=settings.lock_timeout_seconds)
    wake = DeviceWakeController(shell, pin=settings.device_pin)
    task_store = TaskStore(documents, log_capacity=settings.log_capacity)
    scheduler = Scheduler(
        task_store,
        lock,
        wake,
        agent,
        interval_seconds=settings.scheduler_interval_seconds,
        result_max_chars=settings.result_max_chars,
    )

    notification_filter = NotificationFilter(documents)
    poller = NotificationPoller(shell, interval_seconds=settings.notification_poll_seconds)
    notification_queue = NotificationQueue(
        poller,
        notification_filter,
        lock,
        triage_agent,
        max_age_seconds=settings.notification_max_age_seconds,
        log_capacity=settings.log_capacity,
    )

    indicator = PresenceIndicator(lock, shell) if settings.indicator_enabled else None

    return AppState(
        settings=settings,
        documents=documents,
        shell=shell,
        agent=agent,
        triage_agent=triage_agent,
        lock=lock,
        wake=wake,
        task_store=task_store,
        scheduler=scheduler,
        notification_filter=notification_filter,
        poller=poller,
        notification_queue=notification_queue,
        indicator=indicator,
    )


def start_background_services(state: AppState) -> None:
    """Start the actors that must run alongside the console (needs a running event loop)."""
    if state.indicator is not None:
        state.indicator.start()
    state.scheduler.resume_if_was_running()
    if getattr(state.settings, "notifications_autostart", False):
        state.notification_queue.start()


async def stop_background_services(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for name, stop in (
        ("notification queue", state.notification_queue.stop),
        ("indicator", state.indicator.stop if state.indicator is not None else None),
    ):
        if stop is None:
            continue
        try:
            await stop()
        except Exception:
            logger.exception("Failed to stop %s.", name)

    # The scheduler's running flag must survive a restart, so only cancel the loop
    # here instead of calling stop() (which persists running=False).
    try:
        await state.scheduler.shutdown()
    except Exception:
        logger.exception("Failed to stop scheduler.")


def load_transcript(state: AppState) -> list[ChatMessage]:
    data: Any = state.documents.read(SESSION_DOC, [])
    if not isinstance(data, list):
        return []
    clean: list[ChatMessage] = []
    for m in data:
        if not isinstance(m, dict):
            continue
        role_any = m.get("role", "user")
        role_s = role_any if isinstance(role_any, str) else "user"
        if role_s not in ("user", "assistant"):
            role_s = "user"
        role = cast(Literal["user", "assistant"], role_s)
        clean.append({"role": role, "content": str(m.get("content", ""))})
    logger.info("Loaded session transcript: %d messages", len(clean))
    return clean


def save_transcript(state: AppState) -> None:
    try:
        state.documents.write(SESSION_DOC, state.transcript)
        logger.info("Saved session transcript: %d messages", len(state.transcript))
    except Exception:
        logger.exception("Failed to save session transcript.")
