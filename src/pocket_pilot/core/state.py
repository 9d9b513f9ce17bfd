# src/pocket_pilot/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..device.indicator import PresenceIndicator
from ..device.lock import DeviceLock
from ..device.wake import DeviceWakeController
from ..notifications.filter import NotificationFilter
from ..notifications.queue import NotificationQueue
from ..notifications.watcher import NotificationPoller
from ..tasks.task_scheduler import Scheduler
from ..tasks.task_store import TaskStore
from .ports import AgentRunner, ChatMessage, DocumentStore, ShellExecutor, TriageAgent


@dataclass
class AppState:
    """
    One instance of every service, built once by cli/bootstrap.py and passed
    explicitly to whatever needs it (connectors, commands).
    """

    settings: Any

    documents: DocumentStore
    shell: ShellExecutor
    agent: AgentRunner
    triage_agent: TriageAgent

    lock: DeviceLock
    wake: DeviceWakeController
    task_store: TaskStore
    scheduler: Scheduler
    notification_filter: NotificationFilter
    poller: NotificationPoller
    notification_queue: NotificationQueue
    indicator: PresenceIndicator | None = None

    # Interactive session transcript (console).
    transcript: list[ChatMessage] = field(default_factory=list)
