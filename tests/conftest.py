# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from pocket_pilot.cli.bootstrap import create_initial_state
from pocket_pilot.device.lock import DeviceLock
from pocket_pilot.notifications.filter import NotificationFilter
from pocket_pilot.tasks.task_store import TaskStore

from .fakes import FakeAgent, FakeShell, FakeTriageAgent, FakeWake, MemoryDocumentStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment/.env.
    """
    return SimpleNamespace(
        app_name="pocket-test",
        data_dir=tmp_path / "data",
        device_pin="1234",
        shell_as_root=False,
        shell_timeout_seconds=1.0,
        lock_timeout_seconds=5.0,
        scheduler_interval_seconds=60.0,
        notification_poll_seconds=5.0,
        notification_max_age_seconds=60.0,
        notifications_autostart=False,
        indicator_enabled=False,
        log_capacity=100,
        result_max_chars=500,
        openai_api_key=None,
        openai_base_url="",
        llm_models=[],
    )


@pytest.fixture()
def documents() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture()
def lock() -> DeviceLock:
    return DeviceLock(default_timeout_seconds=5.0)


@pytest.fixture()
def task_store(documents: MemoryDocumentStore) -> TaskStore:
    return TaskStore(documents, log_capacity=100)


@pytest.fixture()
def notification_filter(documents: MemoryDocumentStore) -> NotificationFilter:
    return NotificationFilter(documents)


@pytest.fixture()
def shell() -> FakeShell:
    return FakeShell()


@pytest.fixture()
def wake() -> FakeWake:
    return FakeWake()


@pytest.fixture()
def agent() -> FakeAgent:
    return FakeAgent()


@pytest.fixture()
def triage_agent() -> FakeTriageAgent:
    return FakeTriageAgent()


@pytest.fixture()
def state(settings: SimpleNamespace, documents: MemoryDocumentStore, agent: FakeAgent, triage_agent: FakeTriageAgent):
    """Fully wired AppState around an awake, unlocked fake phone."""
    awake_shell = FakeShell(
        responses={
            "mScreenState": "mScreenState=ON",
            "isKeyguardShowing": "isKeyguardShowing=false",
        }
    )
    return create_initial_state(
        settings=settings,
        documents=documents,
        shell=awake_shell,
        agent=agent,
        triage_agent=triage_agent,
    )
