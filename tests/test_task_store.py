# tests/test_task_store.py

from __future__ import annotations

from pathlib import Path

import pytest

from pocket_pilot.storage.json_store import JsonDocumentStore
from pocket_pilot.tasks.task_models import RunOutcome, ScheduleLogEntry
from pocket_pilot.tasks.task_store import STATE_DOC, TASKS_DOC, TaskStore

from .fakes import MemoryDocumentStore


def test_add_task_persists_before_returning(documents: MemoryDocumentStore) -> None:
    store = TaskStore(documents, clock=lambda: 1000.0)
    task = store.add_task(name=" Morning ", prompt="check battery", cron_expression="0  9 * * *")

    assert task.id.startswith("sched-")
    assert task.name == "Morning"
    assert task.cron_expression == "0 9 * * *"
    assert task.enabled is True
    assert task.created_at == 1000.0
    assert documents.docs[TASKS_DOC] == [task.to_dict()]


@pytest.mark.parametrize(
    ("name", "prompt", "cron"),
    [
        ("", "p", "* * * * *"),
        ("n", "  ", "* * * * *"),
        ("n", "p", "* * * *"),
        ("n", "p", "1-5 * * * *"),
    ],
)
def test_add_task_rejects_invalid_input(documents: MemoryDocumentStore, name: str, prompt: str, cron: str) -> None:
    store = TaskStore(documents)
    with pytest.raises(ValueError):
        store.add_task(name=name, prompt=prompt, cron_expression=cron)
    assert documents.writes == []


def test_tasks_survive_restart(documents: MemoryDocumentStore) -> None:
    store = TaskStore(documents)
    a = store.add_task(name="a", prompt="pa", cron_expression="* * * * *")
    b = store.add_task(name="b", prompt="pb", cron_expression="*/5 * * * *")
    store.set_enabled(b.id, False)
    store.record_run(a.id, result="fine", ran_at=42.0)

    reloaded = TaskStore(documents)

    assert [t.id for t in reloaded.list_tasks()] == [a.id, b.id]
    assert reloaded.get_task(a.id).last_run_at == 42.0  # type: ignore[union-attr]
    assert reloaded.get_task(a.id).last_result == "fine"  # type: ignore[union-attr]
    assert reloaded.get_task(b.id).enabled is False  # type: ignore[union-attr]


def test_disable_twice_is_idempotent(task_store: TaskStore, documents: MemoryDocumentStore) -> None:
    task = task_store.add_task(name="a", prompt="p", cron_expression="* * * * *")
    documents.writes.clear()

    assert task_store.set_enabled(task.id, False) is True
    assert task_store.set_enabled(task.id, False) is True

    assert documents.writes == [TASKS_DOC]
    assert task_store.get_task(task.id).enabled is False  # type: ignore[union-attr]


def test_unknown_task_operations(task_store: TaskStore, documents: MemoryDocumentStore) -> None:
    assert task_store.set_enabled("nope", True) is False
    assert task_store.remove_task("nope") is False
    task_store.record_run("nope", result="x")
    assert documents.writes == []


def test_remove_task(task_store: TaskStore, documents: MemoryDocumentStore) -> None:
    task = task_store.add_task(name="a", prompt="p", cron_expression="* * * * *")
    assert task_store.remove_task(task.id) is True
    assert task_store.count_tasks() == 0
    assert documents.docs[TASKS_DOC] == []


def test_malformed_records_are_skipped_on_load() -> None:
    documents = MemoryDocumentStore(
        {
            TASKS_DOC: [
                {"id": "sched-ok", "name": "ok", "prompt": "p", "cron_expression": "* * * * *", "enabled": True},
                {"name": "missing id"},
                "garbage",
            ]
        }
    )
    store = TaskStore(documents)
    assert [t.id for t in store.list_tasks()] == ["sched-ok"]


def test_non_list_document_loads_empty() -> None:
    store = TaskStore(MemoryDocumentStore({TASKS_DOC: {"oops": 1}}))
    assert store.count_tasks() == 0


def test_running_flag_roundtrip(task_store: TaskStore, documents: MemoryDocumentStore) -> None:
    assert task_store.load_running_flag() is False
    task_store.save_running_flag(True)
    assert documents.docs[STATE_DOC] == {"running": True}
    assert TaskStore(documents).load_running_flag() is True


def test_log_is_bounded_and_not_persisted(documents: MemoryDocumentStore) -> None:
    store = TaskStore(documents, log_capacity=3)
    for i in range(5):
        store.append_log(ScheduleLogEntry(float(i), "t", "task", RunOutcome.OK, f"r{i}"))

    assert [e.result for e in store.get_log()] == ["r2", "r3", "r4"]
    assert documents.writes == []


def test_json_document_store_persists_tasks(tmp_path: Path) -> None:
    docs = JsonDocumentStore(tmp_path)
    task = TaskStore(docs).add_task(name="a", prompt="p", cron_expression="* * * * *")

    assert docs.path_for(TASKS_DOC).exists()
    assert TaskStore(JsonDocumentStore(tmp_path)).get_task(task.id) is not None


def test_failed_write_leaves_tasks_unchanged(task_store: TaskStore, documents: MemoryDocumentStore) -> None:
    kept = task_store.add_task(name="kept", prompt="p", cron_expression="* * * * *")
    documents.fail_writes = True

    with pytest.raises(OSError):
        task_store.add_task(name="new", prompt="p", cron_expression="* * * * *")
    with pytest.raises(OSError):
        task_store.set_enabled(kept.id, False)
    with pytest.raises(OSError):
        task_store.record_run(kept.id, result="x", ran_at=1.0)
    with pytest.raises(OSError):
        task_store.remove_task(kept.id)

    assert [t.name for t in task_store.list_tasks()] == ["kept"]
    current = task_store.get_task(kept.id)
    assert current is not None
    assert current.enabled is True
    assert current.last_run_at is None
    assert documents.docs[TASKS_DOC] == [kept.to_dict()]
