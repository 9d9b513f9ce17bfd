# src/pocket_pilot/tasks/task_models.py

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import StrEnum
from typing import Any


class RunOutcome(StrEnum):
    """How one execution attempt of a scheduled task ended."""

    OK = "ok"
    SKIPPED = "skipped"  # device busy / lock contention
    FAILED = "failed"  # wake/unlock failed
    ERROR = "error"  # agent or shell raised


@dataclass(slots=True)
class ScheduledTask:
    id: str
    name: str
    prompt: str
    cron_expression: str
    enabled: bool
    created_at: float
    last_run_at: float | None = None
    last_result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScheduledTask:
        known = {f.name for f in fields(cls)}
        clean = {k: v for k, v in data.items() if k in known}
        return cls(
            id=str(clean["id"]),
            name=str(clean.get("name") or ""),
            prompt=str(clean.get("prompt") or ""),
            cron_expression=str(clean.get("cron_expression") or ""),
            enabled=bool(clean.get("enabled", True)),
            created_at=float(clean.get("created_at") or 0.0),
            last_run_at=float(clean["last_run_at"]) if clean.get("last_run_at") is not None else None,
            last_result=clean.get("last_result"),
        )


@dataclass(slots=True, frozen=True)
class ScheduleLogEntry:
    timestamp: float
    task_id: str
    task_name: str
    outcome: RunOutcome
    result: str
    turns: int = 0

    @property
    def success(self) -> bool:
        return self.outcome is RunOutcome.OK

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["outcome"] = self.outcome.value
        d["success"] = self.success
        return d
