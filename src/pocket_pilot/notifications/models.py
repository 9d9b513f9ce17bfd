# src/pocket_pilot/notifications/models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Any


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    """One displayed notification instance as seen by a single poll."""

    key: str
    package_name: str
    title: str = ""
    text: str = ""
    sub_text: str = ""
    posted_at: float | None = None  # unix seconds; None when the device reports no post time
    actions: tuple[str, ...] = ()
    is_ongoing: bool = False
    is_clearable: bool = True


@dataclass(slots=True, frozen=True)
class TriageLogEntry:
    timestamp: float
    package_name: str
    title: str
    action: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def format_notifications(notifications: Iterable[NotificationEvent]) -> str:
    """Human-readable listing (used by the console and as agent context)."""
    items = list(notifications)
    if not items:
        return "No active notifications."

    blocks: list[str] = []
    for i, n in enumerate(items, start=1):
        parts = [f"[{i}] {n.package_name}"]
        if n.title:
            parts.append(f"  Title: {n.title}")
        if n.text:
            parts.append(f"  Text: {n.text}")
        if n.sub_text:
            parts.append(f"  Sub: {n.sub_text}")
        if n.actions:
            parts.append(f"  Actions: {', '.join(n.actions)}")
        if n.is_ongoing:
            parts.append("  [ONGOING]")
        blocks.append("\n".join(parts))

    return f"Active notifications ({len(items)}):\n\n" + "\n\n".join(blocks)
