# src/pocket_pilot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the shell executor, the LLM agent and persistence swappable and
makes testing easier (see tests/fakes.py).
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    from ..notifications.models import NotificationEvent

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


@dataclass(slots=True, frozen=True)
class ShellResult:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(slots=True, frozen=True)
class AgentResult:
    text: str
    turn_count: int


@dataclass(slots=True, frozen=True)
class TriageDecision:
    action: str
    reason: str


class ShellExecutor(Protocol):
    """Runs one shell command on the device; never raises on a non-zero exit code."""

    def execute(
            self,
            command: str,
            *,
            timeout: float | None = None,
            as_root: bool | None = None,
    ) -> Awaitable[ShellResult]: ...


class AgentRunner(Protocol):
    """Free-form agent: consumes a prompt, returns the final text and the number of turns used."""

    def run(self, prompt: str, *, history: list[ChatMessage] | None = None) -> Awaitable[AgentResult]: ...


class TriageAgent(Protocol):
    """Notification triage: decides what to do with one incoming notification."""

    def triage(self, notification: NotificationEvent) -> Awaitable[TriageDecision]: ...


class DocumentStore(Protocol):
    """Named JSON documents (file-per-document)."""

    def read(self, name: str, default: Any) -> Any: ...
    def write(self, name: str, data: Any) -> None: ...
