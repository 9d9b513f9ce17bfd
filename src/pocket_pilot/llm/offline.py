# src/pocket_pilot/llm/offline.py

from __future__ import annotations

from ..core.ports import AgentResult, ChatMessage, TriageDecision
from ..notifications.models import NotificationEvent


class OfflineAgent:
    """
    Offline deterministic agent used for demos when no external API is configured.

    - run(): echoes the prompt, zero device turns
    - triage(): always "log", so the pipeline can be exercised end to end
    """

    async def run(self, prompt: str, *, history: list[ChatMessage] | None = None) -> AgentResult:
        return AgentResult(
            text=(
                "Offline demo mode: no external LLM is configured.\n"
                "Set POCKET_OPENAI_API_KEY (and POCKET_LLM_MODELS) to enable real responses.\n\n"
                f"You said: {prompt}"
            ),
            turn_count=0,
        )

    async def triage(self, notification: NotificationEvent) -> TriageDecision:
        return TriageDecision(action="log", reason=f"offline mode: {notification.package_name}")
