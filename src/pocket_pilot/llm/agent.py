# src/pocket_pilot/llm/agent.py

from __future__ import annotations

import json
import logging
import time
from typing import Any

import openai
from openai import AsyncOpenAI

from ..core.ports import AgentResult, ChatMessage, TriageDecision
from ..notifications.models import NotificationEvent

logger = logging.getLogger(__name__)

AGENT_SYSTEM_PROMPT = (
    "You are an assistant that operates an Android phone on behalf of its owner. "
    "Answer concisely and describe what should be done on the device."
)

TRIAGE_SYSTEM_PROMPT = (
    "You triage incoming Android notifications. Reply with ONLY a JSON object "
    '{"action": "ignore" | "log" | "alert" | "act", "reason": "<one sentence>"}.'
)

TRIAGE_ACTIONS = {"ignore", "log", "alert", "act"}

_BAD_MODELS: dict[str, float] = {}  # model -> retry_at (monotonic)


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.APIConnectionError, openai.APITimeoutError))


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


def friendly_llm_error_message(err: Exception) -> str:
    msg = str(err).strip() or "LLM error."
    if "LLM API key is not set" in msg:
        return "LLM is not configured (missing API key). Set POCKET_OPENAI_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "LLM is not configured (no models). Set POCKET_LLM_MODELS in .env."
    return msg


def describe_notification(n: NotificationEvent) -> str:
    lines = [f"Package: {n.package_name}", f"Title: {n.title}", f"Text: {n.text}"]
    if n.sub_text:
        lines.append(f"Sub: {n.sub_text}")
    if n.actions:
        lines.append(f"Actions: {', '.join(n.actions)}")
    return "\n".join(lines)


def parse_triage_reply(text: str) -> TriageDecision:
    """
    Extract {"action", "reason"} from a model reply.

    Models sometimes wrap JSON in prose or code fences; take the outermost {...}.
    Anything unusable becomes action="log" with the raw reply as the reason.
    """
    raw = (text or "").strip()
    start, end = raw.find("{"), raw.rfind("}")
    if start != -1 and end > start:
        try:
            data = json.loads(raw[start : end + 1])
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            action = str(data.get("action") or "").strip().lower()
            reason = str(data.get("reason") or "").strip()
            if action in TRIAGE_ACTIONS:
                return TriageDecision(action=action, reason=reason)
    return TriageDecision(action="log", reason=raw[:300] or "empty triage reply")


class OpenAIAgent:
    """
    Agent collaborator backed by an OpenAI-compatible chat completions API.

    Behavior:
    - Tries models in the order from settings (POCKET_LLM_MODELS).
    - 404 (model not available) -> remember for an hour, try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    """

    def __init__(self, settings: Any, *, client: AsyncOpenAI | None = None) -> None:
        api_key = getattr(settings, "openai_api_key", None)
        if client is None and (not api_key or not str(api_key).strip()):
            raise RuntimeError("LLM API key is not set. Set POCKET_OPENAI_API_KEY in your .env.")
        self._models: list[str] = [m for m in (getattr(settings, "llm_models", []) or []) if m and m.strip()]
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set POCKET_LLM_MODELS in your .env.")
        self._client = client or AsyncOpenAI(
            base_url=(getattr(settings, "openai_base_url", "") or None),
            api_key=str(api_key),
            max_retries=0,
        )

    async def _complete(self, messages: list[ChatMessage]) -> str:
        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = _BAD_MODELS.get(model)
            if retry_at is not None and retry_at > now:
                continue
            try:
                resp = await self._client.chat.completions.create(model=model, messages=messages)  # type: ignore[arg-type]
                content = resp.choices[0].message.content if resp.choices else None
                if content:
                    logger.debug("LLM: completed with model=%s", model)
                    return content
                last_error = RuntimeError(f"Model returned no content: {model}")
            except Exception as e:
                last_error = e
                if _is_auth_error(e):
                    raise RuntimeError("LLM authentication failed. Check POCKET_OPENAI_API_KEY.") from e
                if _is_not_found_error(e):
                    _BAD_MODELS[model] = time.monotonic() + 3600.0
                    logger.info("LLM: model not available (404): %s", model)
                    continue
                if _is_rate_limit_error(e) or _is_connection_error(e):
                    logger.info("LLM: %s on model=%s, trying next", e.__class__.__name__, model)
                    continue
                logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)

        raise RuntimeError("All LLM models failed.") from last_error

    async def run(self, prompt: str, *, history: list[ChatMessage] | None = None) -> AgentResult:
        messages: list[ChatMessage] = [{"role": "system", "content": AGENT_SYSTEM_PROMPT}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})
        text = await self._complete(messages)
        return AgentResult(text=text, turn_count=1)

    async def triage(self, notification: NotificationEvent) -> TriageDecision:
        messages: list[ChatMessage] = [
            {"role": "system", "content": TRIAGE_SYSTEM_PROMPT},
            {"role": "user", "content": describe_notification(notification)},
        ]
        return parse_triage_reply(await self._complete(messages))
