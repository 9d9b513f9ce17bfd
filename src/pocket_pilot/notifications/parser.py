# src/pocket_pilot/notifications/parser.py

"""Parser for `dumpsys notification --noredact` output."""

from __future__ import annotations

import logging
import re
import time

from .models import NotificationEvent

logger = logging.getLogger(__name__)

FLAG_ONGOING_EVENT = 0x02

_SECTION_SPLIT = re.compile(r"\s{4}NotificationRecord\(")
_TITLE = re.compile(r"android\.title=([^\n]*)")
_TEXT = re.compile(r"android\.text=([^\n]*)")
_SUB_TEXT = re.compile(r"android\.subText=([^\n]*)")
_WHEN = re.compile(r"when=(\d+)")
_FLAGS = re.compile(r"flags=0x([0-9a-fA-F]+)")
_ACTIONS = re.compile(r"actions=\{(.+?)\}", re.DOTALL)
_ACTION_TITLE = re.compile(r'title="([^"]+)"')


def _field(section: str, name: str) -> str | None:
    m = re.search(rf"\b{name}=(\S+)", section)
    return m.group(1) if m else None


def _line(pattern: re.Pattern[str], section: str) -> str:
    m = pattern.search(section)
    return m.group(1).strip() if m else ""


def _parse_section(section: str) -> NotificationEvent:
    key = _field(section, "key") or f"unknown-{time.time_ns()}"
    pkg = _field(section, "pkg") or ""

    when_m = _WHEN.search(section)
    when_ms = int(when_m.group(1)) if when_m else 0

    flags_m = _FLAGS.search(section)
    flags = int(flags_m.group(1), 16) if flags_m else 0
    ongoing = bool(flags & FLAG_ONGOING_EVENT)

    actions: tuple[str, ...] = ()
    actions_m = _ACTIONS.search(section)
    if actions_m:
        actions = tuple(_ACTION_TITLE.findall(actions_m.group(1)))

    return NotificationEvent(
        key=key,
        package_name=pkg,
        title=_line(_TITLE, section),
        text=_line(_TEXT, section),
        sub_text=_line(_SUB_TEXT, section),
        posted_at=when_ms / 1000.0 if when_ms > 0 else None,
        actions=actions,
        is_ongoing=ongoing,
        is_clearable=not ongoing,
    )


def parse_notification_dump(dump: str) -> list[NotificationEvent]:
    out: list[NotificationEvent] = []
    for section in _SECTION_SPLIT.split(dump or "")[1:]:
        try:
            out.append(_parse_section(section))
        except Exception:
            logger.debug("Skipping unparseable notification section.", exc_info=True)
    return out
