# src/pocket_pilot/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import cast

from ..core.state import AppState
from ..notifications.models import format_notifications
from ..notifications.watcher import NotificationFetchError, fetch_notifications
from ..tasks.task_models import ScheduledTask
from .bootstrap import save_transcript

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /lock, /sched, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Handlers may be sync or async.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return cast(str, result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ts: float | None) -> str:
    if not ts:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _fmt_task(t: ScheduledTask) -> str:
    flag = "on " if t.enabled else "off"
    last = _fmt_ts(t.last_run_at)
    return f"  [{flag}] {t.id}  '{t.cron_expression}'  {t.name}  (last run: {last})"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    lock = state.lock.get_state()
    holder = f"{lock.held_by} ({lock.owner_kind})" if lock.locked else "free"
    sched = state.scheduler.status()
    notif = state.notification_queue.status()
    return (
        "Status:\n"
        f"  Device lock: {holder}\n"
        f"  Scheduler: {'running' if sched['running'] else 'stopped'}, "
        f"{sched['enabled']}/{sched['tasks']} tasks enabled\n"
        f"  Notifications: {'watching' if notif['running'] else 'stopped'}, "
        f"{notif['queued']} queued, {len(notif['whitelist'])} whitelisted packages"
    )


def cmd_lock(state: AppState, args: list[str]) -> str:
    """
    /lock          -> show lock holder
    /lock release  -> force-release (operator recovery)
    """
    sub = args[0].lower() if args else "status"

    if sub == "status":
        s = state.lock.get_state()
        if not s.locked:
            return "Device lock is free."
        return f"Device lock held by {s.held_by} ({s.owner_kind}) since {_fmt_ts(s.acquired_at)}."

    if sub in ("release", "force-release", "free"):
        state.lock.force_release()
        return "Device lock force-released."

    return "Usage: /lock [status|release]"


async def cmd_notif(state: AppState, args: list[str]) -> str:
    """
    /notif start|stop|status|list|log
    """
    q = state.notification_queue
    sub = args[0].lower() if args else "status"

    if sub == "start":
        return "Notification watcher started." if q.start() else "Notification watcher is already running."

    if sub == "stop":
        return "Notification watcher stopped." if await q.stop() else "Notification watcher is not running."

    if sub == "status":
        s = q.status()
        return (
            f"Notification watcher: {'running' if s['running'] else 'stopped'}\n"
            f"  Queued: {s['queued']} (triaging: {'yes' if s['draining'] else 'no'})\n"
            f"  Whitelist: {', '.join(s['whitelist']) or '(empty)'}"
        )

    if sub == "list":
        try:
            current = await fetch_notifications(state.shell)
        except NotificationFetchError as e:
            return f"Cannot read notifications: {e}"
        return format_notifications(current)

    if sub == "log":
        entries = q.get_triage_log()
        if not entries:
            return "Triage log is empty."
        lines = ["Triage log (oldest first):"]
        for e in entries[-20:]:
            lines.append(f"  {_fmt_ts(e.timestamp)} {e.package_name} '{e.title}' -> {e.action}: {e.reason}")
        return "\n".join(lines)

    return "Usage: /notif [start|stop|status|list|log]"


def cmd_whitelist(state: AppState, args: list[str]) -> str:
    """
    /whitelist                 -> list
    /whitelist add <pkg>       -> add
    /whitelist remove <pkg>    -> remove
    /whitelist set <pkg...>    -> replace
    """
    f = state.notification_filter
    sub = args[0].lower() if args else "list"
    rest = args[1:]

    if sub == "list":
        pkgs = f.get_whitelist()
        return "Whitelisted packages:\n" + "\n".join(f"  {p}" for p in pkgs) if pkgs else "Whitelist is empty."

    if sub == "add" and rest:
        for pkg in rest:
            f.add_package(pkg)
        return f"Added: {', '.join(rest)}"

    if sub in ("remove", "rm") and rest:
        removed = [pkg for pkg in rest if f.remove_package(pkg)]
        return f"Removed: {', '.join(removed)}" if removed else "None of those packages were whitelisted."

    if sub == "set":
        f.set_whitelist(rest)
        return f"Whitelist replaced ({len(rest)} packages)."

    return "Usage: /whitelist [list|add <pkg>|remove <pkg>|set <pkg...>]"


SCHED_USAGE = (
    "Usage:\n"
    "  /sched list\n"
    "  /sched add <min> <hour> <dom> <month> <dow> <name> | <prompt>\n"
    "  /sched rm|enable|disable|run <id>\n"
    "  /sched start|stop|status|log"
)


async def cmd_sched(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.scheduler
    sub = args[0].lower() if args else "list"
    rest = args[1:]

    if sub == "list":
        tasks = s.get_tasks()
        if not tasks:
            return "No scheduled tasks."
        return "Scheduled tasks:\n" + "\n".join(_fmt_task(t) for t in tasks)

    if sub == "add":
        if len(rest) < 6:
            return SCHED_USAGE
        cron = " ".join(rest[:5])
        tail = " ".join(rest[5:])
        name, sep, prompt = tail.partition("|")
        if not sep:
            return "Separate the task name and the prompt with '|'."
        try:
            task = s.add_task(name=name.strip(), prompt=prompt.strip(), cron_expression=cron)
        except ValueError as e:
            return f"Cannot add task: {e}"
        return f"Added task {task.id} ({task.name}) at '{task.cron_expression}'."

    if sub in ("rm", "remove", "enable", "disable", "run"):
        if not rest:
            return SCHED_USAGE
        task_id = rest[0]

        if sub in ("rm", "remove"):
            return f"Removed {task_id}." if s.remove_task(task_id) else f"No task {task_id}."
        if sub == "enable":
            return f"Enabled {task_id}." if s.enable_task(task_id) else f"No task {task_id}."
        if sub == "disable":
            return f"Disabled {task_id}." if s.disable_task(task_id) else f"No task {task_id}."

        if emit:
            emit(f"[SCHED] Running {task_id} now...")
        entry = await s.run_now(task_id)
        if entry is None:
            return f"No task {task_id}."
        return f"{entry.task_name}: {entry.outcome.value} ({entry.turns} turns)\n{entry.result}"

    if sub == "start":
        return "Scheduler started." if s.start() else "Scheduler is already running."

    if sub == "stop":
        return "Scheduler stopped." if await s.stop() else "Scheduler is not running."

    if sub == "status":
        st = s.status()
        return (
            f"Scheduler: {'running' if st['running'] else 'stopped'}"
            f"{' (executing)' if st['executing'] else ''}\n"
            f"  Tasks: {st['tasks']} ({st['enabled']} enabled)\n"
            f"  Log entries: {st['log_entries']}"
        )

    if sub == "log":
        entries = s.get_log()
        if not entries:
            return "Scheduler log is empty."
        lines = ["Scheduler log (oldest first):"]
        for e in entries[-20:]:
            lines.append(f"  {_fmt_ts(e.timestamp)} {e.task_name} -> {e.outcome.value}: {e.result[:120]}")
        return "\n".join(lines)

    return SCHED_USAGE


def cmd_clear(state: AppState, args: list[str]) -> str:
    state.transcript.clear()
    return "History cleared."


def cmd_save(state: AppState, args: list[str]) -> str:
    save_transcript(state)
    return f"Saved {len(state.transcript)} messages."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show lock/scheduler/notification status.")
registry.register("lock", cmd_lock, help_text="Device lock: /lock [status|release].")
registry.register("notif", cmd_notif, help_text="Notification watcher: /notif [start|stop|status|list|log].")
registry.register(
    "whitelist", cmd_whitelist, help_text="Notification whitelist: /whitelist [list|add|remove|set]."
)
registry.register("sched", cmd_sched, help_text="Scheduled tasks: /sched [list|add|rm|enable|disable|run|start|stop|status|log].")
registry.register("clear", cmd_clear, help_text="Clear the session transcript.")
registry.register("save", cmd_save, help_text="Save the session transcript.")
