# src/checklist_sync/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.state import AppState
from ..tasks.task_models import Task
from ..tasks.task_views import format_date, progress, progress_label, status_tag

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

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

        # Arguments may hold a password: log the count only.
        logger.debug("Command /%s (%d args)", name, len(args))

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering helpers ----


def render_task(task: Task, position: int | None = None) -> str:
    p = progress(task)
    head = f"{position}. " if position is not None else ""
    lines = [
        f"{head}{task.title} [{status_tag(p.percent)}] {progress_label(task)} ({p.percent}%)"
        f" - {format_date(task.created_at)}"
    ]
    if task.description:
        lines.append(f"     {task.description}")
    for i, item in enumerate(task.checklist, start=1):
        mark = "x" if item.completed else " "
        lines.append(f"     {i}) [{mark}] {item.text}")
    return "\n".join(lines)


def _take_error(state: AppState, store: str, fallback: str) -> str:
    """Read last_error from a store, then clear it (presentation owns display + clear)."""
    target = state.session if store == "session" else state.tasks
    msg = target.state.last_error or fallback
    target.clear_error()
    return msg


def _resolve_task(state: AppState, ref: str) -> Task | None:
    """'3' / '#3' -> third task in the current list; anything else -> task id."""
    tasks = state.tasks.tasks
    raw = ref.lstrip("#")
    if raw.isdigit():
        n = int(raw)
        if 1 <= n <= len(tasks):
            return tasks[n - 1]
    return state.tasks.get(ref)


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    st = state.session.state
    who = st.user.username if st.user else "-"
    return (
        "Status:\n"
        f"  Server: {state.remote.base_url}\n"
        f"  Session: {st.phase.value} (user: {who})\n"
        f"  Cached tasks: {len(state.tasks.tasks)}"
    )


async def _auth(state: AppState, args: list[str], kind: str, emit: CommandEmitter | None) -> str:
    if len(args) < 2:
        return f"Usage: /{kind} <username> <password>"
    username, password = args[0], args[1]
    if emit:
        emit(f"[SESSION] {'Logging in' if kind == 'login' else 'Registering'} as {username}...")
    call = state.session.login if kind == "login" else state.session.register
    if not await call(username, password):
        fallback = "Login failed" if kind == "login" else "Registration failed"
        return _take_error(state, "session", fallback)
    ok = await state.tasks.fetch_all()
    suffix = "" if ok else f" (could not load tasks: {_take_error(state, 'tasks', 'unknown error')})"
    head = "Logged in as" if kind == "login" else "Registered and logged in as"
    return f"{head} {username}. {len(state.tasks.tasks)} task(s).{suffix}"


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await _auth(state, args, "login", emit)


async def cmd_register(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return await _auth(state, args, "register", emit)


async def cmd_logout(state: AppState, args: list[str]) -> str:
    if not state.session.is_authenticated:
        return "Not logged in."
    state.session.logout()
    return "Logged out."


async def cmd_whoami(state: AppState, args: list[str]) -> str:
    user = state.session.user
    if user is None:
        return "Not logged in."
    return f"Logged in as {user.username} (id={user.id})."


async def cmd_tasks(state: AppState, args: list[str]) -> str:
    if not await state.tasks.fetch_all():
        return _take_error(state, "tasks", "Failed to fetch tasks")
    tasks = state.tasks.tasks
    if not tasks:
        return "No tasks yet. Create your first task with /add."
    return "\n".join(render_task(t, i) for i, t in enumerate(tasks, start=1))


async def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <task#|id>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    fresh = await state.tasks.refresh(task.id)
    if fresh is None:
        return _take_error(state, "tasks", "Failed to load task")
    return render_task(fresh)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Title | optional description | item one; item two
    """
    text = " ".join(args)
    parts = [p.strip() for p in text.split("|")]
    if not parts or not parts[0]:
        return "Usage: /add <title> [| description] [| item1; item2; ...]"
    title = parts[0]
    description = parts[1] if len(parts) > 1 else None
    items = [i.strip() for i in parts[2].split(";")] if len(parts) > 2 else []
    created = await state.tasks.create(title, description, items)
    if created is None:
        return _take_error(state, "tasks", "Failed to create task")
    return "Task created successfully!\n" + render_task(created, 1)


async def _set_item(state: AppState, args: list[str], completed: bool) -> str:
    if len(args) < 2 or not args[1].isdigit():
        return f"Usage: /{'check' if completed else 'uncheck'} <task#|id> <item#>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    n = int(args[1])
    if not 1 <= n <= len(task.checklist):
        return f"No such checklist item: {n}"
    updated = await state.tasks.toggle_item_by_id(task.id, task.checklist[n - 1].id, completed)
    if updated is None:
        return _take_error(state, "tasks", "Failed to update checklist item")
    return render_task(updated)


async def cmd_check(state: AppState, args: list[str]) -> str:
    return await _set_item(state, args, True)


async def cmd_uncheck(state: AppState, args: list[str]) -> str:
    return await _set_item(state, args, False)


async def cmd_rename(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /rename <task#|id> <new title>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    updated = await state.tasks.update_task(task.id, title=" ".join(args[1:]))
    if updated is None:
        return _take_error(state, "tasks", "Failed to update task")
    return render_task(updated)


async def cmd_rm(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <task#|id>"
    task = _resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    state.tasks.clear_error()
    if await state.tasks.remove(task.id):
        return "Task deleted successfully!"
    if state.tasks.state.last_error:
        return _take_error(state, "tasks", "Failed to delete task")
    return "Deletion cancelled."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show server, session and cache status.")
registry.register("login", cmd_login, help_text="Log in: /login <username> <password>.")
registry.register("register", cmd_register, help_text="Create an account: /register <username> <password>.")
registry.register("logout", cmd_logout, help_text="Forget the stored session.")
registry.register("whoami", cmd_whoami, help_text="Show the logged-in user.")
registry.register("tasks", cmd_tasks, help_text="Reload and list your tasks.", aliases=["ls"])
registry.register("show", cmd_show, help_text="Reload one task: /show <task#>.")
registry.register("add", cmd_add, help_text="New task: /add Title | description | item1; item2.")
registry.register("check", cmd_check, help_text="Complete an item: /check <task#> <item#>.")
registry.register("uncheck", cmd_uncheck, help_text="Reopen an item: /uncheck <task#> <item#>.")
registry.register("rename", cmd_rename, help_text="Change a title: /rename <task#> <title>.")
registry.register("rm", cmd_rm, help_text="Delete a task (asks for confirmation): /rm <task#>.")
