# src/tasklist_sync/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date, timedelta

from ..auth.verification import CheckOutcome, VerificationState
from ..core.errors import TaskListError, ValidationFailed
from ..core.state import AppState
from ..tasks.task_models import Task, TaskDraft, TaskFilter, TaskPriority, TaskStatus, format_due_date

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

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

    def help_lines(self) -> list[str]:
        return [f"/{name} - {text}" for name, text in sorted(self._help.items())]

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Backend and validation errors become the reply; anything else propagates.
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
            return await handler(state, args, emit)
        except ValidationFailed as e:
            return e.reason
        except TaskListError as e:
            logger.info("/%s failed: %s", name, e)
            return f"Failed: {e}"


# ---- rendering ----

def render_task(index: int, task: Task) -> str:
    mark = "x" if task.status == TaskStatus.COMPLETED else " "
    line = f"[{mark}] {index}. {task.title} ({task.priority.value}"
    if task.due_date:
        line += f", due {task.due_date}"
    if task.assigned_to:
        line += f", @{task.assigned_to}"
    line += ")"
    if task.description:
        line += f"\n       {task.description}"
    return line


def render_view(state: AppState) -> str:
    view = state.view
    tasks = view.visible
    if view.active_query:
        header = f"Search '{view.active_query}': {len(tasks)} task(s)"
    else:
        header = f"{view.active_filter.value}: {len(tasks)} task(s)"
    if not tasks:
        return header + "\n  (no tasks)"
    return "\n".join([header] + [render_task(i, t) for i, t in enumerate(tasks, start=1)])


def parse_due_date(raw: str, *, today: date | None = None) -> str:
    """today / tomorrow / YYYY-MM-DD become D/M/YYYY; anything else is kept as typed."""
    s = raw.strip()
    if not s:
        return ""
    today = today or date.today()
    low = s.lower()
    if low == "today":
        return format_due_date(today)
    if low == "tomorrow":
        return format_due_date(today + timedelta(days=1))
    try:
        return format_due_date(date.fromisoformat(s))
    except ValueError:
        return s


def parse_draft(text: str) -> TaskDraft:
    """
    Parse "/add" arguments:

        title | description | due | priority | assignee

    Every field after the title is optional.
    """
    fields = [p.strip() for p in text.split("|")]
    fields += [""] * (5 - len(fields))
    title, description, due, priority_raw, assignee = fields[:5]

    priority = TaskPriority.MEDIUM
    if priority_raw:
        matches = [p for p in TaskPriority if p.value.lower() == priority_raw.lower()]
        if not matches:
            raise ValidationFailed("priority", "Priority must be High, Medium or Low")
        priority = matches[0]

    return TaskDraft(
        title=title,
        description=description,
        due_date=parse_due_date(due),
        priority=priority,
        assigned_to=assignee,
    )


def _resolve_task_id(state: AppState, ref: str) -> str:
    """A 1-based position in the visible list, or a raw task id."""
    visible = state.view.visible
    if ref.isdigit():
        idx = int(ref)
        if 1 <= idx <= len(visible):
            return visible[idx - 1].id
    if state.view.get(ref) is not None:
        return ref
    raise ValidationFailed("task", f"No task {ref!r} in the current list")


async def _start_sync(state: AppState) -> str:
    await state.verification.hand_off(state.controller)
    return "Email verified. Task list synced.\n" + render_view(state)


def _verification_prompt(state: AppState) -> str:
    flow = state.verification
    email = state.session.current_email() or "your registered email"
    if flow.last_error is not None:
        return (
            f"Failed to send email: {flow.last_error}\n"
            "Use /resend to try again."
        )
    return (
        f"Verification email sent to {email}.\n"
        "Please check your inbox and spam folder, click the link, then use /verify."
    )


# ---- handlers ----

async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    return "\n".join(["Commands:"] + registry.help_lines() + ["/exit - quit"])


async def cmd_register(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    if len(args) < 3:
        return "Usage: /register <email> <password> <username> [confirm_password]"
    email, password, username = args[0], args[1], args[2]
    confirm = args[3] if len(args) > 3 else password

    if emit is not None:
        emit("Registering...")
    result = await state.verification.register(email, password, username, confirm)
    if result == VerificationState.LOGGED_IN_VERIFIED:
        return await _start_sync(state)
    return "Registration successful! Please verify your email.\n" + _verification_prompt(state)


async def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    if len(args) < 2:
        return "Usage: /login <email> <password>"
    if emit is not None:
        emit("Logging in...")
    result = await state.verification.login(args[0], args[1])
    if result == VerificationState.LOGGED_IN_VERIFIED:
        return "Login Successful!\n" + await _start_sync(state)
    return "Your email is not verified yet.\n" + _verification_prompt(state)


async def cmd_verify(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    outcome = await state.verification.check_now()
    if outcome == CheckOutcome.VERIFIED:
        return await _start_sync(state)
    return (
        "Email not verified yet.\n"
        "Please check your inbox/spam and click the verification link, then run /verify again."
    )


async def cmd_resend(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    await state.verification.resend()
    return "Verification email sent again! Please check your inbox."


async def cmd_logout(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    await state.verification.logout()
    return "Logged out successfully"


async def cmd_whoami(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    if not state.session.is_logged_in():
        return "Not logged in."
    return (
        f"{state.session.current_email()} (verified={state.session.is_verified()}, "
        f"syncing={state.controller.running})"
    )


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    if not args:
        return "Usage: /add <title> [| description | due | priority | assignee]"
    draft = parse_draft(" ".join(args))
    task_id = await state.controller.create(draft)
    return f"Task added successfully! (id {task_id})"


async def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    return render_view(state)


async def cmd_filter(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    if not args:
        return f"Current filter: {state.view.active_filter.value}. Usage: /filter all|pending|completed"
    try:
        task_filter = TaskFilter.parse(args[0])
    except ValueError as e:
        return str(e)
    state.controller.set_filter(task_filter)
    return render_view(state)


async def cmd_search(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    state.controller.set_query(" ".join(args))
    return render_view(state)


async def _set_status(state: AppState, args: list[str], completed: bool) -> str:
    if not args:
        return "Usage: /done <number|id>" if completed else "Usage: /undo <number|id>"
    task_id = _resolve_task_id(state, args[0])
    await state.controller.set_status(task_id, completed)
    return "Status updated"


async def cmd_done(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    return await _set_status(state, args, True)


async def cmd_undo(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    return await _set_status(state, args, False)


async def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None) -> str:
    if not args:
        return "Usage: /delete <number|id>"
    task_id = _resolve_task_id(state, args[0])
    await state.controller.delete(task_id)
    return "Task deleted"


registry = CommandRegistry()
registry.register("help", cmd_help, "Show this help.")
registry.register("register", cmd_register, "Create an account: <email> <password> <username> [confirm].")
registry.register("login", cmd_login, "Log in: <email> <password>.")
registry.register("verify", cmd_verify, "Check whether the email address has been verified.")
registry.register("resend", cmd_resend, "Send the verification email again (60s cooldown).")
registry.register("logout", cmd_logout, "Log out (also cancels a pending verification).")
registry.register("whoami", cmd_whoami, "Show the current session.")
registry.register("add", cmd_add, "Add a task: <title> [| description | due | priority | assignee].")
registry.register("list", cmd_list, "Show the current task list.", aliases=["ls"])
registry.register("filter", cmd_filter, "Filter by status: all | pending | completed.")
registry.register("search", cmd_search, "Search title/description (empty clears the search).")
registry.register("done", cmd_done, "Mark a task completed: <number|id>.")
registry.register("undo", cmd_undo, "Mark a task pending again: <number|id>.")
registry.register("delete", cmd_delete, "Delete a task: <number|id>.", aliases=["rm"])
