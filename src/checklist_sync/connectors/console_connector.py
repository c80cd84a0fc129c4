# src/checklist_sync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..session.session_models import SessionPhase, SessionState
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def ask_delete_confirmation(task: Task) -> bool:
    """Confirmation collaborator for TaskCollectionStore.remove()."""
    prompt = f"Delete '{task.title}'? This action cannot be undone. [y/N] "
    try:
        answer = await asyncio.to_thread(input, prompt)
    except (EOFError, KeyboardInterrupt):
        return False
    return answer.strip().lower() in ("y", "yes")


def _on_session_changed(st: SessionState) -> None:
    if st.phase == SessionPhase.AUTHENTICATING:
        _print_ts("[SESSION] Authenticating...")


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (server=%s).", state.remote.base_url)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    unsubscribe = state.session.subscribe(_on_session_changed)

    user = state.session.user
    if user is not None:
        _print_ts(f"[SESSION] Welcome back, {user.username}.")
        reply = await command_registry.handle(state, "/tasks")
        if reply:
            _print_ts(reply)

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                cmd_response = await command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                cmd_response = "Internal error while handling a command."

            if cmd_response is None:
                cmd_response = "Commands start with '/'. Use /help to list available commands."
            _print_ts(cmd_response)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
