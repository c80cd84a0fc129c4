# src/checklist_sync/tasks/task_store.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import replace
from typing import Any, TypeVar

from ..api import task_api
from ..core.observable import Observable
from ..core.ports import DeleteConfirmer, RemoteStore
from ..errors import SyncError, ValidationError
from ..session.session_models import SessionState
from ..session.session_store import SessionStore
from .task_models import ChecklistItem, Task, TaskCollectionState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Dropped(Exception):
    """Internal: the call failed (error recorded) or its session went away (result discarded)."""


class TaskCollectionStore(Observable[TaskCollectionState]):
    """
    In-memory, server-confirmed copy of the current user's tasks.

    Rules:
    - Nothing is applied speculatively: every change comes from a server response.
    - Whole tasks are replaced, never field-patched locally.
    - create() prepends the created task (most recent action first, not timestamp order).
    - Mutations of one task are serialized (per-task asyncio.Lock), so their completions
      apply in issue order.
    - Results that complete after the session identity changed are discarded.

    Intents never raise SyncError: they return None/False and record last_error instead.
    """

    def __init__(
        self,
        remote: RemoteStore,
        session: SessionStore,
        *,
        confirmer: DeleteConfirmer | None = None,
    ) -> None:
        super().__init__(TaskCollectionState())
        self._remote = remote
        self._session = session
        self._confirmer = confirmer
        self._task_locks: dict[str, asyncio.Lock] = {}
        self._fetches_in_flight = 0
        self._owner_ticket = session.ticket()
        session.subscribe(self._on_session_changed)

    # ---- read accessors ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self.state.tasks

    def get(self, task_id: str) -> Task | None:
        return self.state.find(task_id)

    # ---- intents ----

    async def fetch_all(self) -> bool:
        """Replace the collection wholesale with the server's list (server order kept)."""
        try:
            ticket = self._require_session()
        except ValidationError as e:
            self._record_error(str(e))
            return False

        self._fetches_in_flight += 1
        self._set_state(replace(self.state, loading=True))
        try:
            fetched = await self._call("fetch", ticket, task_api.get_tasks(self._remote))
        except _Dropped:
            # A stale session already reset the counter along with the collection.
            if self._session.is_current(ticket):
                self._fetches_in_flight = max(0, self._fetches_in_flight - 1)
                self._set_state(replace(self.state, loading=self._fetches_in_flight > 0))
            return False

        self._fetches_in_flight = max(0, self._fetches_in_flight - 1)
        previous = {t.id: t for t in self.state.tasks}
        tasks = tuple(t.inherit_item_ids(previous.get(t.id)) for t in fetched)
        self._set_state(
            replace(self.state, tasks=tasks, loading=self._fetches_in_flight > 0, last_error=None)
        )
        logger.info("Fetched %d tasks", len(tasks))
        return True

    async def create(
        self,
        title: str,
        description: str | None = None,
        checklist: Iterable[str | ChecklistItem] = (),
    ) -> Task | None:
        """
        Create a task; blank checklist lines are dropped before submission.

        The server's task goes to the front of the list. Nothing is inserted on failure.
        """
        try:
            ticket = self._require_session()
            title = (title or "").strip()
            if not title:
                raise ValidationError("Please input a task title!")
        except ValidationError as e:
            self._record_error(str(e))
            return None

        description = (description or "").strip() or None
        items: list[ChecklistItem] = []
        for entry in checklist:
            item = entry if isinstance(entry, ChecklistItem) else ChecklistItem(text=str(entry))
            if item.text.strip():
                items.append(item)

        logger.debug("Creating task title=%r items=%d", title, len(items))
        try:
            created = await self._call(
                "create",
                ticket,
                task_api.create_task(
                    self._remote, title=title, description=description, checklist=items
                ),
            )
        except _Dropped:
            return None

        if not created.item_ids_from_server and len(created.checklist) == len(items):
            # Keep the ids we minted (and sent) when the server did not echo them back.
            created = replace(
                created,
                checklist=tuple(replace(new, id=sent.id) for new, sent in zip(created.checklist, items)),
            )

        self._set_state(replace(self.state, tasks=(created, *self.state.tasks), last_error=None))
        logger.info("Task created id=%s title=%r", created.id, created.title)
        return created

    async def toggle_item(self, task_id: str, item_index: int, completed: bool) -> Task | None:
        """Set checklist item #item_index to `completed`; apply the server's full task."""
        async with self._lock_for(task_id):
            return await self._toggle_locked(task_id, item_index, completed)

    async def toggle_item_by_id(self, task_id: str, item_id: str, completed: bool) -> Task | None:
        """
        Same as toggle_item, addressed by the item's stable id.

        The position is resolved from the cached task once earlier mutations of this
        task have completed, so reorders in between cannot hit the wrong item.
        """
        async with self._lock_for(task_id):
            task = self.state.find(task_id)
            if task is None:
                self._record_error("Task not found.")
                return None
            index = task.item_index(item_id)
            if index is None:
                self._record_error("Checklist item not found.")
                return None
            return await self._toggle_locked(task_id, index, completed)

    async def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Task | None:
        """Edit title and/or description (PUT); the returned task replaces the cached one."""
        fields: dict[str, Any] = {}
        if title is not None:
            if not title.strip():
                self._record_error("Please input a task title!")
                return None
            fields["title"] = title.strip()
        if description is not None:
            fields["description"] = description.strip()
        if not fields:
            return self.state.find(task_id)

        async with self._lock_for(task_id):
            try:
                ticket = self._require_session()
            except ValidationError as e:
                self._record_error(str(e))
                return None
            try:
                updated = await self._call(
                    "update", ticket, task_api.update_task(self._remote, task_id, fields)
                )
            except _Dropped:
                return None
            return self._apply_task(updated)

    async def refresh(self, task_id: str) -> Task | None:
        """Re-read one task from the server and replace the cached copy."""
        async with self._lock_for(task_id):
            try:
                ticket = self._require_session()
            except ValidationError as e:
                self._record_error(str(e))
                return None
            try:
                fresh = await self._call("refresh", ticket, task_api.get_task(self._remote, task_id))
            except _Dropped:
                return None
            return self._apply_task(fresh)

    async def remove(self, task_id: str, *, confirmed: bool = False) -> bool:
        """
        Delete a task once the caller has confirmed it.

        Without confirmed=True the injected confirmer is asked; with neither, nothing is sent.
        On failure the collection is left exactly as it was.
        """
        if not confirmed:
            if self._confirmer is None:
                self._record_error("Deletion must be confirmed.")
                return False
            task = self.state.find(task_id)
            if task is None:
                self._record_error("Task not found.")
                return False
            answer = self._confirmer(task)
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                logger.debug("Deletion of task id=%s declined", task_id)
                return False

        async with self._lock_for(task_id):
            try:
                ticket = self._require_session()
            except ValidationError as e:
                self._record_error(str(e))
                return False
            try:
                await self._call("delete", ticket, task_api.delete_task(self._remote, task_id))
            except _Dropped:
                return False

            self._set_state(
                replace(
                    self.state,
                    tasks=tuple(t for t in self.state.tasks if t.id != task_id),
                    last_error=None,
                )
            )
        # The lock stays registered: callers queued on it must keep excluding new ones.
        logger.info("Task deleted id=%s", task_id)
        return True

    def clear_error(self) -> None:
        if self.state.last_error is not None:
            self._set_state(replace(self.state, last_error=None))

    def reset(self) -> None:
        """Drop every cached task (used when the session identity changes)."""
        self._fetches_in_flight = 0
        self._task_locks.clear()
        if self.state != TaskCollectionState():
            self._set_state(TaskCollectionState())

    # ---- internals ----

    def _on_session_changed(self, _state: SessionState) -> None:
        ticket = self._session.ticket()
        if ticket == self._owner_ticket:
            return
        self._owner_ticket = ticket
        logger.info("Session identity changed; clearing cached tasks")
        self.reset()

    def _require_session(self) -> int:
        if not self._session.is_authenticated:
            raise ValidationError("You are not logged in.")
        return self._session.ticket()

    def _lock_for(self, task_id: str) -> asyncio.Lock:
        lock = self._task_locks.get(task_id)
        if lock is None:
            lock = asyncio.Lock()
            self._task_locks[task_id] = lock
        return lock

    def _record_error(self, message: str) -> None:
        logger.warning("Task intent failed: %s", message)
        self._set_state(replace(self.state, last_error=message))

    async def _call(self, what: str, ticket: int, coro: Awaitable[T]) -> T:
        """
        Await one API call, then check the session is still the one it was issued for.

        Raises _Dropped on SyncError (after recording last_error) or on a stale session.
        """
        try:
            result = await coro
        except SyncError as e:
            if not self._session.is_current(ticket):
                logger.info("Discarding %s failure from a previous session: %s", what, e)
                raise _Dropped() from e
            self._record_error(str(e))
            raise _Dropped() from e

        if not self._session.is_current(ticket):
            logger.info("Discarding %s completion from a previous session", what)
            raise _Dropped()
        return result

    async def _toggle_locked(self, task_id: str, item_index: int, completed: bool) -> Task | None:
        try:
            ticket = self._require_session()
            if item_index < 0:
                raise ValidationError("Checklist item index must not be negative.")
            cached = self.state.find(task_id)
            if cached is not None and item_index >= len(cached.checklist):
                raise ValidationError("Checklist item not found.")
        except ValidationError as e:
            self._record_error(str(e))
            return None

        logger.debug("Toggle task=%s item=%d -> %s", task_id, item_index, completed)
        try:
            updated = await self._call(
                "toggle",
                ticket,
                task_api.update_checklist_item(self._remote, task_id, item_index, completed),
            )
        except _Dropped:
            return None
        return self._apply_task(updated)

    def _apply_task(self, updated: Task) -> Task:
        """Authoritative replacement of one cached task (matched by id)."""
        tasks = list(self.state.tasks)
        for i, t in enumerate(tasks):
            if t.id == updated.id:
                updated = updated.inherit_item_ids(t)
                tasks[i] = updated
                break
        else:
            logger.debug("Updated task id=%s is not cached; collection unchanged", updated.id)
        self._set_state(replace(self.state, tasks=tuple(tasks), last_error=None))
        return updated
