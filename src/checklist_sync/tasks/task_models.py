# src/checklist_sync/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from ..errors import MalformedResponse


def new_item_id() -> str:
    return uuid.uuid4().hex[:16]


def parse_timestamp(raw: Any) -> datetime:
    """ISO-8601 (with optional trailing 'Z') -> aware datetime in UTC."""
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedResponse("Task timestamp is missing.")
    s = raw.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        ts = datetime.fromisoformat(s)
    except ValueError as e:
        raise MalformedResponse(f"Task timestamp is not ISO-8601: {raw!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def format_timestamp(ts: datetime) -> str:
    return ts.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class ChecklistItem:
    text: str
    completed: bool = False
    id: str = field(default_factory=new_item_id)

    @classmethod
    def from_payload(cls, raw: Any) -> ChecklistItem:
        if not isinstance(raw, dict):
            raise MalformedResponse("Checklist item is not an object.")
        text = raw.get("text")
        if not isinstance(text, str) or not text.strip():
            raise MalformedResponse("Checklist item has no text.")
        completed = raw.get("completed", False)
        if not isinstance(completed, bool):
            raise MalformedResponse("Checklist item 'completed' is not a boolean.")
        item_id = raw.get("_id", raw.get("id"))
        if item_id is None or str(item_id).strip() == "":
            return cls(text=text, completed=completed)
        return cls(text=text, completed=completed, id=str(item_id))

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "completed": self.completed}


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    checklist: tuple[ChecklistItem, ...]
    owner_id: str
    created_at: datetime
    updated_at: datetime
    description: str | None = None

    # Whether the server sent ids for the checklist items (False -> ids were minted locally).
    item_ids_from_server: bool = True

    @classmethod
    def from_payload(cls, raw: Any) -> Task:
        if not isinstance(raw, dict):
            raise MalformedResponse("Task payload is not an object.")

        task_id = raw.get("_id", raw.get("id"))
        if task_id is None or str(task_id).strip() == "":
            raise MalformedResponse("Task payload has no id.")

        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            raise MalformedResponse("Task payload has no title.")

        description = raw.get("description")
        if description is not None and not isinstance(description, str):
            raise MalformedResponse("Task description is not a string.")

        raw_items = raw.get("checklist", [])
        if not isinstance(raw_items, list):
            raise MalformedResponse("Task checklist is not a list.")
        items = tuple(ChecklistItem.from_payload(i) for i in raw_items)
        ids_from_server = all(isinstance(i, dict) and (i.get("_id") or i.get("id")) for i in raw_items)

        created_at = parse_timestamp(raw.get("createdAt"))
        updated_at = parse_timestamp(raw.get("updatedAt"))
        if updated_at < created_at:
            raise MalformedResponse("Task updatedAt precedes createdAt.")

        owner = raw.get("userId", raw.get("ownerId"))
        return cls(
            id=str(task_id),
            title=title,
            description=description or None,
            checklist=items,
            owner_id="" if owner is None else str(owner),
            created_at=created_at,
            updated_at=updated_at,
            item_ids_from_server=ids_from_server,
        )

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "_id": self.id,
            "title": self.title,
            "checklist": [i.to_payload() for i in self.checklist],
            "userId": self.owner_id,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    def item_index(self, item_id: str) -> int | None:
        for i, item in enumerate(self.checklist):
            if item.id == item_id:
                return i
        return None

    def inherit_item_ids(self, previous: Task | None) -> Task:
        """
        Carry locally minted item ids over from the cached copy.

        Applies only when the server did not send ids and the checklist texts line up
        one-to-one with the cached task; otherwise the freshly minted ids stay.
        """
        if previous is None or self.item_ids_from_server:
            return self
        if [i.text for i in self.checklist] != [i.text for i in previous.checklist]:
            return self
        items = tuple(replace(new, id=old.id) for new, old in zip(self.checklist, previous.checklist))
        return replace(self, checklist=items)


@dataclass(frozen=True, slots=True)
class TaskCollectionState:
    """Immutable snapshot of the task list; newest action first."""

    tasks: tuple[Task, ...] = ()
    loading: bool = False
    last_error: str | None = None

    def find(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None
