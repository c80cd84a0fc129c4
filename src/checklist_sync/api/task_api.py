# src/checklist_sync/api/task_api.py

from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from ..core.ports import RemoteStore
from ..errors import MalformedResponse
from ..tasks.task_models import ChecklistItem, Task


def _task_path(task_id: str) -> str:
    return f"/tasks/{quote(str(task_id), safe='')}"


async def get_tasks(remote: RemoteStore) -> list[Task]:
    """GET /tasks -> Task[] (server order preserved)"""
    data = await remote.request("GET", "/tasks")
    if not isinstance(data, list):
        raise MalformedResponse("Task list payload is not a list.")
    return [Task.from_payload(t) for t in data]


async def get_task(remote: RemoteStore, task_id: str) -> Task:
    data = await remote.request("GET", _task_path(task_id))
    return Task.from_payload(data)


async def create_task(
    remote: RemoteStore,
    *,
    title: str,
    description: str | None,
    checklist: Sequence[ChecklistItem],
) -> Task:
    body: dict[str, Any] = {
        "title": title,
        "checklist": [i.to_payload() for i in checklist],
    }
    if description is not None:
        body["description"] = description
    data = await remote.request("POST", "/tasks", body)
    return Task.from_payload(data)


async def update_task(remote: RemoteStore, task_id: str, fields: dict[str, Any]) -> Task:
    data = await remote.request("PUT", _task_path(task_id), fields)
    return Task.from_payload(data)


async def update_checklist_item(
    remote: RemoteStore, task_id: str, item_index: int, completed: bool
) -> Task:
    """PATCH /tasks/{id}/checklist/{index} -> full updated Task"""
    data = await remote.request(
        "PATCH",
        f"{_task_path(task_id)}/checklist/{int(item_index)}",
        {"completed": bool(completed)},
    )
    return Task.from_payload(data)


async def delete_task(remote: RemoteStore, task_id: str) -> None:
    await remote.request("DELETE", _task_path(task_id))
