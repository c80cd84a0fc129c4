# tests/test_task_store.py

from __future__ import annotations

import asyncio

import httpx
import pytest

from checklist_sync.core.state import AppState
from checklist_sync.tasks.task_models import ChecklistItem, Task, TaskCollectionState
from checklist_sync.tasks.task_store import TaskCollectionStore

from .fakes import FakeTaskServer, wait_until


async def _login(state: AppState, username: str = "alice", password: str = "secret1") -> None:
    assert await state.session.login(username, password)


@pytest.mark.asyncio
async def test_fetch_replaces_collection_in_server_order(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Older", [("a", False)])
    server.add_task("u1", "Newer", [("b", True)])
    server.add_task("u2", "Bob's", [])
    await _login(state)

    assert await state.tasks.fetch_all() is True

    assert [t.title for t in state.tasks.tasks] == ["Newer", "Older"]
    assert state.tasks.state.loading is False
    assert state.tasks.state.last_error is None


@pytest.mark.asyncio
async def test_fetch_failure_keeps_previous_tasks(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Keep me", [("a", False)])
    await _login(state)
    await state.tasks.fetch_all()
    before = state.tasks.tasks

    server.fail_next("GET", "/tasks", status=500, message="Database unavailable")
    assert await state.tasks.fetch_all() is False

    assert state.tasks.tasks == before
    assert state.tasks.state.last_error == "Database unavailable"
    assert state.tasks.state.loading is False


@pytest.mark.asyncio
async def test_fetch_with_malformed_task_changes_nothing(state: AppState, server: FakeTaskServer) -> None:
    await _login(state)
    server.add_task("u1", "Fine", [])
    bad = server.add_task("u1", "Broken", [])
    bad["createdAt"] = "yesterday"

    assert await state.tasks.fetch_all() is False
    assert state.tasks.tasks == ()
    assert state.tasks.state.last_error is not None


@pytest.mark.asyncio
async def test_intents_require_a_session(state: AppState, server: FakeTaskServer) -> None:
    assert await state.tasks.fetch_all() is False
    assert state.tasks.state.last_error == "You are not logged in."
    assert server.requests == []


@pytest.mark.asyncio
async def test_create_prepends_and_filters_blank_items(state: AppState, server: FakeTaskServer) -> None:
    await _login(state)

    created = await state.tasks.create("Trip", "  pack bags  ", ["passport", "   ", "", "tickets"])

    assert created is not None
    assert created.id == "task1"
    assert [i.text for i in created.checklist] == ["passport", "tickets"]
    assert created.description == "pack bags"
    sent = server.requests[-1].body
    assert [i["text"] for i in sent["checklist"]] == ["passport", "tickets"]
    assert all(i["completed"] is False for i in sent["checklist"])
    assert state.tasks.tasks == (created,)


@pytest.mark.asyncio
async def test_create_omits_empty_description(state: AppState, server: FakeTaskServer) -> None:
    await _login(state)

    await state.tasks.create("No description", "   ", [])

    assert "description" not in server.requests[-1].body


@pytest.mark.asyncio
async def test_create_keeps_minted_item_ids(state: AppState) -> None:
    await _login(state)
    items = [ChecklistItem(text="one"), ChecklistItem(text="two")]

    created = await state.tasks.create("Ids", None, items)

    assert created is not None
    assert [i.id for i in created.checklist] == [i.id for i in items]


@pytest.mark.asyncio
async def test_create_ordering_is_newest_completed_first(state: AppState) -> None:
    await _login(state)
    await state.tasks.fetch_all()

    a = await state.tasks.create("A", None, ["x"])
    b = await state.tasks.create("B", None, ["y"])

    assert [t.title for t in state.tasks.tasks] == ["B", "A"]
    assert a is not None and b is not None


@pytest.mark.asyncio
async def test_create_order_follows_completion_not_issue(state: AppState, server: FakeTaskServer) -> None:
    await _login(state)
    release_a = server.hold(lambda method, path, body: method == "POST" and body["title"] == "A")

    first = asyncio.create_task(state.tasks.create("A", None, []))
    await wait_until(lambda: server.in_flight == 1)
    assert await state.tasks.create("B", None, []) is not None
    release_a.set()
    await first

    assert [t.title for t in state.tasks.tasks] == ["A", "B"]


@pytest.mark.asyncio
async def test_create_requires_title(state: AppState, server: FakeTaskServer) -> None:
    await _login(state)
    requests_before = len(server.requests)

    assert await state.tasks.create("   ", None, ["x"]) is None

    assert state.tasks.state.last_error == "Please input a task title!"
    assert len(server.requests) == requests_before


@pytest.mark.asyncio
async def test_create_failure_adds_nothing(state: AppState, server: FakeTaskServer) -> None:
    await _login(state)
    server.fail_next("POST", "/tasks", exc=httpx.ConnectError)

    assert await state.tasks.create("Lost", None, ["x"]) is None

    assert state.tasks.tasks == ()
    assert state.tasks.state.last_error is not None


@pytest.mark.asyncio
async def test_toggle_applies_server_task(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Chores", [("dishes", False), ("laundry", False)])
    await _login(state)
    await state.tasks.fetch_all()

    updated = await state.tasks.toggle_item("task1", 1, True)

    assert updated is not None
    assert [i.completed for i in updated.checklist] == [False, True]
    assert state.tasks.get("task1") == updated
    assert server.requests[-1].path == "/tasks/task1/checklist/1"
    assert server.requests[-1].body == {"completed": True}


@pytest.mark.asyncio
async def test_toggle_twice_is_idempotent(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Chores", [("dishes", False)])
    await _login(state)
    await state.tasks.fetch_all()

    first = await state.tasks.toggle_item("task1", 0, True)
    second = await state.tasks.toggle_item("task1", 0, True)

    assert first is not None and second is not None
    assert second.checklist[0].completed is True
    assert second == first
    assert second.to_payload() == first.to_payload()


@pytest.mark.asyncio
async def test_toggle_failure_leaves_item_unchanged(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Chores", [("dishes", False)])
    await _login(state)
    await state.tasks.fetch_all()
    before = state.tasks.tasks

    server.fail_next("PATCH", "/tasks/task1/checklist/0", status=500, message="boom")
    assert await state.tasks.toggle_item("task1", 0, True) is None

    assert state.tasks.tasks == before
    assert state.tasks.state.last_error == "boom"


@pytest.mark.asyncio
async def test_toggle_out_of_range_is_not_sent(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Chores", [("dishes", False)])
    await _login(state)
    await state.tasks.fetch_all()
    sent = len(server.requests)

    assert await state.tasks.toggle_item("task1", 3, True) is None
    assert len(server.requests) == sent


@pytest.mark.asyncio
async def test_toggle_by_id_resolves_current_position(state: AppState, server: FakeTaskServer) -> None:
    server.item_ids = True
    server.add_task("u1", "Chores", [("dishes", False), ("laundry", False)])
    await _login(state)
    await state.tasks.fetch_all()
    laundry = state.tasks.get("task1").checklist[1]

    # Reorder on the server, then refresh the cached copy.
    task = server.task_by_id("task1")
    task["checklist"].reverse()
    await state.tasks.refresh("task1")

    updated = await state.tasks.toggle_item_by_id("task1", laundry.id, True)

    assert updated is not None
    assert server.requests[-1].path == "/tasks/task1/checklist/0"
    done = [i for i in updated.checklist if i.completed]
    assert [i.id for i in done] == [laundry.id]


@pytest.mark.asyncio
async def test_toggle_by_unknown_id_is_rejected(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Chores", [("dishes", False)])
    await _login(state)
    await state.tasks.fetch_all()

    assert await state.tasks.toggle_item_by_id("task1", "nope", True) is None
    assert state.tasks.state.last_error == "Checklist item not found."


@pytest.mark.asyncio
async def test_toggles_on_one_task_apply_in_issue_order(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Chores", [("dishes", False)])
    await _login(state)
    await state.tasks.fetch_all()
    release_first = server.hold(lambda method, path, body: method == "PATCH" and body["completed"] is True)

    first = asyncio.create_task(state.tasks.toggle_item("task1", 0, True))
    await wait_until(lambda: server.in_flight == 1)
    second = asyncio.create_task(state.tasks.toggle_item("task1", 0, False))
    await asyncio.sleep(0.01)

    # The second toggle waits for the first instead of racing it.
    assert sum(1 for r in server.requests if r.method == "PATCH") == 1

    release_first.set()
    await asyncio.gather(first, second)

    assert state.tasks.get("task1").checklist[0].completed is False
    assert server.task_by_id("task1")["checklist"][0]["completed"] is False


@pytest.mark.asyncio
async def test_item_ids_survive_authoritative_replacement(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Chores", [("dishes", False), ("laundry", False)])
    await _login(state)
    await state.tasks.fetch_all()
    ids = [i.id for i in state.tasks.get("task1").checklist]

    await state.tasks.toggle_item("task1", 0, True)
    await state.tasks.fetch_all()

    assert [i.id for i in state.tasks.get("task1").checklist] == ids


@pytest.mark.asyncio
async def test_update_task_replaces_title(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Old", [])
    await _login(state)
    await state.tasks.fetch_all()

    updated = await state.tasks.update_task("task1", title="  New  ")

    assert updated is not None and updated.title == "New"
    assert server.requests[-1].method == "PUT"
    assert state.tasks.get("task1").title == "New"


@pytest.mark.asyncio
async def test_remove_on_success_drops_task(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "One", [])
    server.add_task("u1", "Two", [])
    await _login(state)
    await state.tasks.fetch_all()

    assert await state.tasks.remove("task1") is True

    assert [t.id for t in state.tasks.tasks] == ["task2"]
    assert server.requests[-1].method == "DELETE"


@pytest.mark.asyncio
async def test_remove_failure_leaves_collection_untouched(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "One", [])
    server.add_task("u1", "Two", [])
    await _login(state)
    await state.tasks.fetch_all()
    before = state.tasks.tasks

    server.fail_next("DELETE", "/tasks/task1", status=500, message="nope")
    assert await state.tasks.remove("task1") is False

    assert state.tasks.tasks == before
    assert state.tasks.state.last_error == "nope"


@pytest.mark.asyncio
async def test_remove_needs_confirmation(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "One", [])
    await _login(state)
    asked: list[Task] = []

    async def decline(task: Task) -> bool:
        asked.append(task)
        return False

    unconfirmed = TaskCollectionStore(state.remote, state.session)
    declining = TaskCollectionStore(state.remote, state.session, confirmer=decline)
    await unconfirmed.fetch_all()
    await declining.fetch_all()
    sent = len(server.requests)

    assert await unconfirmed.remove("task1") is False
    assert unconfirmed.state.last_error == "Deletion must be confirmed."
    assert await declining.remove("task1") is False
    assert declining.state.last_error is None
    assert [t.id for t in asked] == ["task1"]
    assert len(server.requests) == sent

    assert await unconfirmed.remove("task1", confirmed=True) is True


@pytest.mark.asyncio
async def test_completion_after_logout_is_discarded(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Mine", [("a", False)])
    await _login(state)
    release = server.hold(lambda method, path, body: method == "GET" and path == "/tasks")

    pending = asyncio.create_task(state.tasks.fetch_all())
    await wait_until(lambda: server.in_flight == 1)
    state.session.logout()
    release.set()

    assert await pending is False
    assert state.tasks.state == TaskCollectionState()


@pytest.mark.asyncio
async def test_identity_change_clears_cached_tasks(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Alice's", [])
    await _login(state)
    await state.tasks.fetch_all()
    assert len(state.tasks.tasks) == 1

    await _login(state, "bob", "hunter22")

    assert state.tasks.tasks == ()
    await state.tasks.fetch_all()
    assert state.tasks.tasks == ()


@pytest.mark.asyncio
async def test_listeners_see_each_snapshot(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "One", [])
    await _login(state)
    seen: list[TaskCollectionState] = []
    state.tasks.subscribe(seen.append)

    await state.tasks.fetch_all()

    assert [s.loading for s in seen] == [True, False]
    assert len(seen[-1].tasks) == 1


@pytest.mark.asyncio
async def test_same_user_relogin_keeps_cache(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Mine", [("a", False)])
    await _login(state)
    await state.tasks.fetch_all()
    before = state.tasks.tasks

    await _login(state)

    assert state.tasks.tasks == before


@pytest.mark.asyncio
async def test_toggle_in_flight_survives_same_user_relogin(state: AppState, server: FakeTaskServer) -> None:
    server.add_task("u1", "Mine", [("a", False)])
    await _login(state)
    await state.tasks.fetch_all()
    release = server.hold(lambda method, path, body: method == "PATCH")

    pending = asyncio.create_task(state.tasks.toggle_item("task1", 0, True))
    await wait_until(lambda: server.in_flight == 1)
    await _login(state)
    release.set()

    updated = await pending
    assert updated is not None and updated.checklist[0].completed is True
    assert state.tasks.get("task1") == updated


@pytest.mark.asyncio
async def test_mutation_queued_behind_remove_sees_the_deletion(
    state: AppState, server: FakeTaskServer
) -> None:
    server.add_task("u1", "Doomed", [("a", False)])
    await _login(state)
    await state.tasks.fetch_all()
    item_id = state.tasks.tasks[0].checklist[0].id
    lock = state.tasks._lock_for("task1")
    release = server.hold(lambda method, path, body: method == "DELETE")

    removing = asyncio.create_task(state.tasks.remove("task1", confirmed=True))
    await wait_until(lambda: server.in_flight == 1)
    queued = asyncio.create_task(state.tasks.toggle_item_by_id("task1", item_id, True))
    await asyncio.sleep(0)
    release.set()

    assert await removing is True
    assert await queued is None
    assert state.tasks.state.last_error == "Task not found."
    assert not [r for r in server.requests if r.method == "PATCH"]
    assert state.tasks._lock_for("task1") is lock
