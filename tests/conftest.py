# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from checklist_sync.cli.bootstrap import create_initial_state
from checklist_sync.core.state import AppState
from checklist_sync.session.session_storage import MemoryStorage

from .fakes import BASE_URL, FakeTaskServer


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the stores.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="checklist-test",
        log_level="DEBUG",
        api_base_url=BASE_URL,
        connect_timeout_seconds=1.0,
        read_timeout_seconds=1.0,
        data_dir=tmp_path,
        session_path=tmp_path / "session.json",
        username_min_length=3,
        password_min_length=6,
    )


@pytest.fixture()
def server() -> FakeTaskServer:
    srv = FakeTaskServer()
    srv.add_user("u1", "alice", "secret1", "t1")
    srv.add_user("u2", "bob", "hunter22", "t2")
    return srv


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def state(settings: SimpleNamespace, storage: MemoryStorage, server: FakeTaskServer) -> AppState:
    """
    AppState wired to the fake server and in-memory storage.

    Deletes are auto-confirmed; tests that care about confirmation build their own store.
    """
    return create_initial_state(
        settings=settings,
        storage=storage,
        transport=server.transport(),
        confirmer=lambda task: True,
    )
