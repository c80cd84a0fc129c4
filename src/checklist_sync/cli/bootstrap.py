# src/checklist_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the remote store client, durable session storage and both stores into AppState.
"""

from __future__ import annotations

import logging

import httpx

from ..api.client import RemoteStoreClient
from ..config import get_settings
from ..core.ports import DeleteConfirmer, KeyValueStorage
from ..core.state import AppState
from ..session.session_storage import JsonFileStorage
from ..session.session_store import SessionStore
from ..tasks.task_store import TaskCollectionStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    storage: KeyValueStorage | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    confirmer: DeleteConfirmer | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings/storage/transport injectable makes the app easy to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if storage is None:
        _ensure_local_dirs(settings)
        storage = JsonFileStorage(settings.session_path)

    remote = RemoteStoreClient(
        settings.api_base_url,
        connect_timeout=float(getattr(settings, "connect_timeout_seconds", 5.0)),
        read_timeout=float(getattr(settings, "read_timeout_seconds", 15.0)),
        transport=transport,
    )
    session = SessionStore(
        remote,
        storage,
        username_min_length=int(getattr(settings, "username_min_length", 3)),
        password_min_length=int(getattr(settings, "password_min_length", 6)),
    )
    # The credential always comes from the session store, never from a global.
    remote.set_credential_provider(session.credential)

    tasks = TaskCollectionStore(remote, session, confirmer=confirmer)

    logger.info(
        "State ready api=%s session=%s",
        remote.base_url,
        session.state.phase.value,
    )
    return AppState(
        settings=settings,
        remote=remote,
        storage=storage,
        session=session,
        tasks=tasks,
    )
