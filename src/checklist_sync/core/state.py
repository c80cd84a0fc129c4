# src/checklist_sync/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..api.client import RemoteStoreClient
from ..session.session_store import SessionStore
from ..tasks.task_store import TaskCollectionStore
from .ports import KeyValueStorage


@dataclass
class AppState:
    """
    Explicit session context handed to presentation.

    Presentation reads store state and dispatches intents through these objects only;
    nothing else talks to the network.
    """

    # Settings object (config.Settings or a test double with the same attributes).
    settings: object

    remote: RemoteStoreClient
    storage: KeyValueStorage
    session: SessionStore
    tasks: TaskCollectionStore

    async def aclose(self) -> None:
        await self.remote.aclose()
