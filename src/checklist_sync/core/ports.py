# src/checklist_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the stores.

The stores depend on Protocols instead of concrete implementations.
This keeps storage/HTTP/presentation swappable and makes testing easier.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Awaitable, Callable, Protocol


class KeyValueStorage(Protocol):
    """Durable string records (session token + user)."""

    def get(self, key: str) -> str | None: ...
    def set_many(self, values: Mapping[str, str]) -> None: ...
    def delete_many(self, keys: Iterable[str]) -> None: ...


class RemoteStore(Protocol):
    """What the API wrappers need from the HTTP layer."""

    def request(self, method: str, path: str, body: Any | None = None) -> Awaitable[Any]: ...


# Presentation-side confirmation for destructive intents. Receives the task about to be
# deleted; may answer synchronously or asynchronously (e.g. an input prompt on a thread).
DeleteConfirmer = Callable[[Any], "bool | Awaitable[bool]"]
