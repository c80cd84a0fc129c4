# src/checklist_sync/core/observable.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")


class Observable(Generic[S]):
    """
    Holder of one immutable state snapshot plus its subscribers.

    Stores call _set_state() with a new snapshot; every listener is then called with it.
    A crashing listener is logged and skipped so one bad view cannot break a store.
    """

    def __init__(self, initial: S) -> None:
        self._state = initial
        self._listeners: list[Callable[[S], None]] = []

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: Callable[[S], None]) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: S) -> None:
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("State listener %r failed", listener)
