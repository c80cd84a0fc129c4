# src/checklist_sync/session/session_storage.py

"""
Durable key-value storage for the session pair (token + user).

Records are plain strings keyed by name. Writes and deletes take several keys at once so
the session store can keep the pair consistent: one file replace per call.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


class MemoryStorage:
    """In-process storage (tests, ephemeral sessions)."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set_many(self, values: Mapping[str, str]) -> None:
        self._data.update(values)

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileStorage:
    """
    JSON file with string values, rewritten atomically (tmp file + os.replace).

    A corrupt or unreadable file reads as empty; it is overwritten on the next write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.warning("Session file %s is unreadable; treating it as empty", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            # Holds a bearer credential: keep the file private on disk.
            os.chmod(self._path, 0o600)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set_many(self, values: Mapping[str, str]) -> None:
        data = self._load()
        data.update(values)
        self._save(data)
        logger.debug("Session storage wrote keys=%s to %s", sorted(values), self._path)

    def delete_many(self, keys: Iterable[str]) -> None:
        data = self._load()
        removed = [k for k in keys if data.pop(k, None) is not None]
        if not removed and not self._path.exists():
            return
        self._save(data)
        logger.debug("Session storage removed keys=%s from %s", removed, self._path)
