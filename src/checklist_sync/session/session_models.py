# src/checklist_sync/session/session_models.py

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..errors import MalformedResponse


class SessionPhase(StrEnum):
    """
    Session lifecycle.

    Notes:
    - FAILED is shown to the user as anonymous with last_error set.
    """

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class User:
    id: str
    username: str

    @classmethod
    def from_payload(cls, raw: Any) -> User:
        if not isinstance(raw, dict):
            raise MalformedResponse("User payload is not an object.")
        uid = raw.get("id", raw.get("_id"))
        username = raw.get("username")
        if uid is None or str(uid).strip() == "":
            raise MalformedResponse("User payload has no id.")
        if not isinstance(username, str) or not username.strip():
            raise MalformedResponse("User payload has no username.")
        return cls(id=str(uid), username=username)

    def to_payload(self) -> dict[str, str]:
        return {"id": self.id, "username": self.username}

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class AuthResult:
    user: User
    token: str

    @classmethod
    def from_payload(cls, raw: Any) -> AuthResult:
        if not isinstance(raw, dict):
            raise MalformedResponse("Auth payload is not an object.")
        token = raw.get("token")
        if not isinstance(token, str) or not token.strip():
            raise MalformedResponse("Auth payload has no token.")
        return cls(user=User.from_payload(raw.get("user")), token=token)


@dataclass(frozen=True, slots=True)
class SessionState:
    """Immutable snapshot handed to presentation; the store replaces it on every change."""

    phase: SessionPhase = SessionPhase.ANONYMOUS
    user: User | None = None
    token: str | None = None
    loading: bool = False
    last_error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.token is not None
