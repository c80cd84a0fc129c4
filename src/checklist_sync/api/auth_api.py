# src/checklist_sync/api/auth_api.py

from __future__ import annotations

from ..core.ports import RemoteStore
from ..session.session_models import AuthResult


async def login(remote: RemoteStore, *, username: str, password: str) -> AuthResult:
    """POST /auth/login -> {user, token}"""
    data = await remote.request("POST", "/auth/login", {"username": username, "password": password})
    return AuthResult.from_payload(data)


async def register(remote: RemoteStore, *, username: str, password: str) -> AuthResult:
    """POST /auth/register -> {user, token}"""
    data = await remote.request("POST", "/auth/register", {"username": username, "password": password})
    return AuthResult.from_payload(data)
