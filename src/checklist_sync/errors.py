# src/checklist_sync/errors.py

"""
Failure taxonomy shared by the HTTP layer and the stores.

Only the remote store client and the API wrappers raise these. Stores catch
SyncError at their public boundary and record str(err) as last_error.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every recoverable failure of an intent."""


class ValidationError(SyncError):
    """A client-side guard failed; the request was never sent."""


class TransportError(SyncError):
    """Network unreachable, connection reset or timeout."""


class ServerRejection(SyncError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = int(status_code)
        self.message = (message or "").strip() or f"Request failed with status {self.status_code}"
        super().__init__(self.message)


class MalformedResponse(SyncError):
    """A success response whose body could not be decoded into the expected shape."""
