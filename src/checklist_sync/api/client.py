# src/checklist_sync/api/client.py

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

import httpx

from ..errors import MalformedResponse, ServerRejection, TransportError

logger = logging.getLogger(__name__)

CredentialProvider = Callable[[], str | None]


def _make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=connect_s,
        read=read_s,
        write=10.0,
        pool=connect_s,
    )


def _server_message(resp: httpx.Response) -> str | None:
    """
    Best-effort extraction of a human message from an error body.

    Servers answer with {"message": ...} or {"error": ...}; plain-text bodies are used as-is.
    """
    text = resp.text.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return text[:200]
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            val = data.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    return None


class RemoteStoreClient:
    """
    Typed JSON-over-HTTP wrapper for the task server.

    - Attaches "Authorization: Bearer <token>" when the credential provider returns one.
    - Encodes request bodies as JSON and decodes response bodies from JSON.
    - Raises TransportError / ServerRejection / MalformedResponse; never touches store state.

    No automatic retries: retry is a user-initiated re-dispatch.
    """

    def __init__(
        self,
        base_url: str,
        *,
        credential_provider: CredentialProvider | None = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise RuntimeError("API base URL is not set. Set CHECKLIST_API_BASE_URL in your .env.")

        self._base_url = base_url.strip().rstrip("/")
        self._credential_provider = credential_provider
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=_make_timeout(connect_timeout, read_timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_credential_provider(self, provider: CredentialProvider | None) -> None:
        self._credential_provider = provider

    def _auth_headers(self) -> dict[str, str]:
        if self._credential_provider is None:
            return {}
        token = self._credential_provider()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def request(self, method: str, path: str, body: Any | None = None) -> Any:
        """
        Send one request and return the decoded JSON body (None for an empty body).
        """
        method = method.upper()
        url = path if path.startswith("/") else f"/{path}"

        headers = self._auth_headers()
        kwargs: dict[str, Any] = {"headers": headers}
        if body is not None:
            kwargs["json"] = body

        logger.debug("HTTP %s %s (auth=%s)", method, url, "yes" if headers else "no")

        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.info("HTTP %s %s timed out: %s", method, url, e)
            raise TransportError("Request timed out. Try again later.") from e
        except httpx.HTTPError as e:
            logger.info("HTTP %s %s transport error: %s", method, url, e)
            raise TransportError("Server is unreachable. Check your connection.") from e

        if not resp.is_success:
            message = _server_message(resp)
            logger.info("HTTP %s %s rejected: %d %s", method, url, resp.status_code, message or "")
            raise ServerRejection(resp.status_code, message)

        if resp.status_code == 204 or not resp.content.strip():
            return None

        try:
            return resp.json()
        except ValueError as e:
            logger.warning("HTTP %s %s returned a non-JSON body (%d bytes)", method, url, len(resp.content))
            raise MalformedResponse("Server returned an unreadable response.") from e

    async def aclose(self) -> None:
        await self._client.aclose()
