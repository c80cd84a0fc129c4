# src/checklist_sync/session/session_store.py

from __future__ import annotations

import json
import logging
from dataclasses import replace

from ..api import auth_api
from ..core.observable import Observable
from ..core.ports import KeyValueStorage, RemoteStore
from ..errors import MalformedResponse, SyncError, ValidationError
from .session_models import AuthResult, SessionPhase, SessionState, User
from .session_storage import TOKEN_KEY, USER_KEY

logger = logging.getLogger(__name__)


def _hydrate(storage: KeyValueStorage) -> SessionState:
    """
    Restore the (token, user) pair from durable storage.

    Both records must be present and the user must decode; anything else starts anonymous.
    Storage is left as found: the next login overwrites the pair, logout clears it.
    """
    try:
        token = storage.get(TOKEN_KEY)
        user_raw = storage.get(USER_KEY)
    except OSError:
        logger.exception("Session storage is unreadable; starting anonymous")
        return SessionState()

    if not token and not user_raw:
        return SessionState()

    if not token or not user_raw:
        logger.warning(
            "Discarding half-written session (token=%s user=%s)",
            "present" if token else "missing",
            "present" if user_raw else "missing",
        )
        return SessionState()

    try:
        user = User.from_payload(json.loads(user_raw))
    except (ValueError, MalformedResponse):
        logger.warning("Discarding stored session: user record is malformed")
        return SessionState()

    logger.info("Session restored for user=%s", user.username)
    return SessionState(phase=SessionPhase.AUTHENTICATED, user=user, token=token)


class SessionStore(Observable[SessionState]):
    """
    Owner of the authenticated identity and its credential.

    State machine:
      anonymous/failed --login|register--> authenticating
      authenticating --success--> authenticated   (pair persisted, last_error cleared)
      authenticating --failure--> failed          (nothing persisted; previous identity kept if any)
      authenticated --logout--> anonymous         (pair cleared in memory and on disk, local only)

    Intents never raise SyncError: they return False and record last_error instead.
    """

    def __init__(
        self,
        remote: RemoteStore,
        storage: KeyValueStorage,
        *,
        username_min_length: int = 3,
        password_min_length: int = 6,
    ) -> None:
        super().__init__(_hydrate(storage))
        self._remote = remote
        self._storage = storage
        self._username_min_length = int(username_min_length)
        self._password_min_length = int(password_min_length)

        # Bumped on every login/register start and on logout; stale completions are dropped.
        self._attempt = 0
        # Bumped only when the identity itself changes (logout, or a different user id).
        self._generation = 0

    # ---- read accessors ----

    @property
    def is_authenticated(self) -> bool:
        return self.state.is_authenticated

    @property
    def user(self) -> User | None:
        return self.state.user

    def credential(self) -> str | None:
        """Credential provider for the remote store client."""
        return self.state.token

    def ticket(self) -> int:
        """Opaque marker of the current identity, captured before a request is issued."""
        return self._generation

    def is_current(self, ticket: int) -> bool:
        """True if still authenticated as the identity the ticket was taken for."""
        return ticket == self._generation and self.state.is_authenticated

    # ---- intents ----

    async def login(self, username: str, password: str) -> bool:
        return await self._authenticate("login", username, password)

    async def register(self, username: str, password: str) -> bool:
        return await self._authenticate("register", username, password)

    def logout(self) -> None:
        prev = self.state.user
        self._attempt += 1
        self._generation += 1
        try:
            self._storage.delete_many([TOKEN_KEY, USER_KEY])
        except OSError:
            logger.exception("Failed to clear stored session")
        self._set_state(SessionState())
        logger.info("Logged out user=%s", prev.username if prev else None)

    def clear_error(self) -> None:
        if self.state.last_error is None:
            return
        phase = self.state.phase
        if phase == SessionPhase.FAILED:
            phase = SessionPhase.ANONYMOUS
        self._set_state(replace(self.state, phase=phase, last_error=None))

    # ---- internals ----

    def _validate(self, kind: str, username: str, password: str) -> str:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Please input your username!")
        if not password:
            raise ValidationError("Please input your password!")
        if kind == "register":
            if len(username) < self._username_min_length:
                raise ValidationError(
                    f"Username must be at least {self._username_min_length} characters!"
                )
            if len(password) < self._password_min_length:
                raise ValidationError(
                    f"Password must be at least {self._password_min_length} characters!"
                )
        return username

    def _fail(self, message: str) -> None:
        st = self.state
        if st.is_authenticated:
            # A failed re-login leaves the existing session alone.
            self._set_state(
                replace(st, phase=SessionPhase.AUTHENTICATED, loading=False, last_error=message)
            )
        else:
            self._set_state(SessionState(phase=SessionPhase.FAILED, last_error=message))

    async def _authenticate(self, kind: str, username: str, password: str) -> bool:
        try:
            username = self._validate(kind, username, password)
        except ValidationError as e:
            logger.info("%s rejected by client-side validation: %s", kind, e)
            if self.state.loading:
                # An earlier attempt is still in flight; its completion decides the phase.
                self._set_state(replace(self.state, last_error=str(e)))
            else:
                self._fail(str(e))
            return False

        self._attempt += 1
        attempt = self._attempt
        self._set_state(
            replace(self.state, phase=SessionPhase.AUTHENTICATING, loading=True, last_error=None)
        )
        logger.debug("%s started for user=%s", kind, username)

        call = auth_api.login if kind == "login" else auth_api.register
        try:
            result: AuthResult = await call(self._remote, username=username, password=password)
        except SyncError as e:
            if attempt != self._attempt:
                logger.info("Discarding stale %s failure for user=%s", kind, username)
                return False
            fallback = "Login failed" if kind == "login" else "Registration failed"
            message = str(e) or fallback
            logger.warning("%s failed for user=%s: %s", kind, username, message)
            self._fail(message)
            return False

        if attempt != self._attempt:
            logger.info("Discarding stale %s completion for user=%s", kind, username)
            return False

        try:
            self._storage.set_many({TOKEN_KEY: result.token, USER_KEY: result.user.to_json()})
        except OSError:
            logger.exception("Failed to persist session for user=%s", result.user.username)

        prev = self.state.user
        if prev is None or prev.id != result.user.id:
            self._generation += 1
        self._set_state(
            SessionState(
                phase=SessionPhase.AUTHENTICATED,
                user=result.user,
                token=result.token,
                loading=False,
                last_error=None,
            )
        )
        logger.info("%s succeeded for user=%s", kind, result.user.username)
        return True
