"""
Process-wide session store.

``SessionStore`` holds the current user, bearer token, a loading flag
and the last error message. It is created once by the composition root
and shared by every request; all changes go through its methods.

``is_admin`` is computed from ``user.role`` on every read, so it cannot
drift from the role. State changes are made by ``_set()``, which swaps
the whole immutable ``SessionState`` in one assignment under a lock,
then hands the persisted subset to a single writer thread so file I/O
never blocks the event loop. Writes are applied in the order they were
queued; ``flush()`` waits for them.

Operations suspend only while awaiting the backend; there is no
cancellation, so two overlapping logins both write their result and the
one that finishes last wins.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..config import Settings
from ..errors import AuthError
from ..models import Role
from .backends import build_auth_backend
from .persistence import load_session, save_session
from .schemas import (
    AuthUser,
    Credentials,
    ProfilePatch,
    RegisterPayload,
    SessionView,
)


logger = logging.getLogger(__name__)


class SessionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: Optional[AuthUser] = None
    token: Optional[str] = None
    loading: bool = False
    error: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == "admin"


def normalize_user(user: Union[AuthUser, Dict[str, Any]]) -> AuthUser:
    """Return a copy of ``user`` whose role is never missing."""
    if isinstance(user, AuthUser):
        data = user.model_dump()
    else:
        data = dict(user)
    if data.get("role") is None:
        data["role"] = "user"
    return AuthUser.model_validate(data)


def _log_write_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Failed to persist session snapshot: %s", exc)


def _message(exc: Exception, fallback: str) -> str:
    return getattr(exc, "message", None) or str(exc) or fallback


class SessionStore:
    def __init__(self, backend, storage=None, allow_dev_login: bool = False):
        self._backend = backend
        self._storage = storage
        self.allow_dev_login = allow_dev_login

        self._lock = threading.RLock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-writer")
        self._pending: Optional[Future] = None

        persisted = load_session(storage)
        self._state = SessionState(user=persisted.user, token=persisted.token)

    @classmethod
    def from_settings(cls, settings: Settings, storage=None) -> "SessionStore":
        return cls(
            build_auth_backend(settings),
            storage=storage,
            allow_dev_login=settings.dev_auth,
        )

    # ------------------------------------------------------------------
    # Reads

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> Optional[AuthUser]:
        return self._state.user

    @property
    def token(self) -> Optional[str]:
        return self._state.token

    @property
    def is_admin(self) -> bool:
        return self._state.is_admin

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    def view(self) -> SessionView:
        s = self._state
        return SessionView(
            user=s.user,
            token=s.token,
            is_admin=s.is_admin,
            loading=s.loading,
            error=s.error,
        )

    # ------------------------------------------------------------------
    # Single writer

    def _set(self, **changes: Any) -> None:
        with self._lock:
            previous = self._state
            current = previous.model_copy(update=changes)
            self._state = current
            if current.user != previous.user or current.token != previous.token:
                self._persist(current.user, current.token)

    def _persist(self, user: Optional[AuthUser], token: Optional[str]) -> None:
        # called with the lock held, so writes are queued in state order
        if self._storage is None:
            return
        future = self._writer.submit(save_session, self._storage, user, token)
        future.add_done_callback(_log_write_failure)
        self._pending = future

    def flush(self) -> None:
        """Block until every queued snapshot write has finished."""
        with self._lock:
            pending = self._pending
        if pending is not None:
            pending.result()

    def close(self) -> None:
        self.flush()
        self._writer.shutdown(wait=True)

    def _fail(self, exc: Exception, fallback: str) -> None:
        message = _message(exc, fallback)
        logger.warning("%s: %s", fallback, message)
        self._set(loading=False, error=message)

    # ------------------------------------------------------------------
    # Core auth

    async def login(self, credentials: Credentials) -> None:
        self._set(loading=True, error=None)
        try:
            res = await self._backend.login(credentials)
        except Exception as exc:
            self._fail(exc, "Login failed")
            raise
        user = normalize_user(res.user)
        self._set(user=user, token=res.token, loading=False, error=None)
        logger.info("Logged in %s as %s", user.email, user.role)

    async def register(self, payload: RegisterPayload) -> None:
        self._set(loading=True, error=None)
        try:
            res = await self._backend.register(payload)
        except Exception as exc:
            self._fail(exc, "Registration failed")
            raise
        user = normalize_user(res.user)
        self._set(user=user, token=res.token, loading=False, error=None)
        logger.info("Registered and logged in %s", user.email)

    def logout(self) -> None:
        self._set(user=None, token=None, loading=False, error=None)
        logger.info("Logged out")

    # ------------------------------------------------------------------
    # Profile

    async def fetch_profile(self) -> None:
        """Refresh the user from the token. A 401 logs the session out."""
        self._set(loading=True, error=None)
        try:
            user = await self._backend.fetch_profile(self._state.token)
        except Exception as exc:
            self._fail(exc, "Failed to fetch profile")
            if getattr(exc, "status", None) == 401:
                logger.info("Token rejected while refreshing profile, logging out")
                self.logout()
            raise
        self._set(user=normalize_user(user), loading=False)

    async def update_profile(self, patch: ProfilePatch) -> None:
        self._set(loading=True, error=None)
        try:
            user = await self._backend.update_profile(self._state.token, patch)
        except Exception as exc:
            self._fail(exc, "Failed to update profile")
            raise
        self._set(user=normalize_user(user), loading=False)

    async def change_password(self, current: str, next: str) -> None:
        self._set(loading=True, error=None)
        try:
            await self._backend.change_password(self._state.token, current, next)
        except Exception as exc:
            self._fail(exc, "Failed to change password")
            raise
        self._set(loading=False)

    # ------------------------------------------------------------------
    # Role helpers

    def set_role(self, role: Role) -> None:
        """Change the current user's role. No-op when nobody is logged in."""
        with self._lock:
            if self._state.user is None:
                return
            self._set(user=self._state.user.model_copy(update={"role": role}))

    def login_as(self, user: Union[AuthUser, Dict[str, Any]], token: Optional[str] = None) -> None:
        """Inject an identity without checking credentials.

        Only available on stores built with ``allow_dev_login``; the
        application enables it outside production only.
        """
        if not self.allow_dev_login:
            raise AuthError("Developer login is disabled", status=403)
        normalized = normalize_user(user)
        self._set(user=normalized, token=token, loading=False, error=None)
        logger.info("Developer login as %s (%s)", normalized.email, normalized.role)

    def clear_error(self) -> None:
        self._set(error=None)
