"""
Authentication backends for the session store.

Two implementations share one async interface:

* ``MockAuthBackend`` serves every operation from an in-memory list of
  accounts, after an artificial delay that stands in for network
  latency. It is used whenever no API base URL is configured.

* ``HttpAuthBackend`` talks to a real backing API over JSON/HTTP using
  ``urllib``. The blocking request runs in a worker thread so the event
  loop keeps serving other requests while it waits.

``build_auth_backend()`` picks one from the settings. The choice is
made once, when the store is built.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
import uuid
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..errors import AuthError
from .schemas import (
    AuthResponse,
    AuthUser,
    Credentials,
    ProfilePatch,
    RegisterPayload,
)


logger = logging.getLogger(__name__)

MOCK_TOKEN_PREFIX = "mock-token-"

DEFAULT_ACCOUNTS: List[Dict[str, Any]] = [
    {"id": "1", "email": "admin@example.com", "name": "Admin", "role": "admin", "password": "admin123"},
    {"id": "2", "email": "user@example.com", "name": "Demo User", "role": "user", "password": "user12345"},
]


class MockAuthBackend:
    """In-memory accounts with simulated latency.

    Accounts are plain dicts holding the public user fields plus a
    ``password`` key that never leaves this class.
    """

    def __init__(self, accounts: Optional[List[Dict[str, Any]]] = None, latency: float = 0.3):
        source = DEFAULT_ACCOUNTS if accounts is None else accounts
        self._accounts: List[Dict[str, Any]] = [dict(a) for a in source]
        self.latency = latency

    async def _delay(self, factor: float = 1.0) -> None:
        await asyncio.sleep(self.latency * factor)

    @staticmethod
    def _public(account: Dict[str, Any]) -> AuthUser:
        fields = {k: v for k, v in account.items() if k != "password"}
        return AuthUser.model_validate(fields)

    def _find_by_token(self, token: Optional[str]) -> Dict[str, Any]:
        if token and token.startswith(MOCK_TOKEN_PREFIX):
            account_id = token[len(MOCK_TOKEN_PREFIX):]
            for account in self._accounts:
                if account.get("id") == account_id:
                    return account
        raise AuthError("Unauthorized", status=401)

    async def login(self, credentials: Credentials) -> AuthResponse:
        await self._delay()
        for account in self._accounts:
            if account["email"] == credentials.email and account["password"] == credentials.password:
                user = self._public(account)
                return AuthResponse(token=f"{MOCK_TOKEN_PREFIX}{user.id or 'x'}", user=user)
        raise AuthError("Invalid email or password", status=401)

    async def register(self, payload: RegisterPayload) -> AuthResponse:
        await self._delay(4 / 3)
        if any(a["email"] == payload.email for a in self._accounts):
            raise AuthError("Email already in use", status=409)
        account = {
            "id": uuid.uuid4().hex[:12],
            "email": payload.email,
            "name": payload.name or payload.email.split("@")[0],
            "role": "user",
            "password": payload.password,
        }
        self._accounts.append(account)
        return AuthResponse(token=f"{MOCK_TOKEN_PREFIX}{account['id']}", user=self._public(account))

    async def fetch_profile(self, token: Optional[str]) -> AuthUser:
        await self._delay(2 / 3)
        return self._public(self._find_by_token(token))

    async def update_profile(self, token: Optional[str], patch: ProfilePatch) -> AuthUser:
        await self._delay(5 / 6)
        account = self._find_by_token(token)
        changes = patch.model_dump(exclude_unset=True)
        email = changes.get("email")
        if email and any(a["email"] == email and a is not account for a in self._accounts):
            raise AuthError("Email already in use", status=409)
        merged = {**account, **changes}
        user = self._public(merged)
        # written back only once the merged account validates
        account.update(changes)
        return user

    async def change_password(self, token: Optional[str], current: str, next: str) -> None:
        await self._delay(5 / 6)
        account = self._find_by_token(token)
        if account["password"] != current:
            raise AuthError("Current password is incorrect", status=400)
        account["password"] = next


class HttpAuthBackend:
    """Client for a backing auth API.

    Every endpoint speaks JSON. Authenticated calls send
    ``authorization: Bearer <token>``. Non-2xx responses are turned into
    ``AuthError`` using the ``message`` field of the body when there is
    one. A 204 response yields ``None``. Connection failures are not
    wrapped and reach the caller as they are.
    """

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Optional[Any]:
        url = f"{self.base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            headers["authorization"] = f"Bearer {token}"
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                if response.status == 204:
                    return None
                raw = response.read().decode("utf-8", errors="ignore")
                return json.loads(raw) if raw else None
        except urllib.error.HTTPError as exc:
            message = f"Request failed ({exc.code})"
            try:
                payload = json.loads(exc.read().decode("utf-8", errors="ignore"))
                if isinstance(payload, dict) and payload.get("message"):
                    message = str(payload["message"])
            except ValueError:
                pass
            logger.warning("%s %s returned status %s", method, url, exc.code)
            raise AuthError(message, status=exc.code) from exc

    async def _call(self, method: str, path: str, **kwargs: Any) -> Optional[Any]:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    async def login(self, credentials: Credentials) -> AuthResponse:
        data = await self._call("POST", "/auth/login", body=credentials.model_dump())
        return AuthResponse.model_validate(data)

    async def register(self, payload: RegisterPayload) -> AuthResponse:
        data = await self._call("POST", "/auth/register", body=payload.model_dump(exclude_none=True))
        return AuthResponse.model_validate(data)

    async def fetch_profile(self, token: Optional[str]) -> AuthUser:
        data = await self._call("GET", "/auth/me", token=token)
        return AuthUser.model_validate(data)

    async def update_profile(self, token: Optional[str], patch: ProfilePatch) -> AuthUser:
        body = patch.model_dump(exclude_unset=True, by_alias=True)
        data = await self._call("PATCH", "/auth/profile", body=body, token=token)
        return AuthUser.model_validate(data)

    async def change_password(self, token: Optional[str], current: str, next: str) -> None:
        await self._call(
            "POST",
            "/auth/change-password",
            body={"current": current, "next": next},
            token=token,
        )


def build_auth_backend(settings: Settings):
    """Return the HTTP backend when an API base is configured, else the mock."""
    if settings.use_mock:
        logger.info("No API base configured, serving auth from the in-memory mock")
        return MockAuthBackend(latency=settings.mock_latency)
    logger.info("Serving auth from %s", settings.api_base)
    return HttpAuthBackend(settings.api_base)
