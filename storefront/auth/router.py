"""
Route definitions for the session API.

Endpoints under /api/auth:
- GET   /session          : current session state
- POST  /login            : log in with email and password
- POST  /register         : create an account and log it in
- POST  /logout           : clear the session
- GET   /me               : refresh the user from the token (401 logs out)
- PATCH /profile          : update the current user's profile
- POST  /change-password  : change the current user's password
- POST  /clear-error      : reset the stored error message

Developer-only endpoints, mounted by ``create_app`` only when dev login
is enabled:
- POST  /dev/login-as     : inject an identity without credentials
- POST  /dev/role         : switch the current user's role
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ..errors import AuthError
from .schemas import (
    Credentials,
    LoginAsRequest,
    PasswordChange,
    ProfilePatch,
    RegisterPayload,
    RoleRequest,
    SessionView,
)
from .store import SessionStore


router = APIRouter(prefix="/api/auth", tags=["auth"])
dev_router = APIRouter(prefix="/api/auth/dev", tags=["auth", "dev"])


# AuthError from either backend; OSError when the backing API is
# unreachable; ValueError (pydantic ValidationError, JSONDecodeError) when
# it answers with a body that does not fit the expected schema.
STORE_FAILURES = (AuthError, OSError, ValueError)


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, AuthError):
        return HTTPException(status_code=exc.status or 400, detail=exc.message)
    # Failure of the backing API itself
    return HTTPException(status_code=502, detail=str(exc))


@router.get("/session", response_model=SessionView)
async def read_session(store: SessionStore = Depends(get_session_store)) -> SessionView:
    return store.view()


@router.post("/login", response_model=SessionView)
async def login(credentials: Credentials, store: SessionStore = Depends(get_session_store)):
    try:
        await store.login(credentials)
    except STORE_FAILURES as e:
        raise _http_error(e)
    return store.view()


@router.post("/register", response_model=SessionView)
async def register(payload: RegisterPayload, store: SessionStore = Depends(get_session_store)):
    try:
        await store.register(payload)
    except STORE_FAILURES as e:
        raise _http_error(e)
    return store.view()


@router.post("/logout", response_model=SessionView)
async def logout(store: SessionStore = Depends(get_session_store)) -> SessionView:
    store.logout()
    return store.view()


@router.get("/me", response_model=SessionView)
async def fetch_profile(store: SessionStore = Depends(get_session_store)):
    try:
        await store.fetch_profile()
    except STORE_FAILURES as e:
        raise _http_error(e)
    return store.view()


@router.patch("/profile", response_model=SessionView)
async def update_profile(patch: ProfilePatch, store: SessionStore = Depends(get_session_store)):
    try:
        await store.update_profile(patch)
    except STORE_FAILURES as e:
        raise _http_error(e)
    return store.view()


@router.post("/change-password")
async def change_password(body: PasswordChange, store: SessionStore = Depends(get_session_store)):
    try:
        await store.change_password(body.current, body.next)
    except STORE_FAILURES as e:
        raise _http_error(e)
    return {"status": "ok"}


@router.post("/clear-error", response_model=SessionView)
async def clear_error(store: SessionStore = Depends(get_session_store)) -> SessionView:
    store.clear_error()
    return store.view()


@dev_router.post("/login-as", response_model=SessionView)
async def login_as(body: LoginAsRequest, store: SessionStore = Depends(get_session_store)) -> SessionView:
    try:
        store.login_as(body.user, body.token)
    except AuthError as e:
        raise _http_error(e)
    return store.view()


@dev_router.post("/role", response_model=SessionView)
async def set_role(body: RoleRequest, store: SessionStore = Depends(get_session_store)) -> SessionView:
    store.set_role(body.role)
    return store.view()
