"""
Pydantic models shared by the session store, its backends and routes.

``AuthUser`` normalizes a missing or null ``role`` to ``"user"`` as soon
as it is validated, so every path that builds a user from outside data
(backend responses, persisted snapshots, dev logins) gets the default
before anything derives ``is_admin`` from it.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models import Role


class AuthUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    email: str
    name: Optional[str] = None
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")
    role: Role = "user"

    @field_validator("role", mode="before")
    @classmethod
    def _default_role(cls, value: Any) -> Any:
        return "user" if value is None else value


class Credentials(BaseModel):
    email: str
    password: str


class RegisterPayload(BaseModel):
    email: str
    password: str
    name: Optional[str] = None


class AuthResponse(BaseModel):
    token: str
    user: AuthUser


class ProfilePatch(BaseModel):
    """Fields a signed-in user may change on their own profile.

    ``role`` is not part of the patch. Role changes go through the admin
    user screen or the dev-only role switch.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = Field(default=None, alias="avatarUrl")

    @field_validator("email")
    @classmethod
    def _email_not_null(cls, value: Optional[str]) -> str:
        # only runs when the field is sent; an explicit null is rejected
        if value is None or not value.strip():
            raise ValueError("email cannot be empty")
        return value


class PasswordChange(BaseModel):
    current: str
    next: str


class LoginAsRequest(BaseModel):
    user: AuthUser
    token: Optional[str] = None


class RoleRequest(BaseModel):
    role: Role


class SessionView(BaseModel):
    """Public view of the session store."""

    user: Optional[AuthUser] = None
    token: Optional[str] = None
    is_admin: bool = False
    loading: bool = False
    error: Optional[str] = None
