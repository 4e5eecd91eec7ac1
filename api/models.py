"""
API request and response models for BookApp REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Every response body carries `code` (the HTTP status as an int) and `message`,
so clients can read the outcome without inspecting the status line.

No response model has a password field. User -> profile mapping happens in
api/routes, never by dumping the dataclass.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ApiMessage(BaseModel):
    """Minimal {code, message} envelope used for errors and plain acks."""

    model_config = ConfigDict(frozen=True)

    code: int
    message: str
    detail: Optional[str] = None


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=255)


class UserProfile(BaseModel):
    """Public profile fields returned after login and by /auth/me."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    name: str
    surname: str
    email: str
    phone: str


class LoginResponse(BaseModel):
    code: int
    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int
    profile: UserProfile


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserData(BaseModel):
    """A user row as returned by the user administration endpoints."""

    id: int
    username: str
    name: str
    surname: str
    phone: str
    email: str
    active: bool
    create_date: Optional[datetime] = None
    created_by: str
    write_date: Optional[datetime] = None
    update_by: Optional[str] = None


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users. created_by is the caller."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=50)
    surname: str = Field(min_length=1, max_length=70)
    phone: str = Field(min_length=1, max_length=20)
    email: str = Field(min_length=3, max_length=100, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=255)


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. update_by is the caller."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=50)
    surname: str = Field(min_length=1, max_length=70)
    phone: str = Field(min_length=1, max_length=20)
    email: str = Field(min_length=3, max_length=100, pattern=r"^[^@\s]+@[^@\s]+$")
    active: Optional[bool] = None


class PasswordChange(BaseModel):
    """Request body for PATCH /api/v1/users/update_pwd/{id}.

    Blank passwords are rejected by the route with 400 (not 422) so the
    response matches the other business-rule failures.
    """

    password: str = Field(max_length=255)


class MultipleUsersRequest(BaseModel):
    """Request body for DELETE /api/v1/users/delete_multiple."""

    ids: list[int] = Field(max_length=500)

    @field_validator("ids", mode="after")
    @classmethod
    def dedupe(cls, values: list[int]) -> list[int]:
        return list(dict.fromkeys(values))


class UserListResponse(BaseModel):
    code: int
    message: str
    data: list[UserData]
    total: int


class SingleUserResponse(BaseModel):
    code: int
    message: str
    data: UserData


class UserCrudResponse(BaseModel):
    code: int
    message: str
    rows_affected: int


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
