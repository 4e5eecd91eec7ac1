"""
api/routes/v1/auth.py -- Login, logout and identity endpoints.

Routes:
  POST /api/v1/auth/login    -- password login; returns a bearer token + profile
  POST /api/v1/auth/logout   -- revokes the caller's session (requires session)
  GET  /api/v1/auth/me       -- current user's profile (requires session)

Security:
  Login answers "unknown username" and "wrong password" with the exact same
  401 body; LoginService already equalizes the hashing cost of both paths.
  Cache-Control: no-store on login responses so tokens never sit in caches.
  No cookie is set -- protected endpoints only read the Authorization header.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ApiMessage, LoginRequest, LoginResponse, UserProfile
from auth.dependencies import get_current_user, require_session
from auth.login import LoginOutcome, LoginService
from auth.models import User

# Auth policy:
# - POST /api/v1/auth/login:   public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:  requires session (require_session)
# - GET  /api/v1/auth/me:      requires session (get_current_user)
router = APIRouter()

INVALID_CREDENTIALS = "Invalid credentials provided"


@router.post("/auth/login", response_model=LoginResponse)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a session token.

    A successful login replaces the user's previous session, so any token
    issued before this one stops working immediately.
    """
    service: LoginService = request.app.state.login_service
    result = await service.login(body.username, body.password)

    if result.outcome is not LoginOutcome.SUCCESS:
        resp = JSONResponse(
            status_code=401,
            content=ApiMessage(code=401, message=INVALID_CREDENTIALS).model_dump(exclude_none=True),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            code=200,
            message="Login successful",
            token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=result.claims.expires_at - result.claims.issued_at,
            profile=user_to_profile(result.user),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=ApiMessage, response_model_exclude_none=True)
async def logout(request: Request, subject: str = Depends(require_session)) -> ApiMessage:
    """Revoke the caller's session. The presented token stops working."""
    service: LoginService = request.app.state.login_service
    await service.logout(subject)
    return ApiMessage(code=200, message="Logged out.")


@router.get("/auth/me", response_model=UserProfile)
async def me(current_user: User = Depends(get_current_user)) -> UserProfile:
    """Return the profile of the currently authenticated user."""
    return user_to_profile(current_user)


def user_to_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        username=user.username,
        name=user.name,
        surname=user.surname,
        email=user.email,
        phone=user.phone,
    )
