"""
api/routes/v1/users.py -- User administration endpoints.

Routes (all require a session):
  GET    /api/v1/users                      -- list users
  POST   /api/v1/users                      -- create user (password hashed with Argon2)
  DELETE /api/v1/users/delete_multiple      -- delete several users by id
  PATCH  /api/v1/users/update_pwd/{user_id} -- change a user's password
  GET    /api/v1/users/{user_id}            -- fetch one user
  PUT    /api/v1/users/{user_id}            -- update profile fields
  DELETE /api/v1/users/{user_id}            -- delete one user

The literal-path routes are registered before /users/{user_id} so
"delete_multiple" is never parsed as an id.

created_by / update_by are always the authenticated subject, never taken
from the request body.

Changing a password, renaming a user or deleting a user revokes that user's
session: the old token must not outlive the credentials it was issued for.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from api.models import (
    MultipleUsersRequest,
    PasswordChange,
    SingleUserResponse,
    UserCreate,
    UserCrudResponse,
    UserData,
    UserListResponse,
    UserUpdate,
)
from auth.dependencies import require_session
from auth.errors import DuplicateUser
from auth.models import User
from auth.passwords import PasswordHasher
from auth.sessions import SessionStore
from auth.store import UserStore

logger = logging.getLogger("bookapp.api")

router = APIRouter(dependencies=[Depends(require_session)])

NO_USER_FOUND = "No User data Found"


@router.get("/users", response_model=UserListResponse)
async def get_all_users(request: Request) -> UserListResponse:
    user_store: UserStore = request.app.state.user_store
    users = await run_in_threadpool(user_store.list_users)
    if not users:
        raise HTTPException(status_code=404, detail=NO_USER_FOUND)
    return UserListResponse(
        code=200,
        message="Success",
        data=[_user_to_data(u) for u in users],
        total=len(users),
    )


@router.post("/users", response_model=UserCrudResponse, status_code=201)
async def create_user(
    request: Request,
    body: UserCreate,
    subject: str = Depends(require_session),
) -> UserCrudResponse:
    """Create a user. The password is hashed under the current policy."""
    user_store: UserStore = request.app.state.user_store
    hasher: PasswordHasher = request.app.state.password_hasher

    encoded = await hasher.hash(body.password)
    new_user = User(
        username=body.username,
        name=body.name,
        surname=body.surname,
        phone=body.phone,
        email=body.email,
        pwd=encoded,
        created_by=subject,
    )
    try:
        await run_in_threadpool(user_store.create_user, new_user)
    except DuplicateUser as exc:
        raise HTTPException(
            status_code=409,
            detail="A user with that username, email or phone already exists.",
        ) from exc

    logger.info("CREATE_USER: %s created by %s", body.username, subject)
    return UserCrudResponse(
        code=201,
        message=f"User: {body.username} was successfully created",
        rows_affected=1,
    )


@router.delete("/users/delete_multiple", response_model=UserCrudResponse)
async def remove_multiple_users(request: Request, body: MultipleUsersRequest) -> UserCrudResponse:
    if not body.ids:
        raise HTTPException(status_code=400, detail="Bad Request")
    user_store: UserStore = request.app.state.user_store
    sessions: SessionStore = request.app.state.session_store

    wanted = set(body.ids)
    doomed = [u for u in await run_in_threadpool(user_store.list_users) if u.id in wanted]
    removed = await run_in_threadpool(user_store.delete_users, body.ids)
    if removed == 0:
        raise HTTPException(status_code=404, detail=NO_USER_FOUND)
    for user in doomed:
        await run_in_threadpool(sessions.revoke, user.username)

    logger.info("MULTI_REMOVE_USER: %d users removed", removed)
    return UserCrudResponse(code=200, message="Successfully Deleted Users", rows_affected=removed)


@router.patch("/users/update_pwd/{user_id}", response_model=UserCrudResponse)
async def update_password(
    request: Request,
    user_id: int,
    body: PasswordChange,
    subject: str = Depends(require_session),
) -> UserCrudResponse:
    if not body.password.strip():
        raise HTTPException(status_code=400, detail="Bad Request")
    user_store: UserStore = request.app.state.user_store
    sessions: SessionStore = request.app.state.session_store
    hasher: PasswordHasher = request.app.state.password_hasher

    target = await run_in_threadpool(user_store.get_by_id, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail=NO_USER_FOUND)

    encoded = await hasher.hash(body.password)
    await run_in_threadpool(user_store.update_password, user_id, encoded, subject)
    await run_in_threadpool(sessions.revoke, target.username)

    logger.info("UPDATE_PASSWORD: password for user %d updated by %s", user_id, subject)
    return UserCrudResponse(code=200, message="Password updated successfully", rows_affected=1)


@router.get("/users/{user_id}", response_model=SingleUserResponse)
async def get_user(request: Request, user_id: int) -> SingleUserResponse:
    user_store: UserStore = request.app.state.user_store
    user = await run_in_threadpool(user_store.get_by_id, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail=NO_USER_FOUND)
    return SingleUserResponse(code=200, message="Success", data=_user_to_data(user))


@router.put("/users/{user_id}", response_model=UserCrudResponse)
async def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    subject: str = Depends(require_session),
) -> UserCrudResponse:
    user_store: UserStore = request.app.state.user_store
    sessions: SessionStore = request.app.state.session_store

    target = await run_in_threadpool(user_store.get_by_id, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail=NO_USER_FOUND)

    fields = body.model_dump(exclude_none=True)
    try:
        await run_in_threadpool(user_store.update_user, user_id, subject, **fields)
    except DuplicateUser as exc:
        raise HTTPException(
            status_code=409,
            detail="A user with that username, email or phone already exists.",
        ) from exc

    if body.username != target.username or body.active is False:
        await run_in_threadpool(sessions.revoke, target.username)

    logger.info("UPDATE_USER: user %d updated by %s", user_id, subject)
    return UserCrudResponse(code=200, message=f"User: {body.username} updated successfully", rows_affected=1)


@router.delete("/users/{user_id}", response_model=UserCrudResponse)
async def remove_user(request: Request, user_id: int) -> UserCrudResponse:
    user_store: UserStore = request.app.state.user_store
    sessions: SessionStore = request.app.state.session_store

    target = await run_in_threadpool(user_store.get_by_id, user_id)
    if target is None or not await run_in_threadpool(user_store.delete_user, user_id):
        raise HTTPException(status_code=404, detail=NO_USER_FOUND)
    await run_in_threadpool(sessions.revoke, target.username)

    logger.info("REMOVE_USER: user %d removed", user_id)
    return UserCrudResponse(code=200, message="User was successfully deleted", rows_affected=1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_to_data(user: User) -> UserData:
    return UserData(
        id=user.id,
        username=user.username,
        name=user.name,
        surname=user.surname,
        phone=user.phone,
        email=user.email,
        active=user.active,
        create_date=user.create_date,
        created_by=user.created_by,
        write_date=user.write_date,
        update_by=user.update_by,
    )
