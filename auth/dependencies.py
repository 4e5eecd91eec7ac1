"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one credential is accepted: "Authorization: Bearer <token>". The token
must verify cryptographically AND be the subject's registered session
(see auth/gate.py).

require_session() runs the gate and returns the subject; on rejection the
route handler is never invoked.
get_current_user() wraps it and loads the User row for handlers that need
the profile.

Both are plain `def` dependencies: FastAPI runs them on its threadpool, which
is where the synchronous session lookup belongs.

Layer rule: auth/dependencies.py may import from fastapi (for
Request/HTTPException) because this module is part of the FastAPI dependency
injection system. It does not import from api/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.errors import StorageError
from auth.gate import AuthGate, GateOutcome
from auth.models import User
from auth.store import UserStore

UNAUTHORIZED_MESSAGE = "Unauthorized"


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail=UNAUTHORIZED_MESSAGE, headers={"WWW-Authenticate": "Bearer"})


def require_session(request: Request) -> str:
    """Admit the request or raise. Returns the verified subject (username).

    Use as a FastAPI dependency, per route or per router:
        router = APIRouter(dependencies=[Depends(require_session)])

    The subject is also attached to request.state.subject for handlers and
    middleware further down the chain.
    """
    gate: AuthGate = request.app.state.auth_gate
    decision = gate.evaluate(request.headers.get("Authorization"))
    if decision.outcome is GateOutcome.INTERNAL_ERROR:
        raise HTTPException(status_code=500, detail="Internal Server Error")
    if decision.outcome is not GateOutcome.ADMIT:
        raise _unauthorized()
    request.state.subject = decision.subject
    return decision.subject


def get_current_user(request: Request, subject: str = Depends(require_session)) -> User:
    """Require a session and return the matching active User.

    A valid session whose user row was since deleted or deactivated is
    treated as unauthenticated. Depending on require_session (rather than
    calling it) lets FastAPI reuse the gate decision when a router already
    declares require_session.
    """
    user_store: UserStore = request.app.state.user_store
    try:
        user = user_store.get_by_username(subject)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Internal Server Error") from exc
    if user is None or not user.active:
        raise _unauthorized()
    return user
