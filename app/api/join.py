"""Session join pages."""

from html import escape

from fastapi import APIRouter, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from app.config import settings
from app.core.result import Err
from app.dependencies import (
    DatabaseSession,
    IdentityServiceDep,
    ProvisioningServiceDep,
    UserServiceDep,
)
from app.middleware.auth import SESSION_COOKIE_NAME
from app.schemas.users import UserListResponse, UserResponse
from app.services.join_service import JoinFlow, JoinOutcome

router = APIRouter(prefix="/join", tags=["Join"])

# Cookie readable by page scripts, the server-side stand-in for localStorage
TEMP_USER_COOKIE = "tempUserId"

ERROR_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Error</title>
</head>
<body style="height:100vh;display:flex;align-items:center;justify-content:center;font-family:sans-serif">
  <div style="text-align:center">
    <h1 style="color:#ef4444">Error</h1>
    <p style="color:#4b5563">{message}</p>
    <button onclick="window.location.reload()">Try Again</button>
  </div>
</body>
</html>
"""


def render_error_page(outcome: JoinOutcome) -> HTMLResponse:
    """Full-page error with a reload button."""
    return HTMLResponse(
        content=ERROR_PAGE.format(message=escape(outcome.message or "")),
        status_code=outcome.status_code,
    )


def redirect_to_group(outcome: JoinOutcome) -> Response:
    """Redirect into the group view, handing the browser its user id and session."""
    response = RedirectResponse(url=outcome.redirect_url or "/", status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        TEMP_USER_COOKIE,
        outcome.user_id or "",
        path="/",
        samesite="lax",
        secure=settings.is_production,
    )
    if outcome.session_cookie:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            outcome.session_cookie,
            max_age=settings.session_cookie_days * 24 * 3600,
            path="/",
            httponly=True,
            samesite="lax",
            secure=settings.is_production,
        )
    return response


@router.get(
    "/{session_id}",
    response_class=HTMLResponse,
    summary="Join a session",
    responses={303: {"description": "Joined, redirecting to the group view"}},
)
async def join_session(
    session_id: str,
    db: DatabaseSession,
    identity: IdentityServiceDep,
    user_service: UserServiceDep,
    provisioner: ProvisioningServiceDep,
) -> Response:
    """
    Sign the visitor into a session with a temporary account.

    Reuses the account already bound to the session when its credentials still
    work, otherwise provisions a fresh one. Every request runs the whole flow
    again, so reloading the error page is the retry.
    """
    flow = JoinFlow(db, identity, user_service, provisioner)
    outcome = await flow.run(session_id)

    if outcome.succeeded:
        return redirect_to_group(outcome)
    return render_error_page(outcome)


@router.get(
    "/{session_id}/group",
    response_model=UserListResponse,
    summary="Participants of a session",
)
async def session_group(
    session_id: str,
    db: DatabaseSession,
    user_service: UserServiceDep,
) -> UserListResponse:
    """List the participants that joined a session."""
    result = await user_service.get_users_by_session_id(db, session_id)
    if isinstance(result, Err):
        raise result.error

    rows = result.unwrap_or([])
    return UserListResponse(
        users=[UserResponse.model_validate(row) for row in rows],
        total=len(rows),
    )
