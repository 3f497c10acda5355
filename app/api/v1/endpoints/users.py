"""User endpoints."""

from fastapi import APIRouter, status
from structlog import get_logger

from app.core.exceptions import AuthException, ForbiddenException
from app.dependencies import (
    CurrentFirebaseUid,
    DatabaseSession,
    IdentityServiceDep,
    UserServiceDep,
)
from app.schemas.users import UserActivityUpdate, UserListResponse, UserResponse, UserUpdate

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _user_list(rows: list[dict]) -> UserListResponse:
    return UserListResponse(users=[UserResponse.model_validate(row) for row in rows], total=len(rows))


def ensure_self(firebase_uid: str, current_uid: str) -> None:
    """Participants may only change their own row."""
    if firebase_uid != current_uid:
        logger.warning("user_cross_account_write_denied", target=firebase_uid, caller=current_uid)
        raise ForbiddenException("You can only modify your own user")


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    firebase_uid: CurrentFirebaseUid,
    db: DatabaseSession,
    user_service: UserServiceDep,
):
    """Get the signed-in user's row."""
    result = await user_service.get_user_by_firebase_uid(db, firebase_uid)
    return UserResponse.model_validate(result.unwrap())


@router.get("/active", response_model=UserListResponse)
async def list_active_users(
    db: DatabaseSession,
    user_service: UserServiceDep,
):
    """List users currently marked active."""
    result = await user_service.get_active_users(db)
    return _user_list(result.unwrap())


@router.get("/session/{session_id}", response_model=UserListResponse)
async def list_session_users(
    session_id: str,
    db: DatabaseSession,
    user_service: UserServiceDep,
):
    """List users bound to a session; 404 when nobody joined yet."""
    result = await user_service.get_users_by_session_id(db, session_id)
    return _user_list(result.unwrap())


@router.patch("/{username}", response_model=UserResponse)
async def update_user(
    username: str,
    user_data: UserUpdate,
    current_uid: CurrentFirebaseUid,
    db: DatabaseSession,
    user_service: UserServiceDep,
):
    """Update username, session or activity fields of the caller's own row."""
    current = (await user_service.get_user_by_firebase_uid(db, current_uid)).unwrap()
    if current["username"] != username:
        logger.warning("user_cross_account_write_denied", target=username, caller=current_uid)
        raise ForbiddenException("You can only modify your own user")

    result = await user_service.update_user(db, username, user_data)
    return UserResponse.model_validate(result.unwrap())


@router.put("/{firebase_uid}/activity", response_model=UserResponse)
async def update_user_activity(
    firebase_uid: str,
    activity: UserActivityUpdate,
    current_uid: CurrentFirebaseUid,
    db: DatabaseSession,
    user_service: UserServiceDep,
):
    """Mark the caller active or inactive."""
    ensure_self(firebase_uid, current_uid)
    result = await user_service.update_user_activity(db, firebase_uid, activity.is_active)
    return UserResponse.model_validate(result.unwrap())


@router.delete("/{firebase_uid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    firebase_uid: str,
    current_uid: CurrentFirebaseUid,
    db: DatabaseSession,
    user_service: UserServiceDep,
    identity: IdentityServiceDep,
    purge_account: bool = False,
) -> None:
    """Delete the caller's row, and with ``purge_account`` its identity provider account too."""
    ensure_self(firebase_uid, current_uid)
    result = await user_service.delete_user(db, firebase_uid)
    result.unwrap()

    if purge_account:
        try:
            await identity.delete_account(firebase_uid)
        except AuthException as e:
            # Row is already gone; the orphaned account is only logged
            logger.warning("identity_account_purge_failed", firebase_uid=firebase_uid, error=e.message)
