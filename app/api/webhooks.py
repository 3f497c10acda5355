"""Identity provider webhooks."""

import hmac

from fastapi import APIRouter, Header, status
from structlog import get_logger

from app.config import settings
from app.core.exceptions import ForbiddenException, StoreException
from app.core.result import Err, Ok
from app.dependencies import DatabaseSession, UserServiceDep
from app.schemas.webhooks import IdentityWebhookEvent, WebhookAck

logger = get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


def verify_webhook_secret(x_webhook_secret: str | None) -> None:
    """Reject calls that do not carry the shared secret."""
    if not x_webhook_secret or not hmac.compare_digest(
        x_webhook_secret.encode(), settings.webhook_secret.encode()
    ):
        raise ForbiddenException("Invalid webhook secret")


@router.post(
    "/identity",
    response_model=WebhookAck,
    status_code=status.HTTP_200_OK,
    summary="Identity provider user lifecycle events",
)
async def identity_webhook(
    event: IdentityWebhookEvent,
    db: DatabaseSession,
    user_service: UserServiceDep,
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
) -> WebhookAck:
    """
    Keep the users table in step with accounts managed at the provider.

    ``user.created`` inserts a row unless one exists for the account (the join
    flow creates its own rows), ``user.deleted`` removes the row.
    """
    verify_webhook_secret(x_webhook_secret)
    firebase_uid = event.data.id
    logger.info("identity_webhook_received", event_type=event.type, firebase_uid=firebase_uid)

    if event.type == "user.created":
        existing = await user_service.get_user_by_firebase_uid(db, firebase_uid)
        if isinstance(existing, Ok):
            return WebhookAck(action="skipped", detail={"reason": "user already exists"})
        if isinstance(existing, Err):
            raise existing.error

        username = event.data.username or (event.data.email or firebase_uid).split("@", 1)[0]
        try:
            user = await user_service.create_user(db, username=username, firebase_uid=firebase_uid)
        except StoreException as e:
            logger.error("identity_webhook_create_failed", firebase_uid=firebase_uid, error=e.message)
            raise
        return WebhookAck(action="created", detail={"user_id": str(user["id"])})

    if event.type == "user.deleted":
        result = await user_service.delete_user(db, firebase_uid)
        if isinstance(result, Ok):
            return WebhookAck(action="deleted", detail={"user_id": str(result.value["id"])})
        return WebhookAck(action="skipped", detail={"reason": result.reason})

    return WebhookAck(action="ignored")
