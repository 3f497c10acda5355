"""Identity provider webhook schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class WebhookUser(BaseModel):
    """User payload carried by lifecycle events."""

    id: str = Field(..., description="Firebase user ID")
    username: str | None = None
    email: str | None = None


class IdentityWebhookEvent(BaseModel):
    """User lifecycle event posted by the identity provider bridge."""

    type: Literal["user.created", "user.updated", "user.deleted"]
    data: WebhookUser
    object: str = "event"


class WebhookAck(BaseModel):
    """Webhook acknowledgement."""

    received: bool = True
    action: str
    detail: dict[str, Any] | None = None
