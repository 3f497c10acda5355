"""User schemas for request/response validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserCreate(BaseModel):
    """Schema for creating a user row."""

    username: str = Field(..., min_length=1)
    firebase_uid: str = Field(..., description="Firebase user ID")
    session_id: str | None = None


class UserUpdate(BaseModel):
    """Partial update of a user row; unset fields are left untouched."""

    username: str | None = Field(None, min_length=1)
    session_id: str | None = None
    last_active: datetime | None = None
    is_active: bool | None = None

    @field_validator("username", "is_active")
    @classmethod
    def reject_null(cls, value):
        """Omit a field to leave it alone; username and is_active cannot be cleared."""
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class UserActivityUpdate(BaseModel):
    """Activity toggle."""

    is_active: bool


class UserResponse(BaseModel):
    """User schema for API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    firebase_uid: str
    session_id: str | None = None
    last_active: datetime | None = None
    is_active: bool
    created_at: datetime


class UserListResponse(BaseModel):
    """A list of users."""

    users: list[UserResponse]
    total: int
