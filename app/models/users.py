"""User model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    MetaData,
    Table,
    Text,
    Uuid,
    false,
    func,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    # Internal ID (handed to the browser as tempUserId)
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid4),
    # Generated handle, login identifier is "<username>@<temp account domain>"
    Column("username", Text, nullable=False, unique=True),
    # Firebase identity of the temporary account
    Column("firebase_uid", Text, nullable=False, unique=True, index=True),
    # Joining session this participant belongs to
    Column("session_id", Text, index=True),
    # Generated secret, never part of the public read surface
    Column("temp_password", Text),
    # Activity
    Column("last_active", DateTime(timezone=True)),
    Column("is_active", Boolean, nullable=False, server_default=false()),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

# Columns that never leave the user service
PRIVATE_COLUMNS = frozenset({"temp_password"})
