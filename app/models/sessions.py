"""Session model definition using SQLAlchemy Core.

Sessions are created and closed by the researcher-facing tooling; this service
only reads them to decide whether joining is still allowed.
"""

from sqlalchemy import Column, DateTime, MetaData, Table, Text, func

metadata = MetaData()

SESSION_STATUS_COMPLETED = "completed"

sessions = Table(
    "sessions",
    metadata,
    Column("id", Text, primary_key=True),
    # waiting | active | completed
    Column("status", Text, nullable=False, server_default="waiting"),
    Column("expires_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
