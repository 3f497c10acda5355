"""Read-only access to joining sessions."""

from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.models.sessions import SESSION_STATUS_COMPLETED, sessions

logger = get_logger(__name__)


def is_session_completed(session: dict) -> bool:
    """Whether the session reached its terminal state."""
    return session.get("status") == SESSION_STATUS_COMPLETED


class SessionService:
    """Session lookups used to gate joining."""

    @staticmethod
    async def get_session_by_id(db: AsyncSession, session_id: str) -> dict | None:
        """
        Get a session by id.

        Args:
            db: Database session
            session_id: Path-embedded session identifier

        Returns:
            Session row, or None when it does not exist or has expired
        """
        result = await db.execute(select(sessions).where(sessions.c.id == session_id))
        session = result.mappings().first()

        if not session:
            return None

        expires_at = session["expires_at"]
        if expires_at is not None:
            # SQLite hands back naive datetimes
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=UTC)
            if expires_at <= datetime.now(UTC):
                logger.info("session_expired", session_id=session_id, expires_at=str(expires_at))
                return None

        return dict(session)
