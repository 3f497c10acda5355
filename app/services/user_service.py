"""User service for temporary participant rows."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.core.exceptions import StoreException
from app.core.redis_client import CacheManager
from app.core.result import EmptyResult, Err, NotFound, Ok, StoreResult
from app.models.users import PRIVATE_COLUMNS, users
from app.schemas.users import UserUpdate

logger = get_logger(__name__)

# Columns a partial update may touch
UPDATABLE_FIELDS = ("username", "session_id", "last_active", "is_active")
# NOT NULL columns; a None for these means "leave alone"
NON_NULLABLE_FIELDS = frozenset({"username", "is_active"})


def public_row(row: Any) -> dict:
    """Row mapping as a dict without the private columns."""
    return {key: value for key, value in dict(row).items() if key not in PRIVATE_COLUMNS}


class UserService:
    """Service for user operations.

    ``create_user`` raises on failure. Every other operation returns a
    ``StoreResult`` and logs database failures instead of raising them.
    """

    # Cache TTL in seconds (30 minutes for user rows)
    USER_CACHE_TTL = 1800

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_user_cache_key(firebase_uid: str) -> str:
        """Generate cache key for user."""
        return f"user:{firebase_uid}"

    def _invalidate(self, *firebase_uids: str | None) -> None:
        if not self.cache:
            return
        for firebase_uid in firebase_uids:
            if firebase_uid:
                self.cache.delete(self._get_user_cache_key(firebase_uid))

    @staticmethod
    async def _failure(db: AsyncSession, operation: str, exc: SQLAlchemyError, **context: Any) -> Err:
        """Roll back, log and wrap a database failure."""
        await db.rollback()
        logger.error("user_store_operation_failed", operation=operation, error=str(exc), **context)
        return Err(StoreException(f"{operation} failed: {exc.__class__.__name__}", operation=operation))

    async def create_user(
        self,
        db: AsyncSession,
        username: str,
        firebase_uid: str,
        session_id: str | None = None,
        temp_password: str | None = None,
    ) -> dict:
        """
        Insert a user row.

        Args:
            db: Database session
            username: Generated handle, unique
            firebase_uid: Identity provider account id, unique
            session_id: Joining session, NULL when omitted
            temp_password: Generated secret kept for returning visitors

        Returns:
            The created row

        Raises:
            StoreException: If the database rejects the insert
        """
        values: dict[str, Any] = {"username": username, "firebase_uid": firebase_uid}
        if session_id is not None:
            values["session_id"] = session_id
        if temp_password is not None:
            values["temp_password"] = temp_password

        logger.info("creating_user", username=username, firebase_uid=firebase_uid, session_id=session_id)

        try:
            result = await db.execute(users.insert().values(**values).returning(users))
            user = result.mappings().first()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error("user_create_conflict", username=username, firebase_uid=firebase_uid, error=str(e))
            raise StoreException(f"User '{username}' already exists", operation="create_user") from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("user_create_failed", username=username, error=str(e))
            raise StoreException("Failed to create user", operation="create_user") from e

        if not user:
            raise StoreException("Failed to create user", operation="create_user")

        user_dict = public_row(user)
        logger.info("user_created", user_id=str(user_dict["id"]), username=username)
        return user_dict

    async def get_user_by_firebase_uid(self, db: AsyncSession, firebase_uid: str) -> StoreResult[dict]:
        """Get user by Firebase UID with caching."""
        if self.cache:
            cached_user = self.cache.get_json(self._get_user_cache_key(firebase_uid))
            if cached_user:
                return Ok(cached_user)

        try:
            result = await db.execute(select(users).where(users.c.firebase_uid == firebase_uid))
            user = result.mappings().first()
        except SQLAlchemyError as e:
            return await self._failure(db, "get_user_by_firebase_uid", e, firebase_uid=firebase_uid)

        if not user:
            logger.info("user_not_found", firebase_uid=firebase_uid)
            return NotFound(f"User not found: {firebase_uid}")

        user_dict = public_row(user)
        if self.cache:
            self.cache.set_json(self._get_user_cache_key(firebase_uid), user_dict, ttl=self.USER_CACHE_TTL)
        return Ok(user_dict)

    async def get_user_by_session_id(self, db: AsyncSession, session_id: str) -> StoreResult[dict]:
        """
        Get the newest user bound to a session, stored credentials included.

        Only the join flow should call this; the row carries ``temp_password``.
        """
        query = (
            select(users)
            .where(users.c.session_id == session_id)
            .order_by(users.c.created_at.desc())
            .limit(1)
        )
        try:
            result = await db.execute(query)
            user = result.mappings().first()
        except SQLAlchemyError as e:
            return await self._failure(db, "get_user_by_session_id", e, session_id=session_id)

        if not user:
            return NotFound(f"No user bound to session: {session_id}")
        return Ok(dict(user))

    async def get_users_by_session_id(self, db: AsyncSession, session_id: str) -> StoreResult[list[dict]]:
        """Get every user bound to a session."""
        try:
            result = await db.execute(
                select(users).where(users.c.session_id == session_id).order_by(users.c.created_at)
            )
            rows = result.mappings().all()
        except SQLAlchemyError as e:
            return await self._failure(db, "get_users_by_session_id", e, session_id=session_id)

        if not rows:
            return EmptyResult(f"No users found for sessionId: {session_id}")
        return Ok([public_row(row) for row in rows])

    async def update_user(self, db: AsyncSession, username: str, user_data: UserUpdate) -> StoreResult[dict]:
        """Update any subset of username, session_id, last_active and is_active."""
        update_data = {
            key: value
            for key, value in user_data.model_dump(exclude_unset=True).items()
            if key in UPDATABLE_FIELDS and not (value is None and key in NON_NULLABLE_FIELDS)
        }

        if not update_data:
            try:
                result = await db.execute(select(users).where(users.c.username == username))
                user = result.mappings().first()
            except SQLAlchemyError as e:
                return await self._failure(db, "update_user", e, username=username)
        else:
            query = update(users).where(users.c.username == username).values(**update_data).returning(users)
            try:
                result = await db.execute(query)
                user = result.mappings().first()
                await db.commit()
            except SQLAlchemyError as e:
                return await self._failure(db, "update_user", e, username=username)

        if not user:
            logger.info("user_update_missed", username=username)
            return NotFound(f"User update failed: {username}")

        user_dict = public_row(user)
        self._invalidate(user_dict["firebase_uid"])
        return Ok(user_dict)

    async def update_user_activity(self, db: AsyncSession, firebase_uid: str, is_active: bool) -> StoreResult[dict]:
        """Set is_active; stamp last_active when activating, clear it otherwise."""
        query = (
            update(users)
            .where(users.c.firebase_uid == firebase_uid)
            .values(is_active=is_active, last_active=datetime.now(UTC) if is_active else None)
            .returning(users)
        )
        try:
            result = await db.execute(query)
            user = result.mappings().first()
            await db.commit()
        except SQLAlchemyError as e:
            return await self._failure(db, "update_user_activity", e, firebase_uid=firebase_uid)

        if not user:
            return NotFound(f"User not found: {firebase_uid}")

        self._invalidate(firebase_uid)
        return Ok(public_row(user))

    async def get_active_users(self, db: AsyncSession) -> StoreResult[list[dict]]:
        """Get every active user; an empty list is a valid answer."""
        try:
            result = await db.execute(select(users).where(users.c.is_active.is_(True)))
            rows = result.mappings().all()
        except SQLAlchemyError as e:
            return await self._failure(db, "get_active_users", e)

        return Ok([public_row(row) for row in rows])

    async def delete_user(self, db: AsyncSession, firebase_uid: str) -> StoreResult[dict]:
        """Delete a user (hard delete) and invalidate the root page."""
        query = delete(users).where(users.c.firebase_uid == firebase_uid).returning(users)
        try:
            result = await db.execute(query)
            user = result.mappings().first()
            await db.commit()
        except SQLAlchemyError as e:
            return await self._failure(db, "delete_user", e, firebase_uid=firebase_uid)

        if not user:
            logger.warning("user_delete_missed", firebase_uid=firebase_uid)
            return NotFound(f"User not found: {firebase_uid}")

        self._invalidate(firebase_uid)
        if self.cache:
            self.cache.invalidate_path("/")

        logger.info("user_deleted", firebase_uid=firebase_uid, user_id=str(user["id"]))
        return Ok(public_row(user))
