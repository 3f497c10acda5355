"""Temporary account provisioning for session participants."""

import secrets
import time
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.core.exceptions import StoreException
from app.services.identity_service import IdentityService
from app.services.user_service import UserService

logger = get_logger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_username() -> str:
    """Millisecond timestamp plus random suffix, e.g. ``temp_m2x9k1ab_3f9c2e10``."""
    return f"temp_{_base36(time.time_ns() // 1_000_000)}_{secrets.token_hex(4)}"


def generate_password() -> str:
    return secrets.token_urlsafe(18)


def login_identifier(username: str, domain: str) -> str:
    """Email the identity provider knows a temporary account by."""
    return f"{username}@{domain}"


@dataclass(frozen=True)
class TemporaryCredentials:
    """Credentials of a freshly provisioned account.

    ``password`` is only available here; use it for sign-in right away.
    """

    username: str
    password: str
    user_data: dict

    def __repr__(self) -> str:
        return f"TemporaryCredentials(username={self.username!r}, user_id={self.user_data.get('id')!r})"


class ProvisioningService:
    """Creates an identity provider account and its user row."""

    def __init__(self, identity: IdentityService, user_service: UserService, domain: str):
        """Initialize with the identity provider, user store and login domain."""
        self.identity = identity
        self.user_service = user_service
        self.domain = domain

    async def create_temporary_user(self, db: AsyncSession, session_id: str) -> TemporaryCredentials:
        """
        Provision a temporary participant for a session.

        Args:
            db: Database session
            session_id: Session the participant joins

        Returns:
            Username, plaintext password and the created row

        Raises:
            AuthException: If the identity provider rejects the registration
            StoreException: If the user row cannot be inserted
        """
        username = generate_username()
        password = generate_password()

        firebase_uid = await self.identity.create_account(
            login_identifier(username, self.domain),
            password,
            display_name=username,
        )

        try:
            user_data = await self.user_service.create_user(
                db,
                username=username,
                firebase_uid=firebase_uid,
                session_id=session_id,
                temp_password=password,
            )
        except StoreException:
            # No compensation: the provider account outlives the failed insert
            logger.error(
                "orphaned_identity_account",
                firebase_uid=firebase_uid,
                username=username,
                session_id=session_id,
            )
            raise

        logger.info(
            "temporary_user_created",
            session_id=session_id,
            username=username,
            user_id=str(user_data["id"]),
        )
        return TemporaryCredentials(username=username, password=password, user_data=user_data)
