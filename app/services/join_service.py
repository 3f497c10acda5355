"""Join flow: from an opened session link to the session's group view."""

from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.core.exceptions import (
    AppException,
    AuthException,
    ServiceUnavailableException,
    SessionInvalidException,
)
from app.core.result import Err, Ok
from app.services.identity_service import SIGN_IN_COMPLETE, IdentityService, SignInAttempt
from app.services.provisioning_service import ProvisioningService, login_identifier
from app.services.session_service import SessionService, is_session_completed
from app.services.user_service import UserService, public_row

logger = get_logger(__name__)

GROUP_PATH = "/join/{session_id}/group"
DEFAULT_ERROR_MESSAGE = "Failed to join session"


class JoinState(str, Enum):
    """States of a join attempt."""

    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class JoinOutcome:
    """Terminal result of a join attempt."""

    state: JoinState
    session_id: str
    redirect_url: str | None = None
    user_id: str | None = None
    session_cookie: str | None = None
    message: str | None = None
    status_code: int = 200

    @property
    def succeeded(self) -> bool:
        return self.state is JoinState.SUCCESS


class JoinFlow:
    """
    Single-shot join state machine.

    ``run`` moves the flow from LOADING to SUCCESS or ERROR exactly once. A
    retry is a new instance, the same way a page reload starts from scratch.
    """

    def __init__(
        self,
        db: AsyncSession,
        identity: IdentityService,
        user_service: UserService,
        provisioner: ProvisioningService,
        session_service: SessionService | None = None,
    ):
        """Initialize the flow with its collaborators."""
        self.db = db
        self.identity = identity
        self.users = user_service
        self.provisioner = provisioner
        self.sessions = session_service or SessionService()
        self.state = JoinState.LOADING
        self._started = False

    async def run(self, session_id: str) -> JoinOutcome:
        """
        Join a session.

        Args:
            session_id: Path-embedded session identifier

        Returns:
            SUCCESS with the redirect target and user id, or ERROR with a message

        Raises:
            RuntimeError: If this instance already ran
        """
        if self._started:
            raise RuntimeError("JoinFlow already ran; create a new instance to retry")
        self._started = True

        log = logger.bind(session_id=session_id)
        log.info("join_started")

        try:
            outcome = await self._join(session_id)
        except AppException as e:
            log.warning("join_failed", error=e.message, status_code=e.status_code)
            outcome = self._error(session_id, e.message, e.status_code)
        except Exception as e:
            log.exception("join_crashed")
            outcome = self._error(session_id, str(e), 500)

        self.state = outcome.state
        return outcome

    @staticmethod
    def _error(session_id: str, message: str | None, status_code: int) -> JoinOutcome:
        return JoinOutcome(
            state=JoinState.ERROR,
            session_id=session_id,
            message=message or DEFAULT_ERROR_MESSAGE,
            status_code=status_code,
        )

    async def _join(self, session_id: str) -> JoinOutcome:
        if not self.identity.available:
            raise ServiceUnavailableException("Authentication service not available")

        session = await self.sessions.get_session_by_id(self.db, session_id)
        if session is None:
            raise SessionInvalidException("Session not found or has expired")
        if is_session_completed(session):
            raise SessionInvalidException("This session has ended", status_code=410)

        existing = await self.users.get_user_by_session_id(self.db, session_id)
        if isinstance(existing, Ok):
            attempt, user_data = await self._sign_in_existing(session_id, existing.value)
        else:
            if isinstance(existing, Err):
                logger.warning("existing_user_lookup_failed", session_id=session_id, error=existing.reason)
            attempt, user_data = await self._provision_and_sign_in(session_id)

        if attempt.status != SIGN_IN_COMPLETE or not attempt.created_session_id:
            raise AuthException("Failed to complete sign in process")

        session_cookie = await self.identity.set_active(attempt.created_session_id)

        redirect_url = GROUP_PATH.format(session_id=session_id)
        logger.info("join_succeeded", session_id=session_id, user_id=str(user_data["id"]), redirect=redirect_url)
        return JoinOutcome(
            state=JoinState.SUCCESS,
            session_id=session_id,
            redirect_url=redirect_url,
            user_id=str(user_data["id"]),
            session_cookie=session_cookie,
        )

    async def _sign_in_existing(self, session_id: str, user: dict) -> tuple[SignInAttempt, dict]:
        """Sign in with stored credentials, replacing the account if they no longer work."""
        try:
            password = user.get("temp_password")
            if not password:
                raise AuthException("No stored credentials for existing user")
            attempt = await self.identity.sign_in(
                login_identifier(user["username"], self.provisioner.domain),
                password,
            )
            return attempt, public_row(user)
        except AuthException as e:
            logger.info(
                "existing_user_sign_in_failed",
                session_id=session_id,
                username=user["username"],
                reason=e.message,
            )

        # Self-heal: drop the stale row and start over with a fresh account
        if user.get("firebase_uid"):
            deleted = await self.users.delete_user(self.db, user["firebase_uid"])
            if not isinstance(deleted, Ok):
                logger.warning("stale_user_delete_failed", firebase_uid=user["firebase_uid"], reason=deleted.reason)

        return await self._provision_and_sign_in(session_id)

    async def _provision_and_sign_in(self, session_id: str) -> tuple[SignInAttempt, dict]:
        credentials = await self.provisioner.create_temporary_user(self.db, session_id)
        attempt = await self.identity.sign_in(
            login_identifier(credentials.username, self.provisioner.domain),
            credentials.password,
        )
        return attempt, credentials.user_data
