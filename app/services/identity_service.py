"""Identity provider operations backed by Firebase Authentication."""

from dataclasses import dataclass
from datetime import timedelta

import httpx
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from structlog import get_logger

from app.core.exceptions import AuthException
from app.core.firebase import get_firebase_app, is_firebase_initialized, verify_session_cookie

logger = get_logger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

SIGN_IN_COMPLETE = "complete"


@dataclass(frozen=True)
class SignInAttempt:
    """Result of a password sign-in."""

    status: str
    created_session_id: str | None = None
    uid: str | None = None


class IdentityService:
    """Account registration, password sign-in and session cookies."""

    def __init__(
        self,
        api_key: str | None,
        http_client: httpx.AsyncClient | None = None,
        session_cookie_ttl: timedelta = timedelta(days=5),
        timeout: float = 10.0,
    ):
        """
        Initialize the identity service.

        Args:
            api_key: Firebase web API key, required for password sign-in
            http_client: Optional shared client; a short-lived one is used otherwise
            session_cookie_ttl: Lifetime of cookies minted by ``set_active``
            timeout: Timeout for sign-in requests in seconds
        """
        self.api_key = api_key
        self.http_client = http_client
        self.session_cookie_ttl = session_cookie_ttl
        self.timeout = timeout

    @property
    def available(self) -> bool:
        """Whether sign-in can be attempted at all."""
        return bool(self.api_key) and is_firebase_initialized()

    async def create_account(self, email: str, password: str, display_name: str | None = None) -> str:
        """
        Register an email/password account.

        Returns:
            Firebase UID of the new account

        Raises:
            AuthException: If Firebase rejects the registration
        """
        try:
            record = auth.create_user(
                email=email,
                password=password,
                display_name=display_name,
                app=get_firebase_app(),
            )
        except auth.EmailAlreadyExistsError as e:
            logger.warning("identity_account_exists", email=email)
            raise AuthException(f"Account already exists: {email}") from e
        except (FirebaseError, ValueError) as e:
            logger.error("identity_account_create_failed", email=email, error=str(e))
            raise AuthException(f"Failed to create account: {e!s}") from e

        logger.info("identity_account_created", uid=record.uid, email=email)
        return record.uid

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, **kwargs)

    async def sign_in(self, identifier: str, password: str) -> SignInAttempt:
        """
        Sign in with an email identifier and password.

        Raises:
            AuthException: If the credentials are rejected or the provider is unreachable
        """
        if not self.api_key:
            raise AuthException("Password sign-in is not configured")

        try:
            response = await self._post(
                SIGN_IN_URL,
                params={"key": self.api_key},
                json={"email": identifier, "password": password, "returnSecureToken": True},
            )
        except httpx.HTTPError as e:
            logger.error("identity_sign_in_unreachable", identifier=identifier, error=str(e))
            raise AuthException(f"Sign in request failed: {e!s}") from e

        if response.status_code != httpx.codes.OK:
            try:
                reason = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                reason = f"HTTP {response.status_code}"
            logger.warning("identity_sign_in_rejected", identifier=identifier, reason=reason)
            raise AuthException(f"Sign in failed: {reason}")

        data = response.json()
        logger.info("identity_sign_in_succeeded", identifier=identifier, uid=data.get("localId"))
        return SignInAttempt(
            status=SIGN_IN_COMPLETE,
            created_session_id=data.get("idToken"),
            uid=data.get("localId"),
        )

    async def set_active(self, session: str) -> str:
        """
        Exchange a sign-in ID token for a session cookie.

        Raises:
            AuthException: If Firebase refuses to mint the cookie
        """
        try:
            return auth.create_session_cookie(
                session,
                expires_in=self.session_cookie_ttl,
                app=get_firebase_app(),
            )
        except (FirebaseError, ValueError) as e:
            logger.error("identity_set_active_failed", error=str(e))
            raise AuthException(f"Failed to activate session: {e!s}") from e

    async def delete_account(self, uid: str) -> bool:
        """Remove an account, returning False when it was already gone."""
        try:
            auth.delete_user(uid, app=get_firebase_app())
        except auth.UserNotFoundError:
            logger.info("identity_account_already_deleted", uid=uid)
            return False
        except (FirebaseError, ValueError) as e:
            raise AuthException(f"Failed to delete account: {e!s}") from e

        logger.info("identity_account_deleted", uid=uid)
        return True

    async def verify_session(self, session_cookie: str) -> dict:
        """
        Verify a session cookie and return its claims.

        Raises:
            AuthException: If the cookie is not valid
        """
        if not is_firebase_initialized():
            raise AuthException("Authentication service not available")
        try:
            return await verify_session_cookie(session_cookie)
        except ValueError as e:
            raise AuthException(str(e)) from e
