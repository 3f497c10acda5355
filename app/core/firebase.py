"""Firebase Admin SDK initialization and utilities."""

import json
import os

import firebase_admin
from firebase_admin import auth, credentials
from structlog import get_logger

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> None:
    """
    Initialize Firebase Admin SDK.

    Args:
        firebase_credentials_path: Optional path to service account JSON file.
        firebase_config_json: Optional raw JSON string of service account.

    Looks for Firebase credentials in order:
    1. firebase_config_json parameter
    2. firebase_credentials_path parameter
    3. Default application credentials
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("Firebase already initialized")
        return

    try:
        cred = None

        # 1. Raw JSON string (hosted deployments)
        if firebase_config_json:
            logger.info("Initializing Firebase with JSON string from environment")
            cred = credentials.Certificate(json.loads(firebase_config_json))

        # 2. File path (local dev)
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("Initializing Firebase with JSON file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            # Last resort: Try default credentials
            _firebase_app = firebase_admin.initialize_app()
            logger.info("Firebase initialized with default credentials")

    except Exception as e:
        logger.error("Failed to initialize Firebase", error=str(e))
        raise


def is_firebase_initialized() -> bool:
    """Whether the Admin SDK is ready for use."""
    return _firebase_app is not None


def get_firebase_app() -> firebase_admin.App:
    """
    Get the Firebase app instance.

    Returns:
        Firebase app instance

    Raises:
        RuntimeError: If Firebase is not initialized
    """
    if _firebase_app is None:
        raise RuntimeError("Firebase not initialized. Call initialize_firebase() first.")
    return _firebase_app


async def verify_session_cookie(session_cookie: str) -> dict:
    """
    Verify a Firebase session cookie.

    Args:
        session_cookie: Cookie minted by ``auth.create_session_cookie``

    Returns:
        Decoded claims of the signed-in user

    Raises:
        ValueError: If the cookie is invalid, expired or revoked
    """
    try:
        decoded = auth.verify_session_cookie(session_cookie, app=get_firebase_app())
        return decoded

    except (auth.InvalidSessionCookieError, auth.ExpiredSessionCookieError) as e:
        logger.warning("Invalid or expired Firebase session cookie", error=str(e))
        raise ValueError(f"Invalid session cookie: {e!s}")
    except Exception as e:
        logger.error("Firebase session verification failed", error=str(e))
        raise ValueError(f"Session verification failed: {e!s}")
