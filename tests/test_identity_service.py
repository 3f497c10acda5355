"""Tests for the Firebase-backed identity service."""

import json
from types import SimpleNamespace

import httpx
import pytest
from firebase_admin import auth

from app.core.exceptions import AuthException
from app.services import identity_service as identity_module
from app.services.identity_service import SIGN_IN_COMPLETE, SIGN_IN_URL, IdentityService


@pytest.fixture
def firebase_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend the Admin SDK was initialized."""
    monkeypatch.setattr(identity_module, "is_firebase_initialized", lambda: True)
    monkeypatch.setattr(identity_module, "get_firebase_app", lambda: None)


def client_returning(status_code: int, payload: dict, seen: list | None = None) -> httpx.AsyncClient:
    """HTTP client whose every request gets the same canned response."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_available_needs_api_key_and_firebase(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that the service needs both the web API key and the Admin SDK."""
    monkeypatch.setattr(identity_module, "is_firebase_initialized", lambda: True)
    assert IdentityService(api_key="key").available
    assert not IdentityService(api_key=None).available

    monkeypatch.setattr(identity_module, "is_firebase_initialized", lambda: False)
    assert not IdentityService(api_key="key").available


@pytest.mark.asyncio
async def test_sign_in_success() -> None:
    """Test a completed password sign-in."""
    seen: list[httpx.Request] = []
    service = IdentityService(
        api_key="web-key",
        http_client=client_returning(200, {"idToken": "tok-1", "localId": "uid-1"}, seen),
    )

    attempt = await service.sign_in("temp_a@temporary.edu", "pw")

    assert attempt.status == SIGN_IN_COMPLETE
    assert attempt.created_session_id == "tok-1"
    assert attempt.uid == "uid-1"

    request = seen[0]
    assert str(request.url).startswith(SIGN_IN_URL)
    assert request.url.params["key"] == "web-key"
    assert json.loads(request.content) == {
        "email": "temp_a@temporary.edu",
        "password": "pw",
        "returnSecureToken": True,
    }


@pytest.mark.asyncio
async def test_sign_in_rejected() -> None:
    """Test that rejected credentials carry the provider reason."""
    service = IdentityService(
        api_key="web-key",
        http_client=client_returning(400, {"error": {"message": "INVALID_LOGIN_CREDENTIALS"}}),
    )

    with pytest.raises(AuthException) as exc_info:
        await service.sign_in("temp_a@temporary.edu", "wrong")

    assert exc_info.value.message == "Sign in failed: INVALID_LOGIN_CREDENTIALS"
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_sign_in_unreachable() -> None:
    """Test that a transport failure becomes an auth error."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    service = IdentityService(api_key="web-key", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(AuthException):
        await service.sign_in("temp_a@temporary.edu", "pw")


@pytest.mark.asyncio
async def test_sign_in_without_api_key() -> None:
    """Test signing in with no web API key configured."""
    with pytest.raises(AuthException):
        await IdentityService(api_key=None).sign_in("temp_a@temporary.edu", "pw")


@pytest.mark.asyncio
async def test_create_account(firebase_ready: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test registering an account through the Admin SDK."""
    captured = {}

    def create_user(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(uid="uid-new")

    monkeypatch.setattr(auth, "create_user", create_user)

    uid = await IdentityService(api_key="key").create_account("temp_a@temporary.edu", "pw", display_name="temp_a")

    assert uid == "uid-new"
    assert captured["email"] == "temp_a@temporary.edu"
    assert captured["display_name"] == "temp_a"


@pytest.mark.asyncio
async def test_create_account_existing_email(firebase_ready: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test registering an email that is already taken."""

    def create_user(**kwargs):
        raise auth.EmailAlreadyExistsError("exists", None, None)

    monkeypatch.setattr(auth, "create_user", create_user)

    with pytest.raises(AuthException) as exc_info:
        await IdentityService(api_key="key").create_account("temp_a@temporary.edu", "pw")

    assert "already exists" in exc_info.value.message


@pytest.mark.asyncio
async def test_set_active_mints_cookie(firebase_ready: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that activating a sign-in mints a session cookie."""
    captured = {}

    def create_session_cookie(id_token, expires_in, app=None):
        captured["expires_in"] = expires_in
        return f"cookie-for-{id_token}"

    monkeypatch.setattr(auth, "create_session_cookie", create_session_cookie)
    service = IdentityService(api_key="key")

    assert await service.set_active("tok-1") == "cookie-for-tok-1"
    assert captured["expires_in"] == service.session_cookie_ttl


@pytest.mark.asyncio
async def test_delete_missing_account(firebase_ready: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that deleting an unknown account reports False."""

    def delete_user(uid, app=None):
        raise auth.UserNotFoundError("gone")

    monkeypatch.setattr(auth, "delete_user", delete_user)

    assert await IdentityService(api_key="key").delete_account("uid-gone") is False


@pytest.mark.asyncio
async def test_verify_session_without_firebase(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test verifying a cookie with the Admin SDK down."""
    monkeypatch.setattr(identity_module, "is_firebase_initialized", lambda: False)

    with pytest.raises(AuthException) as exc_info:
        await IdentityService(api_key="key").verify_session("cookie")

    assert exc_info.value.message == "Authentication service not available"


@pytest.mark.asyncio
async def test_verify_session_invalid_cookie(firebase_ready: None, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that an invalid cookie becomes an auth error."""

    async def verify(cookie):
        raise ValueError("Invalid session cookie: expired")

    monkeypatch.setattr(identity_module, "verify_session_cookie", verify)

    with pytest.raises(AuthException):
        await IdentityService(api_key="key").verify_session("cookie")
