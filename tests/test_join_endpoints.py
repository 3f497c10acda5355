"""Tests for the join pages."""

import pytest
from httpx import AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.provisioning_service import login_identifier
from app.services.user_service import UserService


def set_cookies(response: Response) -> dict[str, str]:
    """Cookie name to raw Set-Cookie header."""
    return {header.split("=", 1)[0]: header for header in response.headers.get_list("set-cookie")}


@pytest.mark.asyncio
async def test_join_redirects_to_group(
    client: AsyncClient,
    add_session,
    user_service: UserService,
    db_session: AsyncSession,
) -> None:
    """Test joining an active session with no participants."""
    await add_session("abc123")

    response = await client.get("/join/abc123")

    assert response.status_code == 303
    assert response.headers["location"] == "/join/abc123/group"

    participants = (await user_service.get_users_by_session_id(db_session, "abc123")).unwrap()
    assert len(participants) == 1

    cookies = set_cookies(response)
    assert cookies["tempUserId"].startswith(f"tempUserId={participants[0]['id']}")
    assert "HttpOnly" not in cookies["tempUserId"]
    assert cookies["session"].startswith("session=")
    assert "HttpOnly" in cookies["session"]


@pytest.mark.asyncio
async def test_join_again_reuses_participant(
    client: AsyncClient,
    add_session,
    identity,
    user_service: UserService,
    db_session: AsyncSession,
) -> None:
    """Test that a returning visitor gets the same row id."""
    await add_session("abc123")
    username = "temp_seed_returning"
    firebase_uid = identity.register(login_identifier(username, "temporary.edu"), "pw-1")
    row = await user_service.create_user(
        db_session,
        username=username,
        firebase_uid=firebase_uid,
        session_id="abc123",
        temp_password="pw-1",
    )

    response = await client.get("/join/abc123")

    assert response.status_code == 303
    assert set_cookies(response)["tempUserId"].startswith(f"tempUserId={row['id']}")
    assert identity.calls["create_account"] == []


@pytest.mark.asyncio
async def test_completed_session_shows_error_page(client: AsyncClient, add_session, identity) -> None:
    """Test the error page for an ended session."""
    await add_session("done-1", status="completed")

    response = await client.get("/join/done-1")

    assert response.status_code == 410
    assert response.headers["content-type"].startswith("text/html")
    assert "This session has ended" in response.text
    assert "Try Again" in response.text
    assert "set-cookie" not in response.headers
    assert identity.calls["create_account"] == []


@pytest.mark.asyncio
async def test_missing_session_shows_error_page(client: AsyncClient) -> None:
    """Test the error page for an unknown session."""
    response = await client.get("/join/nope")

    assert response.status_code == 404
    assert "Session not found or has expired" in response.text


@pytest.mark.asyncio
async def test_unavailable_provider_shows_error_page(client: AsyncClient, add_session, identity) -> None:
    """Test the error page when the identity provider is not configured."""
    await add_session("abc123")
    identity.available = False

    response = await client.get("/join/abc123")

    assert response.status_code == 503
    assert "Authentication service not available" in response.text


@pytest.mark.asyncio
async def test_join_needs_no_session_cookie(client: AsyncClient, add_session) -> None:
    """Test that the join page is never behind the auth wall."""
    await add_session("abc123")

    response = await client.get("/join/abc123", headers={"Cookie": "session=garbage"})

    assert response.status_code == 303


@pytest.mark.asyncio
async def test_group_lists_participants(client: AsyncClient, add_session) -> None:
    """Test the group view after two joins of the same visitor."""
    await add_session("abc123")
    await client.get("/join/abc123")
    await client.get("/join/abc123")

    response = await client.get("/join/abc123/group")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["users"][0]["session_id"] == "abc123"
    assert "temp_password" not in data["users"][0]


@pytest.mark.asyncio
async def test_group_of_empty_session(client: AsyncClient) -> None:
    """Test that an empty group is an empty list, not an error."""
    response = await client.get("/join/nobody-here/group")

    assert response.status_code == 200
    assert response.json() == {"users": [], "total": 0}
