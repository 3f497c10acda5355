"""Tests for the Redis cache layer and the cached root page."""

import json
from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.redis_client import CacheManager
from app.services.user_service import UserService


class TestCacheManager:
    """Test cache manager."""

    def test_get_json_miss(self, cache_manager: CacheManager, mock_redis: MagicMock) -> None:
        """Test a cache miss."""
        assert cache_manager.get_json("user:missing") is None
        mock_redis.get.assert_called_once_with("user:missing")

    def test_set_json_with_ttl(self, cache_manager: CacheManager, mock_redis: MagicMock) -> None:
        """Test setting a JSON value with an expiry."""
        assert cache_manager.set_json("user:fb-1", {"username": "temp_a"}, ttl=60)

        mock_redis.setex.assert_called_once_with("user:fb-1", 60, json.dumps({"username": "temp_a"}))

    def test_set_json_without_ttl(self, cache_manager: CacheManager, mock_redis: MagicMock) -> None:
        """Test setting a JSON value that never expires."""
        cache_manager.set_json("page:/", {"message": "hi"})

        mock_redis.set.assert_called_once()
        mock_redis.setex.assert_not_called()

    def test_page_key(self) -> None:
        """Test the page cache key format."""
        assert CacheManager.page_key("/") == "page:/"
        assert CacheManager.page_key("/join/abc123/group") == "page:/join/abc123/group"

    def test_invalidate_path(self, cache_manager: CacheManager, mock_redis: MagicMock) -> None:
        """Test dropping a cached page."""
        assert cache_manager.invalidate_path("/")

        mock_redis.delete.assert_called_once_with("page:/")

    def test_redis_failure_degrades(self, cache_manager: CacheManager, mock_redis: MagicMock) -> None:
        """Test that a dead Redis behaves like an empty cache."""
        for method in ("get", "setex", "delete"):
            getattr(mock_redis, method).side_effect = RedisConnectionError("down")

        assert cache_manager.get_json("user:fb-1") is None
        assert cache_manager.set_json("user:fb-1", {}, ttl=10) is False
        assert cache_manager.invalidate_path("/") is False


class TestRootPage:
    """Test the cached root payload."""

    @pytest.mark.asyncio
    async def test_root_is_public_and_cached(self, client: AsyncClient, mock_redis: MagicMock) -> None:
        """Test that the root page needs no session and is cached for five minutes."""
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["active_participants"] == 0
        key, ttl, _ = mock_redis.setex.call_args.args
        assert key == "page:/"
        assert ttl == 300

    @pytest.mark.asyncio
    async def test_root_served_from_cache(self, client: AsyncClient, mock_redis: MagicMock) -> None:
        """Test that a cached payload is returned as is."""
        mock_redis.get.return_value = json.dumps({"message": "cached", "active_participants": 7})

        response = await client.get("/")

        assert response.json() == {"message": "cached", "active_participants": 7}
        mock_redis.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_root_counts_active_participants(
        self,
        client: AsyncClient,
        user_service: UserService,
        db_session: AsyncSession,
    ) -> None:
        """Test that active rows are counted."""
        await user_service.create_user(db_session, username="temp_a", firebase_uid="fb-a")
        await user_service.update_user_activity(db_session, "fb-a", True)

        response = await client.get("/")

        assert response.json()["active_participants"] == 1
