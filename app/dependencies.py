"""FastAPI dependencies."""

from datetime import timedelta
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import UnauthorizedException
from app.core.redis_client import CacheManager, get_redis_client
from app.database import get_db
from app.services.identity_service import IdentityService
from app.services.provisioning_service import ProvisioningService
from app.services.user_service import UserService


def get_cache_manager() -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(get_redis_client())


@lru_cache
def get_identity_service() -> IdentityService:
    """Process-wide identity provider client."""
    return IdentityService(
        api_key=settings.firebase_api_key,
        session_cookie_ttl=timedelta(days=settings.session_cookie_days),
    )


def get_user_service(
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
) -> UserService:
    """User store with caching."""
    return UserService(cache_manager)


def get_provisioning_service(
    identity: Annotated[IdentityService, Depends(get_identity_service)],
    user_service: Annotated[UserService, Depends(get_user_service)],
) -> ProvisioningService:
    """Temporary account provisioner."""
    return ProvisioningService(identity, user_service, domain=settings.temp_account_domain)


def get_current_claims(request: Request) -> dict:
    """
    Claims of the signed-in user, set by the auth middleware.

    Raises:
        UnauthorizedException: If the request carries no verified session
    """
    claims = getattr(request.state, "auth", None)
    if not claims:
        raise UnauthorizedException("Authentication required")
    return claims


def get_current_firebase_uid(claims: Annotated[dict, Depends(get_current_claims)]) -> str:
    """Firebase UID of the signed-in user."""
    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        raise UnauthorizedException("Could not validate credentials")
    return uid


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
IdentityServiceDep = Annotated[IdentityService, Depends(get_identity_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
ProvisioningServiceDep = Annotated[ProvisioningService, Depends(get_provisioning_service)]
CurrentFirebaseUid = Annotated[str, Depends(get_current_firebase_uid)]
