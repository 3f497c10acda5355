"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import health, users

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(users.router, tags=["Users"])
