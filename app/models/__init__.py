"""Database models."""

from app.models.sessions import sessions
from app.models.users import users

__all__ = [
    "sessions",
    "users",
]
