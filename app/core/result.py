"""Outcome types returned by user store reads, updates and deletes.

A store call either happened (``Ok``), matched nothing (``NotFound`` for keyed
lookups, ``EmptyResult`` for multi-row queries) or was rejected by the database
(``Err``). Callers branch on the variant instead of checking for ``None``::

    result = await user_service.get_user_by_firebase_uid(db, uid)
    if isinstance(result, Ok):
        ...
    elif isinstance(result, NotFound):
        ...
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from app.core.exceptions import EmptyResultException, NotFoundException, StoreException

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """The operation happened."""

    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: Any) -> T:
        return self.value


@dataclass(frozen=True)
class NotFound:
    """A lookup, update or delete by key matched no row."""

    reason: str

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise NotFoundException(self.reason)

    def unwrap_or(self, default: Any) -> Any:
        return default


@dataclass(frozen=True)
class EmptyResult:
    """A multi-row query matched nothing."""

    reason: str

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise EmptyResultException(self.reason)

    def unwrap_or(self, default: Any) -> Any:
        return default


@dataclass(frozen=True)
class Err:
    """The database rejected the operation; the failure has been logged."""

    error: StoreException

    @property
    def ok(self) -> bool:
        return False

    @property
    def reason(self) -> str:
        return self.error.message

    def unwrap(self) -> Any:
        raise self.error

    def unwrap_or(self, default: Any) -> Any:
        return default


StoreResult = Ok[T] | NotFound | EmptyResult | Err
