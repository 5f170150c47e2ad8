"""Domain error kinds, service results, and storage error translation."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from fastapi import HTTPException
from sqlalchemy.exc import DBAPIError

from .logger import logger

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Centralized error codes for API responses."""
    VALIDATION_FAILED = "VALIDATION_FAILED"
    MALFORMED_IDENTIFIER = "MALFORMED_IDENTIFIER"
    RATE_LIMITED = "RATE_LIMITED"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    REFERENCED_ENTITY = "REFERENCED_ENTITY"
    DUPLICATE_VALUE = "DUPLICATE_VALUE"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_FIELD_TYPE = "INVALID_FIELD_TYPE"
    INTERNAL_STORAGE_ERROR = "INTERNAL_STORAGE_ERROR"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION_FAILED: 400,
    ErrorKind.MALFORMED_IDENTIFIER: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.DUPLICATE_EMAIL: 400,
    ErrorKind.USER_NOT_FOUND: 404,
    ErrorKind.REFERENCED_ENTITY: 400,
    ErrorKind.DUPLICATE_VALUE: 409,
    ErrorKind.MISSING_REQUIRED_FIELD: 400,
    ErrorKind.INVALID_FIELD_TYPE: 400,
    ErrorKind.INTERNAL_STORAGE_ERROR: 500,
}


@dataclass(frozen=True)
class ServiceError:
    """A failure the caller has to handle, with the data to report it."""
    kind: ErrorKind
    message: str
    details: dict = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def as_detail(self) -> dict:
        return {"error": self.kind.value, "message": self.message, "details": self.details}

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.as_detail())


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a service operation: either ``value`` or ``error`` is set."""
    value: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ServiceError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the error as an HTTP exception."""
        if self.error is not None:
            raise self.error.to_http()
        return self.value


# ==================== Domain Errors ====================

def duplicate_email(email: str) -> ServiceError:
    return ServiceError(
        ErrorKind.DUPLICATE_EMAIL,
        f"Email {email} is already registered",
        {"email": email},
    )


def user_not_found(user_id: Any) -> ServiceError:
    return ServiceError(
        ErrorKind.USER_NOT_FOUND,
        f"User with ID {user_id} does not exist",
        {"user_id": str(user_id)},
    )


# ==================== Storage Error Translation ====================

FOREIGN_KEY_VIOLATION = "23503"
UNIQUE_VIOLATION = "23505"
NOT_NULL_VIOLATION = "23502"
INVALID_TEXT_REPRESENTATION = "22P02"

_PG_KEY_DETAIL = re.compile(r"Key \((?P<field>.*?)\)=\((?P<value>.*?)\)")
_SQLITE_CONSTRAINT = re.compile(r"(?P<kind>UNIQUE|NOT NULL) constraint failed: (?:\w+\.)?(?P<field>\w+)")
_INVALID_TYPE = re.compile(r"invalid input syntax for type (?P<type>[\w ]+)")


def _driver_error(exc: DBAPIError) -> Any:
    """The raw driver exception behind SQLAlchemy's wrapper."""
    orig = exc.orig
    return orig.__cause__ or orig


def _sqlstate(exc: DBAPIError) -> str | None:
    for candidate in (exc.orig, _driver_error(exc)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return code
    return None


def _diag(exc: DBAPIError, attribute: str, diag_attribute: str) -> str | None:
    """Read a detail attribute from asyncpg (flat) or psycopg (``diag``) errors."""
    for candidate in (_driver_error(exc), exc.orig):
        value = getattr(candidate, attribute, None)
        if value:
            return value
        diag = getattr(candidate, "diag", None)
        if diag is not None and getattr(diag, diag_attribute, None):
            return getattr(diag, diag_attribute)
    return None


def _classify_sqlite(exc: DBAPIError) -> tuple[str | None, str | None]:
    """Map SQLite constraint messages onto SQLSTATE codes."""
    message = str(exc.orig)
    if "FOREIGN KEY constraint failed" in message:
        return FOREIGN_KEY_VIOLATION, None
    match = _SQLITE_CONSTRAINT.search(message)
    if match:
        code = UNIQUE_VIOLATION if match["kind"] == "UNIQUE" else NOT_NULL_VIOLATION
        return code, match["field"]
    return None, None


def translate_db_error(
    exc: Exception | ServiceError, context: str = "users", params: dict | None = None
) -> ServiceError:
    """Map a storage-layer failure onto a domain error kind.

    Domain errors pass through unchanged. ``params`` are the values that were
    being written; they let a unique violation report the offending value when
    the driver does not.
    """
    if isinstance(exc, ServiceError):
        return exc

    params = params or {}
    code = field_name = None
    detail = None
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        code = _sqlstate(exc)
        detail = _diag(exc, "detail", "message_detail")
        field_name = _diag(exc, "column_name", "column_name")
        if code is None:
            code, field_name = _classify_sqlite(exc)

    if code == FOREIGN_KEY_VIOLATION:
        return ServiceError(
            ErrorKind.REFERENCED_ENTITY,
            f"Cannot complete the operation on '{context}' because it is referenced by another resource",
            {"context": context},
        )

    if code == UNIQUE_VIOLATION:
        value = None
        match = _PG_KEY_DETAIL.search(detail or "")
        if match:
            field_name, value = match["field"], match["value"]
        field_name = field_name or "field"
        if value is None:
            value = params.get(field_name)
        return ServiceError(
            ErrorKind.DUPLICATE_VALUE,
            f"The value '{value}' for field '{field_name}' is already in use",
            {"field": field_name, "value": value},
        )

    if code == NOT_NULL_VIOLATION:
        field_name = field_name or "field"
        return ServiceError(
            ErrorKind.MISSING_REQUIRED_FIELD,
            f"The field '{field_name}' is required and cannot be null",
            {"field": field_name},
        )

    if code == INVALID_TEXT_REPRESENTATION:
        match = _INVALID_TYPE.search(str(exc))
        expected = match["type"].strip() if match else "the column type"
        field_name = field_name or "field"
        return ServiceError(
            ErrorKind.INVALID_FIELD_TYPE,
            f"The field '{field_name}' must be of type {expected}",
            {"field": field_name, "expected_type": expected},
        )

    logger.error(f"Database error ({context}): {exc}", exc_info=exc)
    return ServiceError(
        ErrorKind.INTERNAL_STORAGE_ERROR,
        f"An unexpected error occurred while processing {context}",
        {},
    )
