"""Pydantic schemas for request/response validation and serialization.

Request bodies use camelCase keys and reject any field they do not declare.
"""

import re
import uuid
from datetime import date, datetime
from typing import Annotated, Literal

import phonenumbers
from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from .models import EMAIL_MAX_LENGTH, NAME_MAX_LENGTH, PASSWORD_MAX_LENGTH
from .utils import calculate_age, normalize_email, parse_date

DEFAULT_PHONE_REGION = "PE"

# ==================== Pagination ====================
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

NAME_PATTERN = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑ\s]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

Role = Literal["user", "admin", "moderator"]


# ==================== Field Validators ====================

def _check_name(value: str) -> str:
    if not NAME_PATTERN.match(value):
        raise ValueError("may only contain letters and spaces")
    return value


def _normalize_email(value):
    return normalize_email(value) if isinstance(value, str) else value


def _check_email_length(value: str) -> str:
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"cannot exceed {EMAIL_MAX_LENGTH} characters")
    return value


def _check_password(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError("must contain at least one uppercase letter, one lowercase letter and one digit")
    return value


def _check_phone(value: str, info: ValidationInfo) -> str:
    """Validate against the configured region and store in E.164 form."""
    region = (info.context or {}).get("phone_region", DEFAULT_PHONE_REGION)
    try:
        number = phonenumbers.parse(value, region)
    except phonenumbers.NumberParseException as e:
        raise ValueError(f"must be a valid phone number for region {region}") from e
    if not phonenumbers.is_valid_number(number):
        raise ValueError(f"must be a valid phone number for region {region}")
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def _parse_birth_date(value):
    """Accept ISO date strings that are not in the future."""
    if isinstance(value, (date, datetime)):
        value = value.isoformat()[:10]
    if not isinstance(value, str):
        raise ValueError("must be a date string (YYYY-MM-DD)")
    calculate_age(value)
    return parse_date(value)


Name = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=NAME_MAX_LENGTH),
    AfterValidator(_check_name),
]
Email = Annotated[EmailStr, BeforeValidator(_normalize_email), AfterValidator(_check_email_length)]
Password = Annotated[
    str,
    StringConstraints(min_length=8, max_length=PASSWORD_MAX_LENGTH),
    AfterValidator(_check_password),
]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=32), AfterValidator(_check_phone)]
BirthDate = Annotated[date, BeforeValidator(_parse_birth_date)]


# ==================== Error Schemas ====================

class ErrorDetail(BaseModel):
    """Standardized error payload with code and message."""
    error: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    detail: ErrorDetail


# ==================== User Commands ====================

class _Command(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, extra="forbid")


class UserCreate(_Command):
    """Schema for user registration."""
    first_name: Name = Field(..., description="User's first name", examples=["Rody"])
    last_name: Name = Field(..., description="User's last name", examples=["Huancas"])
    email: Email = Field(..., description="User's email address (unique)", examples=["rody@example.com"])
    password: Password = Field(..., description="At least 8 characters with upper, lower case and a digit")
    phone: Phone | None = Field(None, description="Phone number (optional)", examples=["+51987654321"])
    birth_date: BirthDate | None = Field(None, description="Birth date YYYY-MM-DD (optional)", examples=["1995-09-04"])
    role: Role = "user"


class UserUpdate(_Command):
    """Partial update: only the fields present in the body are applied."""
    first_name: Name | None = None
    last_name: Name | None = None
    email: Email | None = None
    password: Password | None = None
    phone: Phone | None = None
    birth_date: BirthDate | None = None
    role: Role | None = None

    @field_validator("first_name", "last_name", "email", "password", "role", mode="before")
    @classmethod
    def reject_null(cls, v):
        """Only phone and birthDate can be cleared."""
        if v is None:
            raise ValueError("cannot be null")
        return v


class UserListQuery(BaseModel):
    """Pagination and age filters for listing active users."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    page: int = Field(DEFAULT_PAGE, gt=0)
    limit: int = Field(DEFAULT_LIMIT, gt=0, le=MAX_LIMIT)
    min_age: int | None = Field(None, ge=0)
    max_age: int | None = Field(None, ge=0)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


# ==================== User Responses ====================

class _Output(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserOut(_Output):
    """User output schema without password."""
    id: uuid.UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str | None = None
    birth_date: date | None = None
    age: int
    is_active: bool
    role: str
    created_at: datetime
    updated_at: datetime


class UserResponse(_Output):
    message: str
    data: UserOut


class MessageResponse(_Output):
    message: str


class PageMeta(_Output):
    total: int
    page: int
    limit: int
    total_pages: int


class PaginatedUserResponse(_Output):
    """Page of active users with pagination metadata."""
    data: list[UserOut]
    meta: PageMeta
