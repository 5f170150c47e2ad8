"""FastAPI dependencies: injected components, identifier parsing and body validation."""

import json
import re
import uuid
from typing import TypeVar

from fastapi import Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.security import HTTPBearer
from pydantic import BaseModel, ValidationError

from .config import Settings
from .db import Database
from .errors import ErrorKind, ServiceError
from .schemas import UserCreate, UserUpdate
from .services import UserService

ModelT = TypeVar("ModelT", bound=BaseModel)

# Documents the bearer scheme in OpenAPI; no token is checked.
bearer_scheme = HTTPBearer(auto_error=False)

_UUID_PATTERN = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


# ==================== Components ====================

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_user_service(
    database: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(database, settings)


# ==================== Path Parameters ====================

def valid_user_id(user_id: str) -> uuid.UUID:
    """Parse the path identifier; anything but the canonical 8-4-4-4-12 form is rejected with 400."""
    if not _UUID_PATTERN.fullmatch(user_id):
        error = ServiceError(
            ErrorKind.MALFORMED_IDENTIFIER,
            "The provided ID is not a valid UUID",
            {"user_id": user_id},
        )
        raise error.to_http()
    return uuid.UUID(user_id)


# ==================== Request Bodies ====================

async def _parse_body(request: Request, model: type[ModelT], settings: Settings) -> ModelT:
    """Validate the JSON body with the configured phone region in the validation context."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "Request body must be valid JSON", "input": None}]
        )

    try:
        return model.model_validate(payload, context={"phone_region": settings.PHONE_REGION})
    except ValidationError as e:
        errors = [
            {**error, "loc": ("body", *error["loc"])}
            for error in e.errors(include_url=False, include_context=False)
        ]
        raise RequestValidationError(errors, body=payload)


async def create_command(request: Request, settings: Settings = Depends(get_settings)) -> UserCreate:
    return await _parse_body(request, UserCreate, settings)


async def update_command(request: Request, settings: Settings = Depends(get_settings)) -> UserUpdate:
    return await _parse_body(request, UserUpdate, settings)


def request_body_schema(model: type[BaseModel]) -> dict:
    """OpenAPI requestBody for routes that validate their body in a dependency."""
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema(by_alias=True)}},
        }
    }
