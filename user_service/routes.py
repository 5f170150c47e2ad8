# API route definitions (HTTP layer)
# Defines ENDPOINTS

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from .config import Settings
from .db import Database
from .dependencies import (
    bearer_scheme,
    create_command,
    get_database,
    get_settings,
    get_user_service,
    request_body_schema,
    update_command,
    valid_user_id,
)
from .rate_limit import enforce_create_limit
from .schemas import (
    ErrorResponse,
    MessageResponse,
    PaginatedUserResponse,
    UserCreate,
    UserListQuery,
    UserOut,
    UserResponse,
    UserUpdate,
)
from .services import UserService

router = APIRouter()


@router.get("/")
def root(settings: Settings = Depends(get_settings)):
    return {"app": settings.APP_NAME, "env": settings.APP_ENV}


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    database: Database = Depends(get_database),
):
    """Health check endpoint for load balancers and monitoring.

    Returns:
        - 200 OK if service and database are healthy
        - 503 Service Unavailable if database is unreachable
    """
    health_status = {
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.APP_ENV,
        "database": "connected",
    }

    if not await database.check_connection():
        health_status["status"] = "unhealthy"
        health_status["database"] = "disconnected"
        raise HTTPException(status_code=503, detail=health_status)

    return health_status


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# ============================================================================
# User Management Endpoints
# ============================================================================

users_router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(bearer_scheme)],
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)


@users_router.post(
    "",
    response_model=UserResponse,
    status_code=201,
    summary="Create a new user",
    dependencies=[Depends(enforce_create_limit)],
    openapi_extra=request_body_schema(UserCreate),
)
async def create_user(
    command: UserCreate = Depends(create_command),
    service: UserService = Depends(get_user_service),
):
    """Register a user. Stricter rate limit than the other endpoints.

    Raises:
        400: Invalid data or email already registered
        429: Too many requests
    """
    result = await service.create_user(command)
    return result.unwrap()


@users_router.get("", response_model=PaginatedUserResponse, summary="List users with pagination and filters")
async def list_users(
    query: Annotated[UserListQuery, Query()],
    service: UserService = Depends(get_user_service),
):
    """Unknown query parameters are rejected rather than ignored."""
    result = await service.list_users(query)
    return result.unwrap()


@users_router.get(
    "/{user_id}",
    response_model=UserOut | None,
    summary="Get a user by ID",
    responses={404: {"model": ErrorResponse}},
)
async def get_user(
    user_id: uuid.UUID = Depends(valid_user_id),
    service: UserService = Depends(get_user_service),
):
    """Returns the user, active or not, or null when no user has this ID."""
    result = await service.get_user(user_id)
    return result.unwrap()


@users_router.patch(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update a user",
    responses={404: {"model": ErrorResponse}},
    openapi_extra=request_body_schema(UserUpdate),
)
async def update_user(
    user_id: uuid.UUID = Depends(valid_user_id),
    command: UserUpdate = Depends(update_command),
    service: UserService = Depends(get_user_service),
):
    result = await service.update_user(user_id, command)
    return result.unwrap()


@users_router.delete(
    "/{user_id}",
    response_model=MessageResponse,
    summary="Deactivate a user",
    responses={404: {"model": ErrorResponse}},
)
async def deactivate_user(
    user_id: uuid.UUID = Depends(valid_user_id),
    service: UserService = Depends(get_user_service),
):
    result = await service.deactivate_user(user_id)
    return result.unwrap()


router.include_router(users_router)
