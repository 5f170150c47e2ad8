"""Business logic layer for user operations.

Handles the user write pipeline (uniqueness, derived fields, hashing,
transactional persistence) and paginated listing. Duplicate, not-found and
storage failures come back as ``Result`` failures rather than exceptions.
"""

import uuid

from sqlalchemy.exc import SQLAlchemyError

from . import crud
from .config import Settings
from .db import Database
from .errors import ErrorKind, Result, duplicate_email, translate_db_error, user_not_found
from .hashing import hash_password
from .logger import logger
from .models import User
from .schemas import (
    MessageResponse,
    PageMeta,
    PaginatedUserResponse,
    UserCreate,
    UserListQuery,
    UserOut,
    UserResponse,
    UserUpdate,
)
from .utils import calculate_age, compose_full_name

# ==================== Derived Fields ====================


def derive_create_fields(command: UserCreate, password_hash: str) -> dict:
    """Column values for a new user, including full_name and age.

    The bcrypt hash is computed by the caller before any transaction is opened.
    """
    values = command.model_dump(exclude={"password"})
    values["full_name"] = compose_full_name(command.first_name, command.last_name)
    values["age"] = calculate_age(command.birth_date) if command.birth_date else 0
    values["password"] = password_hash
    return values


def derive_update_fields(current: User, changes: dict, password_hash: str | None = None) -> dict:
    """Column values for a partial update, re-deriving only what the change touches."""
    values = dict(changes)
    if "first_name" in changes or "last_name" in changes:
        values["full_name"] = compose_full_name(
            changes.get("first_name", current.first_name),
            changes.get("last_name", current.last_name),
        )
    if "birth_date" in changes:
        values["age"] = calculate_age(changes["birth_date"])
    if "password" in changes:
        values["password"] = password_hash
    return values


# ==================== User Service ====================


class UserService:
    """User write pipeline and queries over one database."""

    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings

    async def create_user(self, command: UserCreate) -> Result[UserResponse]:
        """Register a new user; the email pre-check and insert share one transaction."""
        logger.info(f"Registering new user: {command.email}")
        # Hashed before the write transaction opens
        password_hash = hash_password(command.password, self.settings.BCRYPT_ROUNDS)
        try:
            async with self.database.session() as session:
                async with session.begin():
                    if await crud.select_user_by_email(session, command.email) is not None:
                        logger.warning(f"Registration failed - email already exists: {command.email}")
                        return Result.failure(duplicate_email(command.email))

                    values = derive_create_fields(command, password_hash)
                    user = await crud.insert_user(session, values)
        except SQLAlchemyError as e:
            error = translate_db_error(e, "users", {"email": command.email})
            # A concurrent create won the race past the pre-check
            if error.kind is ErrorKind.DUPLICATE_VALUE and error.details.get("field") == "email":
                logger.warning(f"Registration lost unique race for email: {command.email}")
                error = duplicate_email(command.email)
            return Result.failure(error)

        logger.info(f"User registered successfully: id={user.id} email={user.email}")
        return Result.success(
            UserResponse(message="User created successfully", data=UserOut.model_validate(user))
        )

    async def update_user(self, user_id: uuid.UUID, command: UserUpdate) -> Result[UserResponse]:
        """Apply a partial update to an existing user."""
        changes = command.model_dump(exclude_unset=True)
        logger.info(f"Updating user: id={user_id} fields={sorted(k for k in changes if k != 'password')}")
        password_hash = None
        if "password" in changes:
            password_hash = hash_password(changes["password"], self.settings.BCRYPT_ROUNDS)
        try:
            async with self.database.session() as session:
                async with session.begin():
                    user = await crud.select_user(session, user_id)
                    if user is None:
                        logger.warning(f"Cannot update - user not found: id={user_id}")
                        return Result.failure(user_not_found(user_id))

                    new_email = changes.get("email")
                    if new_email is not None and new_email != user.email:
                        owner = await crud.select_user_by_email(session, new_email)
                        if owner is not None and owner.id != user.id:
                            logger.warning(f"Update rejected - email already exists: {new_email}")
                            return Result.failure(duplicate_email(new_email))

                    values = derive_update_fields(user, changes, password_hash)
                    user = await crud.update_user_fields(session, user, values)
        except SQLAlchemyError as e:
            error = translate_db_error(e, "users", changes)
            if error.kind is ErrorKind.DUPLICATE_VALUE and error.details.get("field") == "email":
                error = duplicate_email(changes["email"])
            return Result.failure(error)

        logger.info(f"User updated successfully: id={user.id}")
        return Result.success(
            UserResponse(message="User updated successfully", data=UserOut.model_validate(user))
        )

    async def deactivate_user(self, user_id: uuid.UUID) -> Result[MessageResponse]:
        """Soft-delete a user by flipping is_active; the row is kept."""
        logger.info(f"Deactivating user: id={user_id}")
        try:
            async with self.database.session() as session:
                async with session.begin():
                    user = await crud.select_user(session, user_id)
                    if user is None:
                        logger.warning(f"Cannot deactivate - user not found: id={user_id}")
                        return Result.failure(user_not_found(user_id))
                    full_name = user.full_name
                    await crud.deactivate_user(session, user_id)
        except SQLAlchemyError as e:
            return Result.failure(translate_db_error(e, "users"))

        logger.info(f"User deactivated: id={user_id}")
        return Result.success(MessageResponse(message=f"{full_name} has been deactivated"))

    async def get_user(self, user_id: uuid.UUID) -> Result[UserOut | None]:
        """Fetch a user by ID; an absent user is a successful ``None``."""
        logger.debug(f"Fetching user: id={user_id}")
        try:
            async with self.database.session() as session:
                user = await crud.select_user(session, user_id)
        except SQLAlchemyError as e:
            return Result.failure(translate_db_error(e, "users"))

        if user is None:
            logger.debug(f"User not found: id={user_id}")
            return Result.success(None)
        return Result.success(UserOut.model_validate(user))

    async def list_users(self, query: UserListQuery) -> Result[PaginatedUserResponse]:
        """List active users with pagination and optional age bounds."""
        logger.debug(
            f"Listing users: page={query.page} limit={query.limit} "
            f"filters=(min_age={query.min_age}, max_age={query.max_age})"
        )
        try:
            async with self.database.session() as session:
                users, total = await crud.list_users(
                    session, query.skip, query.limit, min_age=query.min_age, max_age=query.max_age
                )
        except SQLAlchemyError as e:
            return Result.failure(translate_db_error(e, "users"))

        total_pages = (total + query.limit - 1) // query.limit
        return Result.success(
            PaginatedUserResponse(
                data=[UserOut.model_validate(u) for u in users],
                meta=PageMeta(total=total, page=query.page, limit=query.limit, total_pages=total_pages),
            )
        )
