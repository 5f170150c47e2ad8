"""
Pytest configuration and shared fixtures for testing.
Every test gets its own application, database and HTTP client.

Runs against a throwaway SQLite file by default; set TEST_DB_URL to a
postgresql+asyncpg:// URL to run the same suite against PostgreSQL.
"""

import os
from datetime import date

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from user_service.config import Settings
from user_service.main import create_app
from user_service.services import UserService


def make_settings(db_url: str, **overrides) -> Settings:
    """Test settings: fast hashing, no rate limits, no log file, no .env lookup."""
    values = {
        "DB_URL": db_url,
        "APP_ENV": "test",
        "DB_CREATE_TABLES": False,
        "BCRYPT_ROUNDS": 4,
        "RATE_LIMIT_ENABLED": False,
        "LOG_FILE": None,
        "ENABLE_METRICS": True,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def birth_date_for_age(age: int) -> str:
    """A birth date giving exactly ``age`` today (January 1st has always passed)."""
    return date(date.today().year - age, 1, 1).isoformat()


@pytest.fixture
def db_url(tmp_path):
    return os.getenv("TEST_DB_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def settings(db_url):
    return make_settings(db_url)


@pytest_asyncio.fixture(scope="function")
async def app(settings):
    """Application with freshly created tables, dropped again after the test."""
    application = create_app(settings)
    database = application.state.database
    await database.create_tables()

    yield application

    await database.drop_tables()
    await database.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(app):
    """Create a test HTTP client bound to the application."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0,
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def build_client(db_url):
    """Factory for clients over apps built with custom settings."""
    built = []

    async def _build(**overrides) -> AsyncClient:
        application = create_app(make_settings(db_url, **overrides))
        await application.state.database.create_tables()
        ac = AsyncClient(transport=ASGITransport(app=application), base_url="http://test")
        built.append((application, ac))
        return ac

    yield _build

    for application, ac in built:
        await ac.aclose()
        await application.state.database.drop_tables()
        await application.state.database.dispose()


@pytest.fixture
def service(app):
    return UserService(app.state.database, app.state.settings)


@pytest_asyncio.fixture
async def session(app):
    """A session on the test database for query-level tests."""
    async with app.state.database.session() as s:
        yield s


@pytest.fixture
def birth_date_for():
    return birth_date_for_age


@pytest.fixture
def sample_user():
    """Sample user data for testing (camelCase, as sent over HTTP)."""
    return {
        "firstName": "Rody",
        "lastName": "Huancas",
        "email": "rody@example.com",
        "password": "MiPassword123",
        "phone": "+51987654321",
        "birthDate": "1995-09-04",
    }


@pytest.fixture
def sample_users():
    """Multiple sample users for listing tests."""
    return [
        {"firstName": "Alice", "lastName": "Quispe", "email": "alice@example.com", "password": "Password123"},
        {"firstName": "Bob", "lastName": "Mamani", "email": "bob@example.com", "password": "Password123"},
        {"firstName": "Charlie", "lastName": "Rojas", "email": "charlie@example.com", "password": "Password123"},
        {"firstName": "Diana", "lastName": "Flores", "email": "diana@example.com", "password": "Password123"},
        {"firstName": "Eve", "lastName": "Torres", "email": "eve@example.com", "password": "Password123"},
    ]
