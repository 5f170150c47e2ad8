"""
Integration tests for the User Service API endpoints.
Tests all CRUD operations, pagination, filtering and error responses.
"""

import uuid

import pytest

USERS = "/api/v1/users"


async def create_user(client, payload) -> dict:
    response = await client.post(USERS, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def error_fields(response) -> set[str]:
    return {error["field"] for error in response.json()["detail"]["details"]["errors"]}


# ============================================================================
# POST /users - Create User
# ============================================================================

@pytest.mark.asyncio
async def test_create_user_success(client, sample_user):
    """Test creating a valid user returns 201 with user data."""
    response = await client.post(USERS, json=sample_user)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User created successfully"
    data = body["data"]
    assert data["firstName"] == "Rody"
    assert data["lastName"] == "Huancas"
    assert data["fullName"] == "Rody Huancas"
    assert data["email"] == "rody@example.com"
    assert data["phone"] == "+51987654321"
    assert data["birthDate"] == "1995-09-04"
    assert data["isActive"] is True
    assert data["role"] == "user"
    uuid.UUID(data["id"])
    assert "createdAt" in data and "updatedAt" in data


@pytest.mark.asyncio
async def test_create_user_never_returns_password(client, sample_user):
    response = await client.post(USERS, json=sample_user)

    assert "password" not in response.json()["data"]
    assert "MiPassword123" not in response.text


@pytest.mark.asyncio
async def test_create_user_duplicate_email(client, sample_user):
    """Test creating user with duplicate email returns 400."""
    await client.post(USERS, json=sample_user)

    response = await client.post(USERS, json=sample_user)

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "DUPLICATE_EMAIL"
    assert detail["message"] == "Email rody@example.com is already registered"


@pytest.mark.asyncio
async def test_create_user_reports_every_invalid_field(client):
    """All violations come back together with status 400."""
    response = await client.post(USERS, json={
        "firstName": "R0dy",
        "email": "not-an-email",
        "password": "weak",
        "phone": "12",
    })

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "VALIDATION_FAILED"
    assert detail["message"] == "Request validation failed"
    assert {"firstName", "lastName", "email", "password", "phone"} <= error_fields(response)


@pytest.mark.asyncio
async def test_create_user_unknown_field(client, sample_user):
    sample_user["isActive"] = False

    response = await client.post(USERS, json=sample_user)

    assert response.status_code == 400
    assert "isActive" in error_fields(response)


@pytest.mark.asyncio
async def test_create_user_future_birth_date(client, sample_user):
    sample_user["birthDate"] = "2999-12-31"

    response = await client.post(USERS, json=sample_user)

    assert response.status_code == 400
    assert error_fields(response) == {"birthDate"}


@pytest.mark.asyncio
async def test_create_user_invalid_json(client):
    response = await client.post(USERS, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
async def test_create_user_normalizes_email(client, sample_user):
    sample_user["email"] = "  Rody@Example.COM  "

    data = await create_user(client, sample_user)

    assert data["email"] == "rody@example.com"


# ============================================================================
# GET /users/{id} - Get User
# ============================================================================

@pytest.mark.asyncio
async def test_get_user(client, sample_user):
    created = await create_user(client, sample_user)

    response = await client.get(f"{USERS}/{created['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == created["id"]
    assert body["fullName"] == "Rody Huancas"
    assert body["isActive"] is True


@pytest.mark.asyncio
async def test_get_missing_user_returns_null(client):
    response = await client.get(f"{USERS}/{uuid.uuid4()}")

    assert response.status_code == 200
    assert response.json() is None


SAMPLE_ID = uuid.UUID("4f0c2a1e-6a53-4c1b-9f0e-2b1d7a1c9e11")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "user_id",
    ["not-a-uuid", f"{{{SAMPLE_ID}}}", SAMPLE_ID.hex, SAMPLE_ID.urn],
    ids=["garbage", "braced", "hex", "urn"],
)
async def test_get_user_malformed_id(client, user_id):
    """Only the canonical hyphenated form is accepted."""
    response = await client.get(f"{USERS}/{user_id}")

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["error"] == "MALFORMED_IDENTIFIER"
    assert detail["message"] == "The provided ID is not a valid UUID"
    assert detail["details"] == {"user_id": user_id}


@pytest.mark.asyncio
async def test_get_user_uppercase_id(client):
    """Hex digits are case-insensitive."""
    response = await client.get(f"{USERS}/{str(SAMPLE_ID).upper()}")

    assert response.status_code == 200
    assert response.json() is None


# ============================================================================
# PATCH /users/{id} - Update User
# ============================================================================

@pytest.mark.asyncio
async def test_update_user(client, sample_user):
    created = await create_user(client, sample_user)

    response = await client.patch(f"{USERS}/{created['id']}", json={"firstName": "Carlos"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "User updated successfully"
    assert body["data"]["firstName"] == "Carlos"
    assert body["data"]["fullName"] == "Carlos Huancas"
    assert body["data"]["email"] == created["email"]


@pytest.mark.asyncio
async def test_update_missing_user(client):
    response = await client.patch(f"{USERS}/{uuid.uuid4()}", json={"firstName": "Carlos"})

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_update_email_taken_by_another_user(client, sample_user):
    await create_user(client, sample_user)
    other = await create_user(client, {**sample_user, "email": "other@example.com"})

    response = await client.patch(f"{USERS}/{other['id']}", json={"email": "rody@example.com"})

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "DUPLICATE_EMAIL"


@pytest.mark.asyncio
async def test_update_null_required_field(client, sample_user):
    created = await create_user(client, sample_user)

    response = await client.patch(f"{USERS}/{created['id']}", json={"lastName": None})

    assert response.status_code == 400
    assert error_fields(response) == {"lastName"}


@pytest.mark.asyncio
async def test_update_clears_phone(client, sample_user):
    created = await create_user(client, sample_user)

    response = await client.patch(f"{USERS}/{created['id']}", json={"phone": None})

    assert response.status_code == 200
    assert response.json()["data"]["phone"] is None


@pytest.mark.asyncio
async def test_update_malformed_id(client):
    response = await client.patch(f"{USERS}/123", json={"firstName": "Carlos"})

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "MALFORMED_IDENTIFIER"


# ============================================================================
# DELETE /users/{id} - Deactivate User
# ============================================================================

@pytest.mark.asyncio
async def test_deactivate_user(client, sample_user):
    """Deactivated users leave the listing but stay retrievable by ID."""
    created = await create_user(client, sample_user)

    response = await client.delete(f"{USERS}/{created['id']}")

    assert response.status_code == 200
    assert response.json() == {"message": "Rody Huancas has been deactivated"}

    listing = (await client.get(USERS)).json()
    assert listing["meta"]["total"] == 0

    fetched = (await client.get(f"{USERS}/{created['id']}")).json()
    assert fetched["isActive"] is False


@pytest.mark.asyncio
async def test_deactivate_missing_user(client):
    response = await client.delete(f"{USERS}/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "USER_NOT_FOUND"


# ============================================================================
# GET /users - List Users
# ============================================================================

@pytest.mark.asyncio
async def test_list_users_default_page(client, sample_users):
    for user in sample_users:
        await create_user(client, user)

    response = await client.get(USERS)

    assert response.status_code == 200
    body = response.json()
    assert body["meta"] == {"total": 5, "page": 1, "limit": 10, "totalPages": 1}
    # Newest first
    assert [u["email"] for u in body["data"]] == [u["email"] for u in reversed(sample_users)]


@pytest.mark.asyncio
async def test_list_users_second_page(client, sample_user):
    emails = [f"user{i:02d}@example.com" for i in range(25)]
    for email in emails:
        await create_user(client, {**sample_user, "email": email})

    response = await client.get(USERS, params={"page": 2, "limit": 10})

    body = response.json()
    assert body["meta"] == {"total": 25, "page": 2, "limit": 10, "totalPages": 3}
    assert [u["email"] for u in body["data"]] == list(reversed(emails))[10:20]


@pytest.mark.asyncio
async def test_list_users_age_filters(client, sample_user, birth_date_for):
    for age in (16, 18, 30, 45):
        await create_user(client, {**sample_user, "email": f"age{age}@example.com", "birthDate": birth_date_for(age)})

    response = await client.get(USERS, params={"minAge": 18, "maxAge": 30})

    assert response.status_code == 200
    assert sorted(u["age"] for u in response.json()["data"]) == [18, 30]


@pytest.mark.asyncio
async def test_list_users_limit_too_large(client):
    """Oversized pages are rejected, not clamped."""
    response = await client.get(USERS, params={"limit": 150})

    assert response.status_code == 400
    assert error_fields(response) == {"limit"}


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"page": "abc"}, {"minAge": -1}])
async def test_list_users_invalid_query(client, params):
    response = await client.get(USERS, params=params)

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "VALIDATION_FAILED"


@pytest.mark.asyncio
async def test_list_users_unknown_query_param(client):
    """Misspelled filters fail loudly instead of returning an unfiltered page."""
    response = await client.get(USERS, params={"foo": "bar", "min_age_typo": 3})

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "VALIDATION_FAILED"
    assert error_fields(response) == {"foo", "min_age_typo"}


# ============================================================================
# Service endpoints
# ============================================================================

@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/api/v1/")

    assert response.status_code == 200
    assert response.json() == {"app": "User Service", "env": "test"}


@pytest.mark.asyncio
async def test_openapi_documents_user_routes(client):
    response = await client.get("/api/v1/openapi.json")

    assert response.status_code == 200
    schema = response.json()
    assert "/api/v1/users" in schema["paths"]
    assert "requestBody" in schema["paths"]["/api/v1/users"]["post"]
    assert "HTTPBearer" in schema["components"]["securitySchemes"]


@pytest.mark.asyncio
async def test_list_users_inverted_age_range(client, sample_user):
    """minAge above maxAge matches nothing; it is not an error."""
    await create_user(client, sample_user)

    response = await client.get(USERS, params={"minAge": 40, "maxAge": 20})

    assert response.status_code == 200
    assert response.json()["data"] == []
    assert response.json()["meta"]["total"] == 0
