import os
import uuid
from typing import AsyncGenerator, Dict

# Module-level app in school_admin.main reads settings from the environment on import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from school_admin.core.config import Settings
from school_admin.db.schema import ensure_schema
from school_admin.main import create_app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "StrongPass123"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        JWT_SECRET_KEY="test-secret-key",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory database per test, shared by every session through StaticPool."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await ensure_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def app(settings: Settings, engine: AsyncEngine) -> FastAPI:
    return create_app(settings, engine=engine)


@pytest.fixture()
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    async with app.state.sessionmaker() as session:
        yield session


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}.{uuid.uuid4().hex[:10]}@greenfield-school.org"


async def register_school(client: AsyncClient, email: str, name: str = "Greenfield School") -> Dict:
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "organization_name": name,
            "country": "CM",
            "timezone": "Africa/Douala",
            "admin_full_name": "Grace Admin",
            "admin_email": email,
            "admin_mobile": "+237600000000",
            "password": PASSWORD,
            "confirm_password": PASSWORD,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> Dict[str, str]:
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
async def school(client: AsyncClient) -> Dict:
    """A registered school with a logged-in SUPER_ADMIN."""
    email = unique_email("admin")
    registered = await register_school(client, email)
    headers = await login(client, email)
    return {"tenant_id": registered["tenant_id"], "email": email, "headers": headers}


@pytest.fixture()
def admin_headers(school: Dict) -> Dict[str, str]:
    return school["headers"]


@pytest.fixture()
def make_user(client: AsyncClient, admin_headers: Dict[str, str]):
    """Create a user with the given role in the admin's school and return (user, auth headers)."""

    async def _make(role: str = "TEACHER", full_name: str = "Tom Teacher"):
        email = unique_email(role.lower())
        response = await client.post(
            "/api/v1/auth/users",
            json={"full_name": full_name, "email": email, "password": PASSWORD, "role": role},
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        return response.json(), await login(client, email)

    return _make


@pytest.fixture()
def make_class(client: AsyncClient, admin_headers: Dict[str, str]):
    async def _make(name: str = "Form 1", **fees):
        response = await client.post(
            "/api/v1/classes", json={"name": name, **fees}, headers=admin_headers
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture()
def make_student(client: AsyncClient, admin_headers: Dict[str, str]):
    async def _make(full_name: str, class_id=None, **extra):
        payload = {
            "student_code": extra.pop("student_code", f"STU-{uuid.uuid4().hex[:8]}"),
            "full_name": full_name,
            "class_id": class_id,
            **extra,
        }
        response = await client.post("/api/v1/students", json=payload, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make
