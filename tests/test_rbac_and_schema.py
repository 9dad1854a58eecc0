import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from school_admin.core.enums import Role, is_privileged
from school_admin.core.models import SchemaMigration
from school_admin.db.schema import SCHEMA_VERSION, ensure_schema

from conftest import login, register_school, unique_email


@pytest.mark.parametrize(
    "role, expected",
    [
        ("SUPER_ADMIN", True),
        ("ADMIN", True),
        ("PRINCIPAL", True),
        ("BURSAR", True),
        ("TEACHER", False),
        ("PARENT", False),
        ("DISCIPLINE_MASTER", False),
        ("janitor", False),
        (None, False),
        (Role.ADMIN, True),
    ],
)
def test_is_privileged(role, expected) -> None:
    assert is_privileged(role) is expected


@pytest.mark.asyncio
async def test_ensure_schema_is_idempotent(engine: AsyncEngine) -> None:
    # The engine fixture already applied every migration once
    assert await ensure_schema(engine) == SCHEMA_VERSION

    async with engine.connect() as conn:
        versions = (await conn.execute(select(SchemaMigration.version))).scalars().all()
    assert versions == list(range(1, SCHEMA_VERSION + 1))


@pytest.mark.asyncio
async def test_activity_log_lists_mutations(client: AsyncClient, admin_headers, make_class) -> None:
    cl = await make_class("Form 1")
    await client.put(f"/api/v1/classes/{cl['id']}", json={"tuition_fee": "1000"}, headers=admin_headers)

    response = await client.get(
        "/api/v1/activity", params={"entity_type": "class"}, headers=admin_headers
    )
    assert response.status_code == 200
    entries = response.json()
    assert {e["activity_type"] for e in entries} == {"create", "update"}
    assert all(e["entity_id"] == cl["id"] for e in entries)
    assert all(e["entity_name"] == "Form 1" for e in entries)


@pytest.mark.asyncio
async def test_activity_log_is_privileged(client: AsyncClient, make_user) -> None:
    _, teacher_headers = await make_user("TEACHER")
    response = await client.get("/api/v1/activity", headers=teacher_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_activity_log_scoped_to_tenant(client: AsyncClient, admin_headers, make_class) -> None:
    await make_class("Form 1")
    other_email = unique_email("other")
    await register_school(client, other_email, name="Hillside School")
    other_headers = await login(client, other_email)

    response = await client.get("/api/v1/activity", params={"entity_type": "class"}, headers=other_headers)
    assert response.json() == []
