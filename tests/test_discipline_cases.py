import pytest
from httpx import AsyncClient


async def _case(client: AsyncClient, headers, student_id, description="Fighting during break", **extra):
    return await client.post(
        "/api/v1/discipline-cases",
        json={"student_id": student_id, "case_description": description, **extra},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_create_case_defaults_to_student_class(
    client: AsyncClient, admin_headers, make_class, make_student
) -> None:
    cl = await make_class("Form 1")
    student = await make_student("Abel Nji", cl["id"], sex="M")

    response = await _case(client, admin_headers, student["id"])
    assert response.status_code == 201
    case = response.json()
    assert case["status"] == "not resolved"
    assert case["class_id"] == cl["id"]
    assert case["class_name"] == "Form 1"
    assert case["student_name"] == "Abel Nji"
    assert case["student_sex"] == "M"
    assert case["recorded_by_name"] == "Grace Admin"
    assert case["resolved_at"] is None


@pytest.mark.asyncio
async def test_create_case_validation(client: AsyncClient, admin_headers, make_student) -> None:
    student = await make_student("Abel Nji")

    unknown = await _case(client, admin_headers, "00000000-0000-0000-0000-000000000000")
    assert unknown.status_code == 404

    blank = await _case(client, admin_headers, student["id"], description="   ")
    assert blank.status_code == 400

    bad_class = await _case(
        client, admin_headers, student["id"], class_id="00000000-0000-0000-0000-000000000000"
    )
    assert bad_class.status_code == 400
    assert bad_class.json()["error"] == "Invalid class"


@pytest.mark.asyncio
async def test_resolve_and_reopen_case(client: AsyncClient, admin_headers, make_student) -> None:
    student = await make_student("Abel Nji")
    case = (await _case(client, admin_headers, student["id"])).json()

    resolved = await client.put(
        f"/api/v1/discipline-cases/{case['id']}/status",
        json={"status": "resolved", "resolution_notes": "Parents met"},
        headers=admin_headers,
    )
    assert resolved.status_code == 200
    body = resolved.json()
    assert body["status"] == "resolved"
    assert body["resolution_notes"] == "Parents met"
    assert body["resolved_at"] is not None
    assert body["resolved_by"] is not None

    reopened = await client.put(
        f"/api/v1/discipline-cases/{case['id']}/status",
        json={"status": "not resolved"},
        headers=admin_headers,
    )
    assert reopened.json()["resolved_at"] is None
    assert reopened.json()["resolved_by"] is None

    invalid = await client.put(
        f"/api/v1/discipline-cases/{case['id']}/status", json={"status": "closed"}, headers=admin_headers
    )
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_list_filters_by_status(client: AsyncClient, admin_headers, make_student) -> None:
    student = await make_student("Abel Nji")
    first = (await _case(client, admin_headers, student["id"], "Late to class")).json()
    await _case(client, admin_headers, student["id"], "Uniform")
    await client.put(
        f"/api/v1/discipline-cases/{first['id']}/status", json={"status": "resolved"}, headers=admin_headers
    )

    everything = await client.get("/api/v1/discipline-cases", headers=admin_headers)
    assert len(everything.json()) == 2

    open_cases = await client.get(
        "/api/v1/discipline-cases", params={"status": "not resolved"}, headers=admin_headers
    )
    assert [c["case_description"] for c in open_cases.json()] == ["Uniform"]


@pytest.mark.asyncio
async def test_delete_one_and_delete_all(
    client: AsyncClient, admin_headers, make_student, make_user
) -> None:
    student = await make_student("Abel Nji")
    first = (await _case(client, admin_headers, student["id"], "One")).json()
    await _case(client, admin_headers, student["id"], "Two")
    await _case(client, admin_headers, student["id"], "Three")

    deleted = await client.delete(f"/api/v1/discipline-cases/{first['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    again = await client.delete(f"/api/v1/discipline-cases/{first['id']}", headers=admin_headers)
    assert again.status_code == 404
    assert again.json()["error"] == "Discipline case not found"

    _, teacher_headers = await make_user("TEACHER")
    assert (await client.delete("/api/v1/discipline-cases", headers=teacher_headers)).status_code == 403

    cleared = await client.delete("/api/v1/discipline-cases", headers=admin_headers)
    assert cleared.json()["deleted"] == 2
    assert (await client.get("/api/v1/discipline-cases", headers=admin_headers)).json() == []
