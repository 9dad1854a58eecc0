from decimal import Decimal

import pytest
from httpx import AsyncClient


# ----- Classes -----
@pytest.mark.asyncio
async def test_create_and_update_class_fee_schedule(client: AsyncClient, admin_headers, make_class) -> None:
    cl = await make_class("Form 1", tuition_fee="150000", pta_fee="5000")
    assert Decimal(cl["tuition_fee"]) == Decimal("150000")
    assert Decimal(cl["bus_fee"]) == Decimal("0")
    assert cl["is_active"] is True

    updated = await client.put(
        f"/api/v1/classes/{cl['id']}", json={"bus_fee": "20000"}, headers=admin_headers
    )
    assert updated.status_code == 200
    assert Decimal(updated.json()["bus_fee"]) == Decimal("20000")
    assert Decimal(updated.json()["tuition_fee"]) == Decimal("150000")


@pytest.mark.asyncio
async def test_class_name_unique_case_insensitive(client: AsyncClient, admin_headers, make_class) -> None:
    await make_class("Form 1")
    response = await client.post("/api/v1/classes", json={"name": "  form 1 "}, headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "Class name already exists"


@pytest.mark.asyncio
async def test_negative_fee_is_rejected(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/v1/classes", json={"name": "Form 1", "tuition_fee": "-1"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


@pytest.mark.asyncio
async def test_inactive_classes_hidden_by_default(client: AsyncClient, admin_headers, make_class) -> None:
    cl = await make_class("Form 1")
    await client.put(f"/api/v1/classes/{cl['id']}", json={"is_active": False}, headers=admin_headers)

    assert (await client.get("/api/v1/classes", headers=admin_headers)).json() == []
    everything = await client.get(
        "/api/v1/classes", params={"include_inactive": True}, headers=admin_headers
    )
    assert [c["id"] for c in everything.json()] == [cl["id"]]


@pytest.mark.asyncio
async def test_delete_class_blocked_while_students_enrolled(
    client: AsyncClient, admin_headers, make_class, make_student
) -> None:
    cl = await make_class()
    student = await make_student("Abel Nji", cl["id"])

    blocked = await client.delete(f"/api/v1/classes/{cl['id']}", headers=admin_headers)
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "Cannot delete class with 1 enrolled student(s)"

    await client.delete(f"/api/v1/students/{student['id']}", headers=admin_headers)
    deleted = await client.delete(f"/api/v1/classes/{cl['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/v1/classes/{cl['id']}", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_teacher_reads_classes_but_cannot_write(
    client: AsyncClient, make_class, make_user
) -> None:
    await make_class("Form 1")
    _, teacher_headers = await make_user("TEACHER")

    listed = await client.get("/api/v1/classes", headers=teacher_headers)
    assert [c["name"] for c in listed.json()] == ["Form 1"]
    forbidden = await client.post("/api/v1/classes", json={"name": "Form 2"}, headers=teacher_headers)
    assert forbidden.status_code == 403


# ----- Students -----
@pytest.mark.asyncio
async def test_create_student_with_class(client: AsyncClient, admin_headers, make_class, make_student) -> None:
    cl = await make_class("Form 1")
    student = await make_student("Abel Nji", cl["id"], sex="M", date_of_birth="2012-05-01")

    assert student["class_name"] == "Form 1"
    assert student["sex"] == "M"
    assert student["registration_date"]

    fetched = await client.get(f"/api/v1/students/{student['id']}", headers=admin_headers)
    assert fetched.json()["student_code"] == student["student_code"]


@pytest.mark.asyncio
async def test_student_code_unique(client: AsyncClient, admin_headers, make_student) -> None:
    await make_student("Abel Nji", student_code="STU-001")
    response = await client.post(
        "/api/v1/students",
        json={"student_code": "STU-001", "full_name": "Someone Else"},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["error"] == "Student code already exists"


@pytest.mark.asyncio
async def test_create_student_rejects_foreign_class(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/v1/students",
        json={
            "student_code": "STU-404",
            "full_name": "Lost Student",
            "class_id": "00000000-0000-0000-0000-000000000000",
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid class"


@pytest.mark.asyncio
async def test_list_students_ordered_and_filtered(
    client: AsyncClient, admin_headers, make_class, make_student
) -> None:
    form1 = await make_class("Form 1")
    form2 = await make_class("Form 2")
    await make_student("Zara Moss", form1["id"])
    await make_student("Abel Nji", form1["id"])
    await make_student("Mia Kend", form2["id"])

    everyone = await client.get("/api/v1/students", headers=admin_headers)
    assert [s["full_name"] for s in everyone.json()] == ["Abel Nji", "Mia Kend", "Zara Moss"]

    in_form1 = await client.get("/api/v1/students", params={"class_id": form1["id"]}, headers=admin_headers)
    assert [s["full_name"] for s in in_form1.json()] == ["Abel Nji", "Zara Moss"]


@pytest.mark.asyncio
async def test_guardian_only_sees_linked_students(
    client: AsyncClient, make_class, make_student, make_user
) -> None:
    cl = await make_class()
    parent, parent_headers = await make_user("PARENT", full_name="Pat Parent")
    mine = await make_student("Abel Nji", cl["id"], guardian_user_id=parent["id"])
    other = await make_student("Zara Moss", cl["id"])

    listed = await client.get("/api/v1/students", headers=parent_headers)
    assert [s["id"] for s in listed.json()] == [mine["id"]]
    hidden = await client.get(f"/api/v1/students/{other['id']}", headers=parent_headers)
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_update_and_move_student(client: AsyncClient, admin_headers, make_class, make_student) -> None:
    form1 = await make_class("Form 1")
    form2 = await make_class("Form 2")
    student = await make_student("Abel Nji", form1["id"])

    moved = await client.put(
        f"/api/v1/students/{student['id']}",
        json={"class_id": form2["id"], "full_name": " Abel N. Nji "},
        headers=admin_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["class_name"] == "Form 2"
    assert moved.json()["full_name"] == "Abel N. Nji"


@pytest.mark.asyncio
async def test_delete_student_removes_payments(
    client: AsyncClient, admin_headers, make_class, make_student
) -> None:
    cl = await make_class(tuition_fee="1000")
    student = await make_student("Abel Nji", cl["id"])
    paid = await client.post(
        "/api/v1/fees",
        json={"student_id": student["id"], "fee_type": "Tuition", "amount": "400"},
        headers=admin_headers,
    )
    assert paid.status_code == 201

    deleted = await client.delete(f"/api/v1/students/{student['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/v1/students/{student['id']}", headers=admin_headers)).status_code == 404
