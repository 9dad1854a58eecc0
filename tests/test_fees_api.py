from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.core.models import FeePayment

from conftest import login, register_school, unique_email


async def _pay(client: AsyncClient, headers, student_id, amount, fee_type="Tuition", **extra):
    return await client.post(
        "/api/v1/fees",
        json={"student_id": student_id, "fee_type": fee_type, "amount": str(amount), **extra},
        headers=headers,
    )


async def _balance(client: AsyncClient, headers, student_id, fee_type="Tuition", **params):
    response = await client.get(f"/api/v1/fees/student/{student_id}", headers=headers, params=params)
    assert response.status_code == 200, response.text
    line = next(f for f in response.json()["fees"] if f["fee_type"] == fee_type)
    return Decimal(line["balance"]), response.json()


async def _payment_rows(db: AsyncSession, student_id, fee_type="Tuition"):
    stmt = select(FeePayment).where(
        FeePayment.student_id == UUID(student_id), FeePayment.fee_type == fee_type
    )
    return (await db.execute(stmt)).scalars().all()


@pytest.fixture()
async def enrolled(make_class, make_student):
    form = await make_class("Form 1", tuition_fee="50000", pta_fee="5000", bus_fee="0")
    student = await make_student("Alice Ngono", class_id=form["id"])
    return form, student


@pytest.mark.asyncio
async def test_payment_sequence_reduces_balance(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    _, student = enrolled

    assert (await _pay(client, admin_headers, student["id"], 20000)).status_code == 201
    assert (await _pay(client, admin_headers, student["id"], 20000)).status_code == 201
    balance, _ = await _balance(client, admin_headers, student["id"])
    assert balance == Decimal("10000")

    rejected = await _pay(client, admin_headers, student["id"], 15000)
    assert rejected.status_code == 400
    assert rejected.json()["error"] == "Amount exceeds remaining balance for this fee type"
    assert len(await _payment_rows(db_session, student["id"])) == 2

    accepted = await _pay(client, admin_headers, student["id"], 10000)
    assert accepted.status_code == 201
    body = accepted.json()
    assert body["fee_type"] == "Tuition"
    assert Decimal(body["amount"]) == Decimal("10000")
    assert body["student_name"] == "Alice Ngono"

    balance, sheet = await _balance(client, admin_headers, student["id"])
    assert balance == Decimal("0")
    assert Decimal(sheet["total_paid"]) == Decimal("50000")
    assert Decimal(sheet["total_balance"]) == Decimal("5000")


@pytest.mark.asyncio
async def test_fee_type_is_case_insensitive_and_canonical(
    client: AsyncClient, admin_headers, enrolled
) -> None:
    _, student = enrolled
    response = await _pay(client, admin_headers, student["id"], 1000, fee_type="  tuition ")
    assert response.status_code == 201
    assert response.json()["fee_type"] == "Tuition"

    balance, _ = await _balance(client, admin_headers, student["id"])
    assert balance == Decimal("49000")


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-5"])
async def test_non_positive_amount_rejected(client: AsyncClient, admin_headers, enrolled, amount) -> None:
    _, student = enrolled
    response = await _pay(client, admin_headers, student["id"], amount)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid amount"


@pytest.mark.asyncio
async def test_sub_cent_payment_rejected_not_rounded(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    _, student = enrolled
    response = await _pay(client, admin_headers, student["id"], "100.005")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid amount"
    assert await _payment_rows(db_session, student["id"]) == []

    exact = await _pay(client, admin_headers, student["id"], "100.50")
    assert exact.status_code == 201
    assert Decimal(exact.json()["amount"]) == Decimal("100.50")


@pytest.mark.asyncio
async def test_reconcile_to_sub_cent_total_keeps_history(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    _, student = enrolled
    await _pay(client, admin_headers, student["id"], 1000)
    await _pay(client, admin_headers, student["id"], 2000)

    response = await client.put(
        "/api/v1/fees/reconcile",
        json={"student_id": student["id"], "fee_type": "Tuition", "total_amount": "0.004"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid amount"

    rows = await _payment_rows(db_session, student["id"])
    assert sorted(Decimal(str(r.amount)) for r in rows) == [Decimal("1000"), Decimal("2000")]


@pytest.mark.asyncio
async def test_unknown_fee_type_rejected(client: AsyncClient, admin_headers, enrolled) -> None:
    _, student = enrolled
    response = await _pay(client, admin_headers, student["id"], 100, fee_type="Library")
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid fee type"


@pytest.mark.asyncio
async def test_zero_scheduled_type_accepts_nothing(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    _, student = enrolled
    response = await _pay(client, admin_headers, student["id"], 1, fee_type="Bus")
    assert response.status_code == 400
    assert await _payment_rows(db_session, student["id"], "Bus") == []
    balance, _ = await _balance(client, admin_headers, student["id"], fee_type="Bus")
    assert balance == Decimal("0")


@pytest.mark.asyncio
async def test_unknown_student_and_missing_class(
    client: AsyncClient, admin_headers, make_student
) -> None:
    missing = await _pay(client, admin_headers, str(uuid4()), 100)
    assert missing.status_code == 404

    unplaced = await make_student("No Class Kid")
    response = await client.get(f"/api/v1/fees/student/{unplaced['id']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Student is not assigned to a class"


@pytest.mark.asyncio
async def test_class_id_must_match_enrolment(
    client: AsyncClient, admin_headers, enrolled, make_class
) -> None:
    _, student = enrolled
    other = await make_class("Form 2", tuition_fee="10")
    response = await _pay(client, admin_headers, student["id"], 5, class_id=other["id"])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reconcile_replaces_history_with_single_row(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    _, student = enrolled
    for amount in (1000, 2000, 3000):
        assert (await _pay(client, admin_headers, student["id"], amount)).status_code == 201

    response = await client.put(
        "/api/v1/fees/reconcile",
        json={"student_id": student["id"], "fee_type": "tuition", "total_amount": "42000"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["total_amount"]) == Decimal("42000")
    assert Decimal(body["balance"]) == Decimal("8000")

    rows = await _payment_rows(db_session, student["id"])
    assert [Decimal(str(r.amount)) for r in rows] == [Decimal("42000")]


@pytest.mark.asyncio
async def test_reconcile_to_zero_leaves_no_rows(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    _, student = enrolled
    await _pay(client, admin_headers, student["id"], 1000)

    response = await client.put(
        "/api/v1/fees/reconcile",
        json={"student_id": student["id"], "fee_type": "Tuition", "total_amount": "0"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["payment_id"] is None
    assert await _payment_rows(db_session, student["id"]) == []


@pytest.mark.asyncio
async def test_reconcile_above_schedule_leaves_rows_untouched(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    _, student = enrolled
    await _pay(client, admin_headers, student["id"], 1000)
    await _pay(client, admin_headers, student["id"], 2000)

    response = await client.put(
        "/api/v1/fees/reconcile",
        json={"student_id": student["id"], "fee_type": "Tuition", "total_amount": "50000.01"},
        headers=admin_headers,
    )
    assert response.status_code == 400

    rows = await _payment_rows(db_session, student["id"])
    assert sorted(Decimal(str(r.amount)) for r in rows) == [Decimal("1000"), Decimal("2000")]


@pytest.mark.asyncio
async def test_reconcile_requires_privileged_role(
    client: AsyncClient, enrolled, make_user
) -> None:
    _, student = enrolled
    _, teacher_headers = await make_user("TEACHER")
    response = await client.put(
        "/api/v1/fees/reconcile",
        json={"student_id": student["id"], "fee_type": "Tuition", "total_amount": "10"},
        headers=teacher_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_class_rollup_one_entry_per_student_in_name_order(
    client: AsyncClient, admin_headers, make_class, make_student
) -> None:
    form = await make_class("Form 3", tuition_fee="1000", registration_fee="200")
    zoe = await make_student("Zoe Fon", class_id=form["id"])
    ben = await make_student("Ben Abena", class_id=form["id"])
    await _pay(client, admin_headers, zoe["id"], 400)
    await _pay(client, admin_headers, zoe["id"], 200, fee_type="Registration")

    response = await client.get(f"/api/v1/fees/class/{form['id']}", headers=admin_headers)
    assert response.status_code == 200
    rollup = response.json()

    assert [r["student_id"] for r in rollup] == [ben["id"], zoe["id"]]
    by_name = {r["student_name"]: r for r in rollup}
    assert Decimal(by_name["Zoe Fon"]["total_paid"]) == Decimal("600")
    assert Decimal(by_name["Zoe Fon"]["total_balance"]) == Decimal("600")
    assert Decimal(by_name["Ben Abena"]["total_expected"]) == Decimal("1200")
    assert Decimal(by_name["Ben Abena"]["total_balance"]) == Decimal("1200")


@pytest.mark.asyncio
async def test_class_rollup_empty_and_unknown(client: AsyncClient, admin_headers, make_class) -> None:
    form = await make_class("Empty Form")
    response = await client.get(f"/api/v1/fees/class/{form['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == []

    missing = await client.get(f"/api/v1/fees/class/{uuid4()}", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_year_filter_restricts_payments(client: AsyncClient, admin_headers, enrolled) -> None:
    _, student = enrolled
    await _pay(client, admin_headers, student["id"], 1000, paid_at="2024-03-01T10:00:00")
    await _pay(client, admin_headers, student["id"], 2000, paid_at="2025-03-01T10:00:00")

    balance_2024, _ = await _balance(client, admin_headers, student["id"], year=2024)
    balance_all, _ = await _balance(client, admin_headers, student["id"])
    assert balance_2024 == Decimal("49000")
    assert balance_all == Decimal("47000")

    totals = await client.get("/api/v1/fees/total/yearly", headers=admin_headers, params={"year": 2025})
    assert totals.status_code == 200
    tuition = next(i for i in totals.json()["items"] if i["fee_type"] == "Tuition")
    assert Decimal(tuition["total_amount"]) == Decimal("2000")
    assert tuition["payment_count"] == 1
    assert Decimal(totals.json()["grand_total"]) == Decimal("2000")


@pytest.mark.asyncio
async def test_payment_history_delete_and_clear(
    client: AsyncClient, admin_headers, enrolled, db_session: AsyncSession
) -> None:
    form, student = enrolled
    first = (await _pay(client, admin_headers, student["id"], 100, paid_at="2025-01-01T08:00:00")).json()
    await _pay(client, admin_headers, student["id"], 300, paid_at="2025-02-01T08:00:00")
    await _pay(client, admin_headers, student["id"], 50, fee_type="PTA", paid_at="2025-03-01T08:00:00")

    history = await client.get(f"/api/v1/fees/payments/student/{student['id']}", headers=admin_headers)
    assert history.status_code == 200
    assert [p["fee_type"] for p in history.json()] == ["PTA", "Tuition", "Tuition"]
    assert history.json()[0]["class_name"] == form["name"]

    deleted = await client.delete(f"/api/v1/fees/payments/{first['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert len(await _payment_rows(db_session, student["id"])) == 1

    cleared = await client.delete(f"/api/v1/fees/student/{student['id']}", headers=admin_headers)
    assert cleared.status_code == 200
    assert cleared.json()["deleted"] == 2
    count = (
        await db_session.execute(
            select(func.count(FeePayment.id)).where(FeePayment.student_id == UUID(student["id"]))
        )
    ).scalar()
    assert count == 0


@pytest.mark.asyncio
async def test_guardian_sees_only_linked_students(
    client: AsyncClient, admin_headers, make_class, make_student, make_user
) -> None:
    parent, parent_headers = await make_user("PARENT", full_name="Paul Parent")
    form = await make_class("Form 4", tuition_fee="500")
    own = await make_student("Own Child", class_id=form["id"], guardian_user_id=parent["id"])
    other = await make_student("Other Child", class_id=form["id"])

    assert (await client.get(f"/api/v1/fees/student/{own['id']}", headers=parent_headers)).status_code == 200
    hidden = await client.get(f"/api/v1/fees/student/{other['id']}", headers=parent_headers)
    assert hidden.status_code == 404

    paid = await _pay(client, parent_headers, own["id"], 100)
    assert paid.status_code == 201

    rollup = await client.get(f"/api/v1/fees/class/{form['id']}", headers=parent_headers)
    assert [r["student_id"] for r in rollup.json()] == [own["id"]]

    cannot_clear = await client.delete(f"/api/v1/fees/student/{own['id']}", headers=parent_headers)
    assert cannot_clear.status_code == 403


@pytest.mark.asyncio
async def test_fees_are_tenant_scoped(client: AsyncClient, enrolled) -> None:
    _, student = enrolled
    email = unique_email("rival")
    await register_school(client, email, name="Rival School")
    rival_headers = await login(client, email)

    response = await client.get(f"/api/v1/fees/student/{student['id']}", headers=rival_headers)
    assert response.status_code == 404
