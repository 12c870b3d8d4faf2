import pytest
from datetime import datetime, timedelta, timezone

from questboard.models.transaction import Transaction
from questboard.services.transactions import list_teen_transactions, list_transactions

from conftest import bearer

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _seed(session, teen, badge, rows):
    for i, (ref, status, amount) in enumerate(rows):
        session.add(Transaction(
            reference=ref, teen_id=teen.id, badge_id=badge.id, amount_cents=amount, status=status,
            created_at=T0 + timedelta(minutes=i),
            paid_at=T0 + timedelta(minutes=i) if status == "SUCCESS" else None,
        ))
    await session.commit()


@pytest.mark.asyncio
async def test_summary_counts_settled_payments_only(session, factory):
    teen = await factory.teen()
    other = await factory.teen()
    _ch, badge, _ = await factory.challenge(month=1)
    _ch2, badge2, _ = await factory.challenge(month=2)
    await _seed(session, teen, badge, [("cs_1", "SUCCESS", 500), ("cs_2", "FAILED", 500), ("cs_3", "PENDING", 500)])
    await _seed(session, teen, badge2, [("cs_4", "SUCCESS", 300)])
    await _seed(session, other, badge, [("cs_5", "SUCCESS", 999)])

    rows, summary, pagination = await list_teen_transactions(session, teen.id, page=1, limit=3)
    assert summary == {"total_spent_cents": 800, "total_transactions": 2}
    assert pagination == {"total": 4, "page": 1, "limit": 3, "total_pages": 2}
    assert [t.reference for t, _b, _c in rows] == ["cs_4", "cs_3", "cs_2"]
    assert rows[0][2].month == 2

    rows, _summary, _ = await list_teen_transactions(session, teen.id, page=2, limit=3)
    assert [t.reference for t, _b, _c in rows] == ["cs_1"]


@pytest.mark.asyncio
async def test_teen_with_no_payments(session, factory):
    teen = await factory.teen()
    rows, summary, pagination = await list_teen_transactions(session, teen.id)
    assert rows == []
    assert summary == {"total_spent_cents": 0, "total_transactions": 0}
    assert pagination["total_pages"] == 0


@pytest.mark.asyncio
async def test_staff_listing_filters(session, factory):
    ada = await factory.teen(name="Ada Lovelace")
    bob = await factory.teen(name="Bob")
    _ch, badge, _ = await factory.challenge()
    await _seed(session, ada, badge, [("cs_a1", "SUCCESS", 500), ("cs_a2", "FAILED", 500)])
    await _seed(session, bob, badge, [("cs_b1", "SUCCESS", 500)])

    rows, pagination = await list_transactions(session, status="SUCCESS")
    assert sorted(t.reference for t, _b, _c in rows) == ["cs_a1", "cs_b1"]
    assert pagination["total"] == 2

    rows, pagination = await list_transactions(session, search="lovelace")
    assert sorted(t.reference for t, _b, _c in rows) == ["cs_a1", "cs_a2"]
    assert pagination["total"] == 2

    rows, _ = await list_transactions(session, teen_id=bob.id)
    assert [t.reference for t, _b, _c in rows] == ["cs_b1"]


@pytest.mark.asyncio
async def test_transaction_routes(client, session, factory):
    teen = await factory.teen()
    staff = await factory.staff(role="STAFF")
    _ch, badge, _ = await factory.challenge()
    await _seed(session, teen, badge, [("cs_r1", "SUCCESS", 500), ("cs_r2", "FAILED", 500)])

    r = await client.get("/badges/transactions", headers=bearer(teen.id))
    assert r.status_code == 200, r.text
    data = r.json()
    assert [t["reference"] for t in data["transactions"]] == ["cs_r2", "cs_r1"]
    assert data["transactions"][0]["badge_name"] == badge.name
    assert data["summary"] == {"total_spent_cents": 500, "total_transactions": 1}

    assert (await client.get("/payments/transactions", headers=bearer(teen.id))).status_code == 403
    r = await client.get("/payments/transactions?status=FAILED", headers=bearer(staff.id, "staff"))
    assert r.status_code == 200
    assert [t["reference"] for t in r.json()["transactions"]] == ["cs_r2"]

    r = await client.get(f"/payments/transactions/teens/{teen.id}", headers=bearer(staff.id, "staff"))
    assert r.status_code == 200
    assert r.json()["pagination"]["total"] == 2
