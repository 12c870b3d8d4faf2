import uuid
import pytest

from conftest import bearer


@pytest.mark.asyncio
async def test_missing_and_garbage_tokens(client):
    assert (await client.get("/badges/mine")).status_code in (401, 403)
    r = await client.get("/badges/mine", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unknown_teen_is_unauthorized(client):
    r = await client.get("/badges/mine", headers=bearer(uuid.uuid4()))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_roles_are_enforced(client, factory):
    teen = await factory.teen()
    staff = await factory.staff(role="STAFF")
    admin = await factory.staff(role="ADMIN")

    assert (await client.get("/submissions/review-queue", headers=bearer(teen.id))).status_code == 403
    assert (await client.get("/badges/mine", headers=bearer(staff.id, "staff"))).status_code == 403
    assert (await client.get("/submissions/review-queue", headers=bearer(staff.id, "staff"))).status_code == 200

    award = {"teen_id": str(teen.id), "badge_id": str(uuid.uuid4())}
    assert (await client.post("/badges/award", headers=bearer(staff.id, "staff"), json=award)).status_code == 403
    # a staff token does not grant admin: the stored role decides
    assert (await client.post("/badges/award", headers=bearer(staff.id, "admin"), json=award)).status_code == 403
    assert (await client.post("/badges/award", headers=bearer(admin.id, "admin"), json=award)).status_code == 404


@pytest.mark.asyncio
async def test_inactive_teen_is_unauthorized(client, factory):
    teen = await factory.teen(is_active=False)
    assert (await client.get("/badges/mine", headers=bearer(teen.id))).status_code == 401
