from dataclasses import asdict
import pytest

from questboard.jobs.notify import store_notifications
from questboard.services import events as ev

from conftest import bearer


@pytest.mark.asyncio
async def test_broadcast_reaches_active_teens_only(session, factory):
    await factory.teen(name="A")
    await factory.teen(name="B")
    await factory.teen(name="Gone", is_active=False)
    event = ev.challenge_published("00000000-0000-0000-0000-000000000001", "Kindness", "Kind Heart")

    assert await store_notifications(session, asdict(event)) == 2


@pytest.mark.asyncio
async def test_list_and_mark_read(client, session, factory):
    teen = await factory.teen()
    other = await factory.teen()
    await store_notifications(session, asdict(ev.badge_earned(teen.id, "b1", "Kind Heart")))
    await store_notifications(session, asdict(ev.badge_earned(other.id, "b1", "Kind Heart")))
    await session.commit()
    hdrs = bearer(teen.id)

    r = await client.get("/notifications", headers=hdrs)
    assert r.status_code == 200
    items = r.json()
    assert [(n["kind"], n["is_read"]) for n in items] == [("BadgeEarned", False)]

    r = await client.post(f"/notifications/{items[0]['id']}/read", headers=hdrs)
    assert r.status_code == 200 and r.json()["is_read"] is True
    assert (await client.get("/notifications?unread=true", headers=hdrs)).json() == []

    r = await client.post(f"/notifications/{items[0]['id']}/read", headers=bearer(other.id))
    assert r.status_code == 404


def test_publisher_swallows_queue_errors(monkeypatch):
    publisher = ev.RQEventPublisher("redis://localhost:1/0", "notifications")

    def broken_queue():
        raise ConnectionError("redis down")

    monkeypatch.setattr(publisher, "_queue", broken_queue)
    publisher.publish([ev.challenge_completed("t1", "c1")])
