import pytest

from questboard.errors import DuplicatePurchaseError, NotFoundError
from questboard.services.badges import award_badge, evaluate_earned, get_teen_badge, list_my_badges, purchase_badge
from questboard.services.events import EventBuffer
from questboard.services.review import review_submission
from questboard.services.submissions import submit_task

from conftest import TEXT_ANSWER


async def _complete(session, teen, tasks, events=None):
    subs = []
    for t in tasks:
        subs.append((await submit_task(session, teen.id, t.id, TEXT_ANSWER, events=events)).submission)
    return subs


@pytest.mark.asyncio
async def test_purchase_then_complete_earns(session, factory):
    teen = await factory.teen()
    _ch, badge, tasks = await factory.challenge(tasks=2)
    events = EventBuffer()

    tb = await purchase_badge(session, teen.id, badge.id, events=events)
    assert tb.status == "PURCHASED" and tb.purchased_at is not None

    await _complete(session, teen, tasks, events=events)
    tb = await get_teen_badge(session, teen.id, badge.id)
    assert tb.status == "EARNED" and tb.earned_at is not None
    assert events.names() == ["BadgePurchased", "ChallengeCompleted", "BadgeEarned"]


@pytest.mark.asyncio
async def test_purchase_after_completion_earns_immediately(session, factory):
    teen = await factory.teen()
    _ch, badge, tasks = await factory.challenge(tasks=1)
    await _complete(session, teen, tasks)

    tb = await purchase_badge(session, teen.id, badge.id)
    assert tb.status == "EARNED"


@pytest.mark.asyncio
async def test_completion_without_purchase_does_not_earn(session, factory):
    teen = await factory.teen()
    _ch, badge, tasks = await factory.challenge(tasks=1)
    await _complete(session, teen, tasks)

    assert await evaluate_earned(session, teen.id, badge.id) is None
    assert await get_teen_badge(session, teen.id, badge.id) is None


@pytest.mark.asyncio
async def test_second_purchase_is_rejected(session, factory):
    teen = await factory.teen()
    _ch, badge, _tasks = await factory.challenge()
    await purchase_badge(session, teen.id, badge.id)
    with pytest.raises(DuplicatePurchaseError) as exc:
        await purchase_badge(session, teen.id, badge.id)
    assert exc.value.message == "Badge already purchased"


@pytest.mark.asyncio
async def test_earned_badge_survives_rejection(session, factory):
    teen = await factory.teen()
    staff = await factory.staff()
    _ch, badge, tasks = await factory.challenge(tasks=2)
    await purchase_badge(session, teen.id, badge.id)
    subs = await _complete(session, teen, tasks)

    await review_submission(session, subs[0].id, reviewer_id=staff.id, status="REJECTED")
    tb = await get_teen_badge(session, teen.id, badge.id)
    assert tb.status == "EARNED"


@pytest.mark.asyncio
async def test_award_bypasses_purchase_and_is_idempotent(session, factory):
    teen = await factory.teen()
    _ch, badge, _tasks = await factory.challenge()
    events = EventBuffer()

    tb = await award_badge(session, teen.id, badge.id, events=events)
    assert tb.status == "EARNED"
    again = await award_badge(session, teen.id, badge.id, events=events)
    assert again.status == "EARNED" and again.id == tb.id
    assert events.names() == ["BadgeEarned"]

    with pytest.raises(DuplicatePurchaseError):
        await purchase_badge(session, teen.id, badge.id)


@pytest.mark.asyncio
async def test_inactive_badge_cannot_be_purchased(session, factory):
    teen = await factory.teen()
    _ch, badge, _tasks = await factory.challenge()
    badge.is_active = False
    await session.commit()
    with pytest.raises(NotFoundError):
        await purchase_badge(session, teen.id, badge.id)


@pytest.mark.asyncio
async def test_list_my_badges_by_month(session, factory):
    teen = await factory.teen()
    _c2, b2, _t2 = await factory.challenge(month=2)
    _c1, b1, _t1 = await factory.challenge(month=1)
    await purchase_badge(session, teen.id, b2.id)
    await award_badge(session, teen.id, b1.id)

    rows = await list_my_badges(session, teen.id, 2026)
    assert [(c.month, tb.status) for (tb, _b, c) in rows] == [(1, "EARNED"), (2, "PURCHASED")]
    assert await list_my_badges(session, teen.id, 2025) == []
