import pytest

from questboard.errors import ConflictError
from questboard.services.badges import award_badge, purchase_badge
from questboard.services.raffle import (
    count_held_badges, draw_raffle, eligibility_summary, eligible_entries, get_entry, raffle_history,
)


async def _year_of_badges(factory, year=2026):
    badges = []
    for month in range(1, 13):
        _ch, badge, _tasks = await factory.challenge(year=year, month=month, tasks=1)
        badges.append(badge)
    return badges


@pytest.mark.asyncio
async def test_eleven_badges_not_eligible_twelfth_flips(session, factory):
    teen = await factory.teen()
    badges = await _year_of_badges(factory)

    for b in badges[:11]:
        await purchase_badge(session, teen.id, b.id)
    entry = await get_entry(session, teen.id, 2026)
    assert entry is not None and entry.is_eligible is False
    assert await count_held_badges(session, teen.id, 2026) == 11

    await purchase_badge(session, teen.id, badges[11].id)
    entry = await get_entry(session, teen.id, 2026)
    assert entry.is_eligible is True

    summary = await eligibility_summary(session, teen.id, 2026)
    assert summary["is_eligible"] is True
    assert (summary["purchased_badges"], summary["required_badges"]) == (12, 12)


@pytest.mark.asyncio
async def test_earned_badges_count_and_other_years_do_not(session, factory):
    teen = await factory.teen()
    badges = await _year_of_badges(factory)
    _old, old_badge, _t = await factory.challenge(year=2025, month=12, tasks=1)

    await purchase_badge(session, teen.id, old_badge.id)
    for b in badges[:6]:
        await award_badge(session, teen.id, b.id)
    for b in badges[6:11]:
        await purchase_badge(session, teen.id, b.id)

    assert await count_held_badges(session, teen.id, 2026) == 11
    assert (await get_entry(session, teen.id, 2026)).is_eligible is False
    assert (await get_entry(session, teen.id, 2025)).is_eligible is False


@pytest.mark.asyncio
async def test_draw_is_write_once(session, factory):
    winner = await factory.teen(name="Winner")
    loser = await factory.teen(name="Close")
    badges = await _year_of_badges(factory)
    for b in badges:
        await purchase_badge(session, winner.id, b.id)
    await purchase_badge(session, loser.id, badges[0].id)

    entries = await eligible_entries(session, 2026)
    assert [t.id for (_e, t) in entries] == [winner.id]

    draw = await draw_raffle(session, year=2026, prize="Laptop", choose=lambda xs: xs[0])
    assert (draw.winner_id, draw.eligible_count) == (winner.id, 1)
    await session.commit()

    with pytest.raises(ConflictError):
        await draw_raffle(session, year=2026, prize="Laptop")

    history = await raffle_history(session)
    assert [(d.year, n) for (d, n) in history] == [(2026, 1)]


@pytest.mark.asyncio
async def test_draw_without_eligible_teens(session, factory):
    await factory.teen()
    with pytest.raises(ConflictError) as exc:
        await draw_raffle(session, year=2026, prize="Laptop")
    assert exc.value.message == "No eligible teens found for this year"
