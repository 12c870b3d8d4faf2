from __future__ import annotations
from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession
from questboard.db import get_session
from questboard.auth_deps import get_current_teen, require_admin, require_staff
from questboard.models.teen import Teen, StaffUser
from questboard.schemas.raffle import (
    DrawCreate, EligibilitySummary, EligibleTeen, RaffleDrawPublic, RaffleEntryPublic,
)
from questboard.services import raffle as svc

router = APIRouter(prefix="/raffle", tags=["raffle"])

class DrawHistoryRow(RaffleDrawPublic):
    current_eligible: int

@router.get("/{year}/eligibility", response_model=EligibilitySummary)
async def eligibility(
    year: int = Path(ge=2020, le=2100),
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    s = await svc.eligibility_summary(session, teen.id, year)
    entry = s.pop("raffle_entry")
    return EligibilitySummary(
        **s,
        raffle_entry=RaffleEntryPublic.model_validate(entry, from_attributes=True) if entry else None,
    )

@router.get("/{year}/eligible", response_model=list[EligibleTeen])
async def eligible(
    year: int = Path(ge=2020, le=2100),
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
):
    rows = await svc.eligible_entries(session, year)
    return [EligibleTeen(teen_id=t.id, name=t.name, email=t.email, age=t.age) for (_e, t) in rows]

@router.post("/draws", response_model=RaffleDrawPublic, status_code=201)
async def draw(
    payload: DrawCreate,
    session: AsyncSession = Depends(get_session),
    _admin: StaffUser = Depends(require_admin),
):
    d = await svc.draw_raffle(session, year=payload.year, prize=payload.prize, description=payload.description)
    await session.commit()
    return RaffleDrawPublic.model_validate(d, from_attributes=True)

@router.get("/draws", response_model=list[DrawHistoryRow])
async def history(
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
):
    rows = await svc.raffle_history(session)
    return [
        DrawHistoryRow(**RaffleDrawPublic.model_validate(d, from_attributes=True).model_dump(), current_eligible=n)
        for (d, n) in rows
    ]
