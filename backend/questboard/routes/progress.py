from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession
from questboard.db import get_session
from questboard.auth_deps import get_current_teen
from questboard.models.teen import Teen
from questboard.schemas.progress import ProgressPublic, YearlyProgress
from questboard.services import progress as svc
from questboard.services.events import EventBuffer, RQEventPublisher, get_event_buffer, get_event_publisher

router = APIRouter(prefix="/progress", tags=["progress"])

@router.get("/challenges/{challenge_id}", response_model=ProgressPublic | None)
async def challenge_progress(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    p = await svc.get_progress(session, teen.id, challenge_id)
    return ProgressPublic.model_validate(p, from_attributes=True) if p else None

@router.post("/challenges/{challenge_id}/recompute", response_model=ProgressPublic)
async def recompute(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    p = await svc.recompute_progress(session, teen.id, challenge_id, events=events)
    await session.commit()
    publisher.publish(events.drain())
    return ProgressPublic.model_validate(p, from_attributes=True)

@router.get("/years/{year}", response_model=YearlyProgress)
async def yearly(
    year: int = Path(ge=2020, le=2100),
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    data = await svc.yearly_progress(session, teen.id, year)
    return YearlyProgress(
        year=year,
        progress=[ProgressPublic.model_validate(p, from_attributes=True) for p in data["progress"]],
        stats=data["stats"],
    )
