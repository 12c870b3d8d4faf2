from __future__ import annotations
import uuid
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from questboard.db import get_session
from questboard.auth_deps import get_current_teen, require_admin, require_staff
from questboard.models.challenge import Badge, Challenge, Task
from questboard.models.teen import Teen, StaffUser
from questboard.schemas.badge import BadgeCreate, BadgePublic
from questboard.schemas.challenge import ChallengeCreate, ChallengePublic, CurrentChallenge
from questboard.schemas.task import TaskCreate, TaskPublic
from questboard.services import challenges as svc
from questboard.services.events import EventBuffer, RQEventPublisher, get_event_buffer, get_event_publisher

router = APIRouter(prefix="/challenges", tags=["challenges"])

def to_public(ch: Challenge, badge: Badge | None, tasks: list[Task]) -> ChallengePublic:
    return ChallengePublic(
        id=ch.id, year=ch.year, month=ch.month, theme=ch.theme, instructions=ch.instructions,
        go_live_date=ch.go_live_date, closing_date=ch.closing_date,
        is_published=ch.is_published, is_active=ch.is_active, created_at=ch.created_at,
        badge=BadgePublic.model_validate(badge, from_attributes=True) if badge else None,
        tasks=[TaskPublic.model_validate(t, from_attributes=True) for t in tasks],
    )

async def _detail(session: AsyncSession, challenge_id: uuid.UUID) -> ChallengePublic:
    ch, badge, tasks = await svc.challenge_detail(session, challenge_id)
    return to_public(ch, badge, tasks)

@router.post("", response_model=ChallengePublic, status_code=201)
async def create_challenge(
    payload: ChallengeCreate,
    session: AsyncSession = Depends(get_session),
    admin: StaffUser = Depends(require_admin),
):
    ch = await svc.create_challenge(session, payload, created_by_id=admin.id)
    await session.commit()
    return await _detail(session, ch.id)

@router.get("/current", response_model=CurrentChallenge | None)
async def current_challenge(
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    cur = await svc.current_challenge(session, teen.id)
    if cur is None:
        return None
    base = to_public(cur["challenge"], cur["badge"], cur["tasks"])
    return CurrentChallenge(
        **base.model_dump(),
        badge_status=cur["badge_status"],
        percentage=cur["percentage"],
        tasks_completed=cur["tasks_completed"],
    )

@router.get("/{challenge_id}", response_model=ChallengePublic)
async def get_challenge(
    challenge_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
):
    return await _detail(session, challenge_id)

@router.post("/{challenge_id}/badge", response_model=BadgePublic, status_code=201)
async def create_badge(
    challenge_id: uuid.UUID,
    payload: BadgeCreate,
    session: AsyncSession = Depends(get_session),
    _admin: StaffUser = Depends(require_admin),
):
    badge = await svc.create_badge(session, challenge_id, payload)
    await session.commit()
    return BadgePublic.model_validate(badge, from_attributes=True)

@router.post("/{challenge_id}/tasks", response_model=TaskPublic, status_code=201)
async def add_task(
    challenge_id: uuid.UUID,
    payload: TaskCreate,
    session: AsyncSession = Depends(get_session),
    _admin: StaffUser = Depends(require_admin),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    task = await svc.add_task(session, challenge_id, payload, events=events)
    await session.commit()
    publisher.publish(events.drain())
    return TaskPublic.model_validate(task, from_attributes=True)

@router.post("/{challenge_id}/publish", response_model=ChallengePublic)
async def publish_challenge(
    challenge_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    _admin: StaffUser = Depends(require_admin),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    await svc.publish_challenge(session, challenge_id, events=events)
    await session.commit()
    publisher.publish(events.drain())
    return await _detail(session, challenge_id)
