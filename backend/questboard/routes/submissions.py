from __future__ import annotations
from fastapi import APIRouter, Depends, Query, Response, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from questboard.db import get_session
from questboard.auth_deps import get_current_teen, require_staff
from questboard.models.submission import Submission
from questboard.models.teen import Teen, StaffUser
from questboard.schemas.progress import ProgressPublic
from questboard.schemas.submission import ReviewQueue, ReviewRequest, SubmissionPublic, SubmissionStatus
from questboard.schemas.task import TaskType
from questboard.services import review as review_svc
from questboard.services import submissions as svc
from questboard.services.events import EventBuffer, RQEventPublisher, get_event_buffer, get_event_publisher
from questboard.services.media import UploadedFile
from questboard.services.storage import ObjectStorage, delete_quietly, get_storage

router = APIRouter(prefix="/submissions", tags=["submissions"])

def _pub(s: Submission) -> SubmissionPublic:
    return SubmissionPublic(
        id=s.id,
        task_id=s.task_id,
        teen_id=s.teen_id,
        content=s.content or {},
        file_urls=s.file_urls or [],
        status=s.status,
        score=s.score,
        reviewer_id=s.reviewer_id,
        reviewed_at=s.reviewed_at,
        review_note=s.review_note,
        submitted_at=s.submitted_at,
    )

@router.post("", response_model=SubmissionPublic, status_code=201)
async def submit_task(
    response: Response,
    task_id: UUID = Form(...),
    content: str | None = Form(default=None, description="JSON-encoded answer, or plain text for TEXT tasks"),
    files: list[UploadFile] = File(default=[], description="image files for IMAGE tasks"),
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
    storage: ObjectStorage = Depends(get_storage),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    uploads = [
        UploadedFile(filename=f.filename or "upload", content_type=f.content_type or "", data=await f.read())
        for f in files
    ]
    result = await svc.submit_task(session, teen.id, task_id, content, uploads, storage=storage, events=events)
    try:
        await session.commit()
    except Exception:
        delete_quietly(storage, result.new_file_urls)
        raise
    publisher.publish(events.drain())
    delete_quietly(storage, result.stale_file_urls)
    if not result.created:
        response.status_code = 200
    return _pub(result.submission)

@router.get("/mine", response_model=list[SubmissionPublic])
async def my_submissions(
    challenge_id: UUID | None = Query(default=None),
    status: SubmissionStatus | None = Query(default=None),
    task_type: TaskType | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
    teen: Teen = Depends(get_current_teen),
):
    rows = await svc.list_my_submissions(session, teen.id, challenge_id=challenge_id, status=status, task_type=task_type)
    return [_pub(s) for s in rows]

@router.get("/review-queue", response_model=ReviewQueue)
async def review_queue(
    status: SubmissionStatus | None = Query(default=None),
    challenge_id: UUID | None = Query(default=None),
    task_type: TaskType | None = Query(default=None),
    year: int | None = Query(default=None, ge=2020, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=100, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
):
    rows, pagination = await svc.review_queue(
        session, status=status, challenge_id=challenge_id, task_type=task_type,
        year=year, month=month, page=page, limit=limit,
    )
    return ReviewQueue(submissions=[_pub(s) for s in rows], pagination=pagination)

@router.get("/{submission_id}", response_model=SubmissionPublic)
async def get_submission(
    submission_id: UUID,
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
):
    return _pub(await svc.get_submission(session, submission_id))

@router.patch("/{submission_id}/review", response_model=SubmissionPublic)
async def review_submission(
    submission_id: UUID,
    payload: ReviewRequest,
    session: AsyncSession = Depends(get_session),
    staff: StaffUser = Depends(require_staff),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    sub = await review_svc.review_submission(
        session, submission_id,
        reviewer_id=staff.id, status=payload.status, score=payload.score, note=payload.note,
        events=events,
    )
    await session.commit()
    publisher.publish(events.drain())
    return _pub(sub)

@router.delete("/{submission_id}", response_model=ProgressPublic)
async def delete_submission(
    submission_id: UUID,
    session: AsyncSession = Depends(get_session),
    _staff: StaffUser = Depends(require_staff),
    storage: ObjectStorage = Depends(get_storage),
    events: EventBuffer = Depends(get_event_buffer),
    publisher: RQEventPublisher = Depends(get_event_publisher),
):
    progress, files = await review_svc.delete_submission(session, submission_id, events=events)
    await session.commit()
    publisher.publish(events.drain())
    delete_quietly(storage, files)
    return ProgressPublic.model_validate(progress, from_attributes=True)
