from __future__ import annotations
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence
import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.db import insert_for, utcnow
from questboard.errors import NotFoundError
from questboard.models.challenge import Challenge, Task
from questboard.models.submission import Submission
from questboard.services import events as ev
from questboard.services.media import UploadedFile
from questboard.services.normalizer import NormalizedSubmission, normalize_submission
from questboard.services.progress import recompute_progress
from questboard.services.storage import ObjectStorage, delete_quietly

log = structlog.get_logger()


@dataclass
class SubmitResult:
    submission: Submission
    created: bool
    # files of the replaced submission that are no longer referenced
    stale_file_urls: list[str] = field(default_factory=list)
    # files uploaded for this submission
    new_file_urls: list[str] = field(default_factory=list)


async def submit_task(
    session: AsyncSession,
    teen_id: uuid.UUID,
    task_id: uuid.UUID,
    raw_payload: Any,
    files: Sequence[UploadedFile] = (),
    *,
    storage: ObjectStorage | None = None,
    events: ev.EventBuffer | None = None,
) -> SubmitResult:
    """
    Normalize and store the teen's answer to a task. One row per (task, teen):
    a resubmission replaces the content and puts the row back to APPROVED,
    leaving any earlier score and review fields in place.
    """
    task = await session.get(Task, task_id)
    if not task:
        raise NotFoundError("Task not found")
    challenge = await session.get(Challenge, task.challenge_id)
    if not challenge or not challenge.is_published or not challenge.is_active:
        raise NotFoundError("Challenge is not available")

    normalized = normalize_submission(task, raw_payload, files, storage)
    try:
        return await _store_submission(session, task, teen_id, normalized, events=events)
    except Exception:
        if storage is not None:
            delete_quietly(storage, normalized.file_urls)
        raise


async def _store_submission(
    session: AsyncSession,
    task: Task,
    teen_id: uuid.UUID,
    normalized: NormalizedSubmission,
    *,
    events: ev.EventBuffer | None = None,
) -> SubmitResult:
    task_id = task.id
    prior_files = await session.scalar(
        select(Submission.file_urls).where(Submission.task_id == task_id, Submission.teen_id == teen_id)
    )
    created = prior_files is None

    stmt = insert_for(session, Submission).values(
        id=uuid.uuid4(),
        task_id=task_id,
        teen_id=teen_id,
        content=normalized.content,
        file_urls=normalized.file_urls,
        status="APPROVED",
        submitted_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["task_id", "teen_id"],
        set_={
            "content": stmt.excluded.content,
            "file_urls": stmt.excluded.file_urls,
            "status": "APPROVED",
            "submitted_at": stmt.excluded.submitted_at,
        },
    )
    await session.execute(stmt)
    sub = await session.scalar(
        select(Submission)
        .where(Submission.task_id == task_id, Submission.teen_id == teen_id)
        .execution_options(populate_existing=True)
    )
    log.info("task_submitted", submission_id=str(sub.id), task_id=str(task_id), teen_id=str(teen_id), created=created)

    await recompute_progress(session, teen_id, task.challenge_id, events=events)
    stale = [u for u in (prior_files or []) if u not in normalized.file_urls]
    return SubmitResult(sub, created, stale, list(normalized.file_urls))


async def list_my_submissions(
    session: AsyncSession,
    teen_id: uuid.UUID,
    *,
    challenge_id: uuid.UUID | None = None,
    status: str | None = None,
    task_type: str | None = None,
) -> list[Submission]:
    q = select(Submission).join(Task, Task.id == Submission.task_id).where(Submission.teen_id == teen_id)
    if challenge_id:
        q = q.where(Task.challenge_id == challenge_id)
    if status:
        q = q.where(Submission.status == status)
    if task_type:
        q = q.where(Task.task_type == task_type)
    q = q.order_by(Submission.submitted_at.desc())
    return list((await session.execute(q)).scalars().all())


async def get_submission(session: AsyncSession, submission_id: uuid.UUID) -> Submission:
    sub = await session.get(Submission, submission_id)
    if not sub:
        raise NotFoundError("Submission not found")
    return sub


async def review_queue(
    session: AsyncSession,
    *,
    status: str | None = None,
    challenge_id: uuid.UUID | None = None,
    task_type: str | None = None,
    year: int | None = None,
    month: int | None = None,
    page: int = 1,
    limit: int = 100,
) -> tuple[list[Submission], dict]:
    """Staff listing with filters; newest first."""
    q = (
        select(Submission)
        .join(Task, Task.id == Submission.task_id)
        .join(Challenge, Challenge.id == Task.challenge_id)
    )
    if status:
        q = q.where(Submission.status == status)
    if challenge_id:
        q = q.where(Task.challenge_id == challenge_id)
    if task_type:
        q = q.where(Task.task_type == task_type)
    if year:
        q = q.where(Challenge.year == year)
    if month:
        q = q.where(Challenge.month == month)

    total = await session.scalar(select(func.count()).select_from(q.subquery())) or 0
    rows = (await session.execute(
        q.order_by(Submission.submitted_at.desc()).offset((page - 1) * limit).limit(limit)
    )).scalars().all()
    pagination = {"total": total, "page": page, "limit": limit, "total_pages": math.ceil(total / limit) if limit else 0}
    return list(rows), pagination
