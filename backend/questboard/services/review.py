from __future__ import annotations
import uuid
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from questboard.db import utcnow
from questboard.errors import NotFoundError, ValidationError
from questboard.models.challenge import Task
from questboard.models.progress import TeenProgress
from questboard.models.submission import Submission
from questboard.schemas.submission import SUBMISSION_STATUSES
from questboard.services import events as ev
from questboard.services.progress import recompute_progress

log = structlog.get_logger()


async def review_submission(
    session: AsyncSession,
    submission_id: uuid.UUID,
    *,
    reviewer_id: uuid.UUID,
    status: str,
    score: int | None = None,
    note: str | None = None,
    events: ev.EventBuffer | None = None,
) -> Submission:
    """
    Set the reviewed status (and optionally a score) on a submission, then
    rebuild the teen's progress for the challenge. Omitting the score or the
    note keeps the previous one.
    """
    if status not in SUBMISSION_STATUSES:
        raise ValidationError("Invalid status. Must be one of PENDING, APPROVED, REJECTED")

    sub = await session.get(Submission, submission_id)
    if not sub:
        raise NotFoundError("Submission not found")
    task = await session.get(Task, sub.task_id)

    if score is not None and not (0 <= score <= task.max_score):
        raise ValidationError(f"Score must be between 0 and {task.max_score}")

    previous = sub.status
    sub.status = status
    if score is not None:
        sub.score = score
    sub.reviewer_id = reviewer_id
    sub.reviewed_at = utcnow()
    if note is not None:
        sub.review_note = note
    await session.flush()

    log.info("submission_reviewed", submission_id=str(sub.id), status=status, previous=previous, score=sub.score)
    if status == "APPROVED" and previous != "APPROVED" and events is not None:
        events.emit(ev.task_approved(sub.teen_id, task.id, task.title))

    await recompute_progress(session, sub.teen_id, task.challenge_id, events=events)
    return sub


async def delete_submission(
    session: AsyncSession,
    submission_id: uuid.UUID,
    *,
    events: ev.EventBuffer | None = None,
) -> tuple[TeenProgress, list[str]]:
    """Remove a submission and recompute; returns the new progress and the file URLs left to clean up."""
    sub = await session.get(Submission, submission_id)
    if not sub:
        raise NotFoundError("Submission not found")
    task = await session.get(Task, sub.task_id)
    teen_id, files = sub.teen_id, list(sub.file_urls or [])

    await session.delete(sub)
    await session.flush()
    log.info("submission_deleted", submission_id=str(submission_id), teen_id=str(teen_id))

    progress = await recompute_progress(session, teen_id, task.challenge_id, events=events)
    return progress, files
