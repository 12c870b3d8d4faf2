import io
import json
import pytest
from PIL import Image
from sqlalchemy import select, func

from questboard.errors import NotFoundError
from questboard.models.submission import Submission
from questboard.services.review import review_submission
from questboard.services.submissions import list_my_submissions, review_queue, submit_task

from conftest import TEXT_ANSWER, bearer


def _png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (3, 3)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.asyncio
async def test_resubmission_reuses_row_and_resets_status(session, factory):
    teen = await factory.teen()
    staff = await factory.staff()
    _ch, _badge, tasks = await factory.challenge(tasks=2)

    first = await submit_task(session, teen.id, tasks[0].id, TEXT_ANSWER)
    assert first.created is True
    await review_submission(session, first.submission.id, reviewer_id=staff.id, status="REJECTED", score=3)

    second = await submit_task(session, teen.id, tasks[0].id, {"text": "A better second attempt."})
    assert second.created is False
    assert second.submission.id == first.submission.id
    assert second.submission.status == "APPROVED"
    assert second.submission.score == 3
    assert second.submission.content == {"text": "A better second attempt."}

    count = await session.scalar(select(func.count()).select_from(Submission).where(Submission.teen_id == teen.id))
    assert count == 1


@pytest.mark.asyncio
async def test_unpublished_challenge_rejects_submission(session, factory):
    teen = await factory.teen()
    _ch, _badge, tasks = await factory.challenge(published=False)
    with pytest.raises(NotFoundError) as exc:
        await submit_task(session, teen.id, tasks[0].id, TEXT_ANSWER)
    assert exc.value.message == "Challenge is not available"


@pytest.mark.asyncio
async def test_listing_and_queue_filters(session, factory):
    teen = await factory.teen()
    staff = await factory.staff()
    ch, _badge, tasks = await factory.challenge(tasks=3)
    subs = [(await submit_task(session, teen.id, t.id, TEXT_ANSWER)).submission for t in tasks]
    await review_submission(session, subs[1].id, reviewer_id=staff.id, status="PENDING")

    assert len(await list_my_submissions(session, teen.id, challenge_id=ch.id)) == 3
    assert [s.id for s in await list_my_submissions(session, teen.id, status="PENDING")] == [subs[1].id]

    rows, page = await review_queue(session, status="APPROVED", year=2026, month=1, limit=1)
    assert len(rows) == 1
    assert page == {"total": 2, "page": 1, "limit": 1, "total_pages": 2}


@pytest.mark.asyncio
async def test_submit_route_created_then_updated(client, factory, publisher):
    teen = await factory.teen()
    _ch, _badge, tasks = await factory.challenge(tasks=1)
    hdrs = bearer(teen.id)

    r = await client.post("/submissions", headers=hdrs, data={"task_id": str(tasks[0].id), "content": json.dumps(TEXT_ANSWER)})
    assert r.status_code == 201, r.text
    assert r.json()["status"] == "APPROVED"
    assert "ChallengeCompleted" in publisher.names()

    r = await client.post("/submissions", headers=hdrs, data={"task_id": str(tasks[0].id), "content": "Plain text answer here"})
    assert r.status_code == 200, r.text
    assert r.json()["content"] == {"text": "Plain text answer here"}


@pytest.mark.asyncio
async def test_submit_route_validation_message(client, factory):
    teen = await factory.teen()
    _ch, _badge, tasks = await factory.challenge(tasks=1)
    r = await client.post("/submissions", headers=bearer(teen.id), data={"task_id": str(tasks[0].id), "content": "short"})
    assert r.status_code == 400
    assert r.json() == {"detail": "Text must be at least 10 characters long"}


@pytest.mark.asyncio
async def test_image_resubmission_cleans_old_files(client, factory, storage):
    teen = await factory.teen()
    _ch, _badge, tasks = await factory.challenge(tasks=[("IMAGE", {})])
    hdrs = bearer(teen.id)
    form = {"task_id": str(tasks[0].id), "content": json.dumps({"description": "sunset"})}

    r = await client.post("/submissions", headers=hdrs, data=form, files=[("files", ("a.png", _png(), "image/png"))])
    assert r.status_code == 201, r.text
    old_urls = r.json()["file_urls"]
    assert len(old_urls) == 1 and r.json()["content"] == {"description": "sunset", "imageCount": 1}

    r = await client.post("/submissions", headers=hdrs, data=form, files=[("files", ("b.png", _png(), "image/png"))])
    assert r.status_code == 200, r.text
    assert storage.deleted == old_urls


@pytest.mark.asyncio
async def test_review_route_and_queue(client, factory):
    teen = await factory.teen()
    staff = await factory.staff(role="STAFF")
    _ch, _badge, tasks = await factory.challenge(tasks=1)
    r = await client.post("/submissions", headers=bearer(teen.id), data={"task_id": str(tasks[0].id), "content": json.dumps(TEXT_ANSWER)})
    sub_id = r.json()["id"]
    staff_hdrs = bearer(staff.id, "staff")

    r = await client.patch(f"/submissions/{sub_id}/review", headers=staff_hdrs, json={"status": "APPROVED", "score": 11})
    assert r.status_code == 400
    assert r.json()["detail"] == "Score must be between 0 and 10"

    r = await client.patch(f"/submissions/{sub_id}/review", headers=staff_hdrs, json={"status": "REJECTED", "score": 4})
    assert r.status_code == 200
    assert (r.json()["status"], r.json()["score"]) == ("REJECTED", 4)

    r = await client.get("/submissions/review-queue?status=REJECTED", headers=staff_hdrs)
    assert r.status_code == 200
    assert r.json()["pagination"]["total"] == 1

    r = await client.get(f"/progress/challenges/{tasks[0].challenge_id}", headers=bearer(teen.id))
    assert r.json()["percentage"] == 0
