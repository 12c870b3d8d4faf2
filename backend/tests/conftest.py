import os

# must be set before questboard.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from datetime import datetime, timedelta, timezone
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from questboard.db import Base, get_session
from questboard.main import app
from questboard.models.challenge import Badge, Challenge, Task
from questboard.models.teen import Teen, StaffUser
from questboard.security import make_access_token
from questboard.services.events import get_event_publisher
from questboard.services.storage import get_storage


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def upload(self, data: bytes, mime_type: str) -> str:
        url = f"memory://submissions/{uuid.uuid4().hex}"
        self.objects[url] = data
        return url

    def delete(self, url: str) -> None:
        self.objects.pop(url, None)
        self.deleted.append(url)


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, events):
        self.events.extend(events)

    def names(self):
        return [e.name for e in self.events]


class Factory:
    """Seeds rows directly through the ORM and commits them."""

    def __init__(self, session):
        self.session = session

    async def teen(self, **kw) -> Teen:
        t = Teen(name=kw.pop("name", "Ada"), email=kw.pop("email", f"teen-{uuid.uuid4().hex[:8]}@ex.com"), **kw)
        self.session.add(t)
        await self.session.commit()
        return t

    async def staff(self, role: str = "ADMIN") -> StaffUser:
        s = StaffUser(name="Sam", email=f"staff-{uuid.uuid4().hex[:8]}@ex.com", role=role)
        self.session.add(s)
        await self.session.commit()
        return s

    async def challenge(
        self,
        year: int = 2026,
        month: int = 1,
        tasks: int | list[tuple[str, dict]] = 4,
        published: bool = True,
        with_badge: bool = True,
        price_cents: int = 500,
        live: bool = False,
    ) -> tuple[Challenge, Badge | None, list[Task]]:
        if live:
            now = datetime.now(timezone.utc)
            go_live, closing = now - timedelta(days=1), now + timedelta(days=10)
        else:
            go_live = datetime(year, month, 1, tzinfo=timezone.utc)
            closing = go_live + timedelta(days=27)
        ch = Challenge(
            year=year, month=month, theme=f"Theme {year}-{month:02d}",
            go_live_date=go_live, closing_date=closing, is_published=published,
        )
        self.session.add(ch)
        await self.session.flush()

        badge = None
        if with_badge:
            badge = Badge(challenge_id=ch.id, name=f"Badge {year}-{month:02d}", price_cents=price_cents)
            self.session.add(badge)

        specs = [("TEXT", {})] * tasks if isinstance(tasks, int) else tasks
        rows = []
        for i, (task_type, options) in enumerate(specs):
            t = Task(challenge_id=ch.id, tab_name="Main", title=f"Task {i + 1}", task_type=task_type, options=options, max_score=10)
            self.session.add(t)
            rows.append(t)
        await self.session.commit()
        return ch, badge, rows


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session(engine):
    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as s:
        yield s


@pytest_asyncio.fixture
async def factory(session):
    return Factory(session)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest_asyncio.fixture
async def client(engine, storage, publisher):
    maker = async_sessionmaker(engine, expire_on_commit=False)

    async def _session():
        async with maker() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def bearer(subject, role: str = "teen") -> dict:
    return {"Authorization": f"Bearer {make_access_token(str(subject), role)}"}


TEXT_ANSWER = {"text": "This is my answer to the task."}
