from __future__ import annotations
from datetime import datetime, timezone
from typing import AsyncGenerator
from sqlalchemy import JSON
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from questboard.config import settings

class Base(DeclarativeBase):
    pass

# JSONB on Postgres, plain JSON elsewhere (the test-suite runs on SQLite)
JSONType = JSON().with_variant(JSONB(), "postgresql")

engine = create_async_engine(settings.database_url, future=True, echo=False)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def insert_for(session: AsyncSession, model):
    """Dialect-specific INSERT supporting ON CONFLICT for the session's bind."""
    if session.bind.dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
