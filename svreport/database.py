"""Database setup and models using SQLModel."""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(UTC)


def _timestamp():
    # Explicit column type: SQLite stores the UTC wall time without an offset
    return Field(default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False)


# =============================================================================
# Models
# =============================================================================


class OpenSourceFlag(SQLModel, table=True):
    """A software title curated as open source."""

    __tablename__ = "open_source_software"

    id: Optional[int] = Field(default=None, primary_key=True)
    software_title_id: int = Field(unique=True, index=True, nullable=False)
    name: str = Field(nullable=False)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class SoftwareRemark(SQLModel, table=True):
    """Free-text remark attached to a software title."""

    __tablename__ = "software_remarks"

    id: Optional[int] = Field(default=None, primary_key=True)
    software_title_id: int = Field(unique=True, index=True, nullable=False)
    remark: Optional[str] = None  # "" is a saved remark, distinct from no row
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


# =============================================================================
# Database Engine
# =============================================================================


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for *database_url*."""
    return create_async_engine(database_url, echo=echo, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Async session factory bound to *engine*."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
