"""Local augmentation store: open-source flags and remarks per software title.

Both tables are keyed by the upstream software-title id, which is trusted as
given and never checked against the upstream API. Every write is a single
atomic row upsert or delete, so concurrent writers on the same id resolve as
last-write-wins.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from svreport.database import OpenSourceFlag, SoftwareRemark, utcnow
from svreport.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)


def _parse_title_id(value: Any) -> int:
    """Coerce *value* to an integer id or raise ``ValidationError``."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError("software_title_id is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"software_title_id must be an integer, got {value!r}") from None


def _require_title_id(value: Any) -> int:
    """Like ``_parse_title_id``, and 0 counts as missing."""
    title_id = _parse_title_id(value)
    if title_id == 0:
        raise ValidationError("software_title_id is required")
    return title_id


class AugmentationStore:
    """CRUD over the ``open_source_software`` and ``software_remarks`` tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ── Flags ─────────────────────────────────────────────────────

    async def list_flags(self) -> list[OpenSourceFlag]:
        """All flags ordered by name."""
        async with self._session_factory() as session:
            try:
                result = await session.execute(select(OpenSourceFlag).order_by(OpenSourceFlag.name))
                return list(result.scalars().all())
            except SQLAlchemyError as e:
                raise self._storage_error("list flags", e) from e

    async def get_flag(self, software_title_id: int) -> OpenSourceFlag | None:
        title_id = _parse_title_id(software_title_id)
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    select(OpenSourceFlag).where(OpenSourceFlag.software_title_id == title_id)
                )
                return result.scalar_one_or_none()
            except SQLAlchemyError as e:
                raise self._storage_error("get flag", e) from e

    async def upsert_flag(self, software_title_id: Any, name: Any) -> OpenSourceFlag:
        """Insert the flag, or replace its name and bump ``updated_at``."""
        title_id = _require_title_id(software_title_id)
        if name is None or not str(name).strip():
            raise ValidationError("software_title_id and name are required")
        name = str(name)

        now = utcnow()
        stmt = (
            sqlite_insert(OpenSourceFlag)
            .values(software_title_id=title_id, name=name, created_at=now, updated_at=now)
            .on_conflict_do_update(
                index_elements=["software_title_id"],
                set_={"name": name, "updated_at": now},
            )
            .returning(OpenSourceFlag)
        )
        async with self._session_factory() as session:
            try:
                result = await session.scalars(stmt, execution_options={"populate_existing": True})
                flag = result.one()
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise self._storage_error("upsert flag", e) from e

        logger.info("Flagged software title %s as open source (%s)", title_id, name)
        return flag

    async def delete_flag(self, software_title_id: Any) -> bool:
        """Remove the flag; ``False`` if there was nothing to remove."""
        title_id = _parse_title_id(software_title_id)
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    delete(OpenSourceFlag).where(OpenSourceFlag.software_title_id == title_id)
                )
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise self._storage_error("delete flag", e) from e

        deleted = (result.rowcount or 0) > 0
        logger.info("Unflag software title %s: deleted=%s", title_id, deleted)
        return deleted

    # ── Remarks ───────────────────────────────────────────────────

    async def list_remarks(self) -> list[SoftwareRemark]:
        async with self._session_factory() as session:
            try:
                result = await session.execute(select(SoftwareRemark))
                return list(result.scalars().all())
            except SQLAlchemyError as e:
                raise self._storage_error("list remarks", e) from e

    async def get_remark(self, software_title_id: int) -> SoftwareRemark | None:
        title_id = _parse_title_id(software_title_id)
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    select(SoftwareRemark).where(SoftwareRemark.software_title_id == title_id)
                )
                return result.scalar_one_or_none()
            except SQLAlchemyError as e:
                raise self._storage_error("get remark", e) from e

    async def upsert_remark(self, software_title_id: Any, remark: str | None) -> SoftwareRemark:
        """Create or fully overwrite the remark. An empty string is a valid value."""
        title_id = _require_title_id(software_title_id)

        now = utcnow()
        stmt = (
            sqlite_insert(SoftwareRemark)
            .values(software_title_id=title_id, remark=remark, created_at=now, updated_at=now)
            .on_conflict_do_update(
                index_elements=["software_title_id"],
                set_={"remark": remark, "updated_at": now},
            )
            .returning(SoftwareRemark)
        )
        async with self._session_factory() as session:
            try:
                result = await session.scalars(stmt, execution_options={"populate_existing": True})
                row = result.one()
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise self._storage_error("upsert remark", e) from e

        logger.info("Saved remark for software title %s", title_id)
        return row

    # ── Internal ──────────────────────────────────────────────────

    @staticmethod
    def _storage_error(action: str, exc: Exception) -> StorageError:
        logger.exception("Storage failure during %s", action)
        return StorageError(f"Failed to {action}: {exc}")
