"""Async SQLAlchemy implementation of the catalog store.

Tables are declared with SQLAlchemy Core and mirror the columns the decision
layer reads. Schema management belongs to migrations; ``initialize`` only
creates missing tables for local development and tests.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    and_,
    func,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from aviary.adapters.store.base import (
    AbstractCatalogStore,
    DetectionRecord,
    SpeciesRecord,
    SuggestionCandidate,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

species_table = Table(
    "species",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("common_name", String, nullable=False),
    Column("scientific_name", String),
    Column("rarity", String, nullable=False, server_default="common"),
    Column("cover_photo_id", Integer),
    CheckConstraint("rarity IN ('common', 'uncommon', 'rare')", name="ck_species_rarity"),
)

photos_table = Table(
    "photos",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("species_id", Integer, ForeignKey("species.id", ondelete="SET NULL"), index=True),
    Column("upload_date", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("is_favorite", Boolean, nullable=False, server_default="0"),
)

detections_table = Table(
    "detections",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("species_common_name", String, nullable=False),
    Column("species_id", Integer, ForeignKey("species.id", ondelete="SET NULL")),
    Column("yearly_count", Integer, nullable=False, server_default="0"),
    Column("last_heard_at", DateTime(timezone=True)),
    Column("data_year", Integer, nullable=False),
    UniqueConstraint("user_id", "species_common_name", "data_year", name="uq_detections_user_name_year"),
)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlAlchemyCatalogStore(AbstractCatalogStore):
    """Catalog store backed by an async SQLAlchemy engine."""

    def __init__(self, db_url: str, *, echo: bool = False) -> None:
        self.db_url = db_url
        self.engine = create_async_engine(db_url, echo=echo, pool_pre_ping=True)
        self._sessionmaker = async_sessionmaker(
            bind=self.engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
        )

    async def initialize(self) -> None:
        """Create any missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._sessionmaker() as session:
            yield session

    async def count_species_photos(self, species_id: int, user_id: str) -> int:
        stmt = select(func.count()).select_from(photos_table).where(
            photos_table.c.species_id == species_id,
            photos_table.c.user_id == user_id,
        )
        async with self.session() as session:
            return int((await session.execute(stmt)).scalar_one() or 0)

    async def count_unassigned_photos(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(photos_table).where(
            photos_table.c.user_id == user_id,
            photos_table.c.species_id.is_(None),
        )
        async with self.session() as session:
            return int((await session.execute(stmt)).scalar_one() or 0)

    async def list_suggestion_candidates(
        self, user_id: str, *, min_yearly_count: int
    ) -> list[SuggestionCandidate]:
        s, d, p = species_table.c, detections_table.c, photos_table.c
        photo_count = func.count(func.distinct(p.id)).label("photo_count")
        stmt = (
            select(
                s.id,
                s.common_name,
                s.scientific_name,
                s.rarity,
                d.yearly_count,
                d.last_heard_at,
                d.data_year,
                photo_count,
            )
            .select_from(species_table)
            .join(detections_table, and_(d.species_id == s.id, d.user_id == s.user_id))
            .outerjoin(photos_table, and_(p.species_id == s.id, p.user_id == s.user_id))
            .where(s.user_id == user_id, d.yearly_count >= min_yearly_count)
            .group_by(
                d.id,
                s.id,
                s.common_name,
                s.scientific_name,
                s.rarity,
                d.yearly_count,
                d.last_heard_at,
                d.data_year,
            )
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).mappings().all()

        return [
            SuggestionCandidate(
                species_id=row["id"],
                common_name=row["common_name"],
                scientific_name=row["scientific_name"],
                rarity=row["rarity"],
                yearly_count=row["yearly_count"],
                photo_count=int(row["photo_count"] or 0),
                data_year=row["data_year"],
                last_heard_at=_as_utc(row["last_heard_at"]),
            )
            for row in rows
        ]

    async def get_species(self, species_id: int, user_id: str) -> SpeciesRecord | None:
        stmt = select(species_table).where(
            species_table.c.id == species_id,
            species_table.c.user_id == user_id,
        )
        async with self.session() as session:
            row = (await session.execute(stmt)).mappings().first()
        return SpeciesRecord(**row) if row else None

    async def list_species(self, user_id: str) -> list[SpeciesRecord]:
        stmt = (
            select(species_table)
            .where(species_table.c.user_id == user_id)
            .order_by(species_table.c.id)
        )
        async with self.session() as session:
            rows = (await session.execute(stmt)).mappings().all()
        return [SpeciesRecord(**row) for row in rows]

    async def list_detections(
        self, user_id: str, *, unresolved_only: bool = False
    ) -> list[DetectionRecord]:
        stmt = select(detections_table).where(detections_table.c.user_id == user_id)
        if unresolved_only:
            stmt = stmt.where(detections_table.c.species_id.is_(None))
        stmt = stmt.order_by(detections_table.c.id)
        async with self.session() as session:
            rows = (await session.execute(stmt)).mappings().all()
        return [
            DetectionRecord(**{**row, "last_heard_at": _as_utc(row["last_heard_at"])})
            for row in rows
        ]

    async def set_detection_species(self, detection_ids: list[int], species_id: int) -> int:
        if not detection_ids:
            return 0
        stmt = (
            update(detections_table)
            .where(detections_table.c.id.in_(detection_ids))
            .values(species_id=species_id)
        )
        async with self.session() as session:
            result = await session.execute(stmt)
            await session.commit()
        logger.info(
            "store.detections_linked",
            extra={"species_id": species_id, "rows": result.rowcount},
        )
        return int(result.rowcount or 0)
