"""Catalog eligibility filter: which catalog items may go on air."""
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.models.catalog_item import CatalogItem
from presale_radio.services.storage_service import resolve_media_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibleItem:
    id: uuid.UUID
    preview_asset: str
    duration_hint: int | None
    item: CatalogItem
    is_ad: bool = False


def _eligible_clause():
    playable = or_(
        and_(CatalogItem.preview_audio_url.is_not(None), CatalogItem.preview_audio_url != ""),
        and_(CatalogItem.audio_url.is_not(None), CatalogItem.audio_url != ""),
    )
    return and_(
        CatalogItem.is_active.is_(True),
        CatalogItem.is_radio_eligible.is_(True),
        CatalogItem.is_deleted.is_(False),
        playable,
    )


async def list_eligible(db: AsyncSession, limit: int | None = None) -> list[EligibleItem]:
    """Eligible items, highest priority first, then newest first."""
    stmt = (
        select(CatalogItem)
        .where(_eligible_clause())
        .order_by(CatalogItem.priority.desc(), CatalogItem.created_at.desc(), CatalogItem.id)
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    items = []
    for row in result.scalars().all():
        preview = resolve_media_url(row.preview_audio_url or row.audio_url)
        items.append(
            EligibleItem(id=row.id, preview_asset=preview, duration_hint=row.duration_seconds, item=row)
        )
    return items


async def has_eligible(db: AsyncSession) -> bool:
    result = await db.execute(select(func.count()).select_from(CatalogItem).where(_eligible_clause()))
    return (result.scalar() or 0) > 0


async def get_item(db: AsyncSession, item_id: uuid.UUID) -> CatalogItem | None:
    return await db.get(CatalogItem, item_id)


async def record_plays(db: AsyncSession, item_ids: Iterable[uuid.UUID], played_at: datetime) -> None:
    """Bump radio play statistics once per aired track entry."""
    counts = Counter(i for i in item_ids if i is not None)
    for item_id, count in counts.items():
        await db.execute(
            update(CatalogItem)
            .where(CatalogItem.id == item_id)
            .values(
                radio_play_count=CatalogItem.radio_play_count + count,
                last_radio_play_at=played_at,
            )
            .execution_options(synchronize_session=False)
        )
    if counts:
        logger.debug("Recorded radio plays for %d catalog items", len(counts))
