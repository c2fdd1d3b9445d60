"""PostgreSQL repository implementations for the read API.

Read-only projections over the content store, using async sessions.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from webactivity.models import ContentPage, PageEvent, SyncRun


@dataclass
class MarketStatus:
    """Snapshot counts for one market."""
    market: str
    total_pages: int
    last_crawled_at: datetime | None
    stale_pages: int


class PostgresContentPageRepository:
    """PostgreSQL implementation of content page repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def count(self, market: str | None = None) -> int:
        """Count pages, optionally for one market."""
        query = select(func.count()).select_from(ContentPage)
        if market:
            query = query.where(ContentPage.market == market)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def count_modified_since(self, market: str, since: datetime) -> int:
        """Count pages of a market whose content changed since a date."""
        result = await self.session.execute(
            select(func.count()).select_from(ContentPage).where(
                ContentPage.market == market,
                ContentPage.last_modified_at >= since,
            )
        )
        return result.scalar_one()

    async def get_last_crawled_at(self, market: str | None = None) -> datetime | None:
        """Most recent successful fetch time."""
        query = select(func.max(ContentPage.last_crawled_at))
        if market:
            query = query.where(ContentPage.market == market)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def count_markets(self) -> int:
        """Number of markets with at least one page."""
        result = await self.session.execute(
            select(func.count(func.distinct(ContentPage.market)))
        )
        return result.scalar_one()

    async def get_market_status(self, market: str, stale_before: datetime) -> MarketStatus:
        """Total pages, last fetch and number of pages due for a refresh.

        Args:
            market: The market id
            stale_before: Pages last crawled before this time count as stale
        """
        stale_result = await self.session.execute(
            select(func.count()).select_from(ContentPage).where(
                ContentPage.market == market,
                ContentPage.last_crawled_at < stale_before,
            )
        )
        return MarketStatus(
            market=market,
            total_pages=await self.count(market),
            last_crawled_at=await self.get_last_crawled_at(market),
            stale_pages=stale_result.scalar_one(),
        )


class PostgresPageEventRepository:
    """PostgreSQL implementation of page event repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_recent(
        self,
        market: str | None = None,
        event_type: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
        language: str | None = None,
    ) -> list[PageEvent]:
        """Activity feed ordered by event time, newest first."""
        query = select(PageEvent)
        if market:
            query = query.where(PageEvent.market == market)
        if language:
            query = query.where(PageEvent.language == language)
        if event_type:
            query = query.where(PageEvent.event_type == event_type)
        if since:
            query = query.where(PageEvent.event_at >= since)
        result = await self.session.execute(
            query.order_by(PageEvent.event_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def count(
        self,
        market: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> int:
        """Count events in an optional market and time window."""
        query = select(func.count()).select_from(PageEvent)
        if market:
            query = query.where(PageEvent.market == market)
        if since:
            query = query.where(PageEvent.event_at >= since)
        if until:
            query = query.where(PageEvent.event_at < until)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def count_by_market(self, since: datetime) -> dict[str, int]:
        """Event counts per market since a date."""
        result = await self.session.execute(
            select(PageEvent.market, func.count())
            .where(PageEvent.event_at >= since)
            .group_by(PageEvent.market)
        )
        return {market: count for market, count in result.all()}

    async def count_by_type(self, since: datetime) -> dict[str, int]:
        """Event counts per event type since a date."""
        result = await self.session.execute(
            select(PageEvent.event_type, func.count())
            .where(PageEvent.event_at >= since)
            .group_by(PageEvent.event_type)
        )
        counts = {"created": 0, "updated": 0}
        counts.update({event_type: count for event_type, count in result.all()})
        return counts


class PostgresSyncRunRepository:
    """PostgreSQL implementation of sync run repository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_recent(self, market: str | None = None, limit: int = 50) -> list[SyncRun]:
        """Latest runs, newest first."""
        query = select(SyncRun)
        if market:
            query = query.where(SyncRun.market == market)
        result = await self.session.execute(
            query.order_by(SyncRun.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_latest_by_market(self, market: str) -> SyncRun | None:
        """Latest run for a market."""
        result = await self.session.execute(
            select(SyncRun)
            .where(SyncRun.market == market)
            .order_by(SyncRun.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
