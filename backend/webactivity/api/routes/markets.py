"""Market listing and per-market sync status routes."""

from datetime import timedelta

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from webactivity.api.deps import AppSettings, DbSession
from webactivity.exceptions import UnknownMarketError
from webactivity.markets import MARKETS, configured_markets, get_market
from webactivity.repositories import (
    PostgresContentPageRepository,
    PostgresSyncRunRepository,
)
from webactivity.services.reconciler import as_utc, utcnow

router = APIRouter()


class MarketResponse(BaseModel):
    """A tracked market."""

    id: str
    name: str
    url: str
    language: str
    timezone: str
    enabled: bool


class MarketListResponse(BaseModel):
    """All known markets."""

    markets: list[MarketResponse]
    total: int


class MarketStatusResponse(BaseModel):
    """Sync status for one market."""

    market: str
    name: str
    total_pages: int
    stale_pages: int
    last_crawled_at: str | None = None
    last_run: dict | None = None


@router.get("", response_model=MarketListResponse)
async def list_markets(settings: AppSettings) -> MarketListResponse:
    """List every market and whether it is synced."""
    enabled = set(configured_markets(settings))
    markets = [
        MarketResponse(
            id=market_id,
            name=config.name,
            url=config.url,
            language=config.language,
            timezone=config.timezone,
            enabled=market_id in enabled,
        )
        for market_id, config in MARKETS.items()
    ]
    return MarketListResponse(markets=markets, total=len(markets))


@router.get("/{market}/status", response_model=MarketStatusResponse)
async def get_market_status(
    market: str,
    db: DbSession,
    settings: AppSettings,
) -> MarketStatusResponse:
    """Page count, last fetch time and refresh backlog for a market."""
    try:
        config = get_market(market)
    except UnknownMarketError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    page_repo = PostgresContentPageRepository(db)
    run_repo = PostgresSyncRunRepository(db)

    stale_before = utcnow() - timedelta(hours=settings.staleness_threshold_hours)
    market_status = await page_repo.get_market_status(market, stale_before)
    last_run = await run_repo.get_latest_by_market(market)
    last_crawled_at = as_utc(market_status.last_crawled_at)

    return MarketStatusResponse(
        market=market,
        name=config.name,
        total_pages=market_status.total_pages,
        stale_pages=market_status.stale_pages,
        last_crawled_at=last_crawled_at.isoformat() if last_crawled_at else None,
        last_run=last_run.to_dict() if last_run else None,
    )
