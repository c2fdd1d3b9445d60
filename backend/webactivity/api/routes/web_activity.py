"""Dashboard read routes: activity feed, stats and health scores."""

from datetime import timedelta
from typing import Literal

from fastapi import APIRouter, Query
from pydantic import BaseModel

from webactivity.api.deps import AppSettings, DbSession
from webactivity.markets import MARKETS, configured_markets
from webactivity.repositories import (
    PostgresContentPageRepository,
    PostgresPageEventRepository,
)
from webactivity.services.health import HealthScorer
from webactivity.services.reconciler import as_utc, utcnow

router = APIRouter()


class EventListResponse(BaseModel):
    """Recent change events."""

    count: int
    events: list[dict]


class ActivityStatsResponse(BaseModel):
    """Aggregate activity over a time window."""

    total_pages: int
    total_changes: int
    markets_tracked: int
    last_crawl: str | None = None
    changes_by_market: dict[str, int]
    changes_by_type: dict[str, int]


class HealthScoreResponse(BaseModel):
    """Content health for one market."""

    market: str
    market_name: str
    overall_score: int
    content_freshness: int
    content_coverage: int
    update_frequency: int
    total_pages: int
    recent_updates: int
    trend: str
    status: str
    alerts: list[str]


class HealthScoreListResponse(BaseModel):
    """Health scores for all synced markets."""

    scores: list[HealthScoreResponse]
    average_score: int


@router.get("/events", response_model=EventListResponse)
async def list_events(
    db: DbSession,
    market: str | None = None,
    language: str | None = None,
    event_type: Literal["created", "updated"] | None = None,
    days: int | None = Query(None, ge=1),
    limit: int = Query(100, ge=1, le=1000),
) -> EventListResponse:
    """Change events, newest first."""
    since = utcnow() - timedelta(days=days) if days else None
    events = await PostgresPageEventRepository(db).get_recent(
        market=market,
        event_type=event_type,
        since=since,
        limit=limit,
        language=language,
    )
    return EventListResponse(count=len(events), events=[e.to_dict() for e in events])


@router.get("/stats", response_model=ActivityStatsResponse)
async def get_stats(
    db: DbSession,
    days: int = Query(30, ge=1),
) -> ActivityStatsResponse:
    """Page and change totals for the last `days` days."""
    page_repo = PostgresContentPageRepository(db)
    event_repo = PostgresPageEventRepository(db)
    since = utcnow() - timedelta(days=days)

    last_crawl = as_utc(await page_repo.get_last_crawled_at())

    return ActivityStatsResponse(
        total_pages=await page_repo.count(),
        total_changes=await event_repo.count(since=since),
        markets_tracked=await page_repo.count_markets(),
        last_crawl=last_crawl.isoformat() if last_crawl else None,
        changes_by_market=await event_repo.count_by_market(since),
        changes_by_type=await event_repo.count_by_type(since),
    )


@router.get("/health-scores", response_model=HealthScoreListResponse)
async def get_health_scores(
    db: DbSession,
    settings: AppSettings,
) -> HealthScoreListResponse:
    """Freshness, coverage and update frequency per market."""
    page_repo = PostgresContentPageRepository(db)
    event_repo = PostgresPageEventRepository(db)
    scorer = HealthScorer(expected_pages=settings.health_expected_pages)

    now = utcnow()
    month_ago = now - timedelta(days=30)
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    scores = []
    for market in configured_markets(settings):
        score = scorer.score(
            market=market,
            market_name=MARKETS[market].name,
            total_pages=await page_repo.count(market),
            recently_modified=await page_repo.count_modified_since(market, month_ago),
            recent_events=await event_repo.count(market, since=week_ago),
            previous_events=await event_repo.count(market, since=two_weeks_ago, until=week_ago),
        )
        scores.append(
            HealthScoreResponse(
                market=score.market,
                market_name=score.market_name,
                overall_score=score.overall_score,
                content_freshness=score.content_freshness,
                content_coverage=score.content_coverage,
                update_frequency=score.update_frequency,
                total_pages=score.total_pages,
                recent_updates=score.recent_updates,
                trend=score.trend,
                status=score.status,
                alerts=score.alerts,
            )
        )

    scores.sort(key=lambda s: s.overall_score, reverse=True)
    average = round(sum(s.overall_score for s in scores) / len(scores)) if scores else 0
    return HealthScoreListResponse(scores=scores, average_score=average)
