"""Sync trigger and run log routes."""

import logging

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from webactivity.api.deps import AdminOnly, AppSettings, DbSession
from webactivity.markets import configured_markets
from webactivity.repositories import PostgresSyncRunRepository
from webactivity.workers.tasks import sync_all_markets, sync_market

logger = logging.getLogger(__name__)

router = APIRouter()


class SyncRequest(BaseModel):
    """Options for a manually triggered sync."""

    force_refresh: bool = False
    enrich: bool = True


class SyncQueuedResponse(BaseModel):
    """A sync accepted for background processing."""

    status: str
    task_id: str
    markets: list[str]


class SyncRunListResponse(BaseModel):
    """Recent sync runs."""

    runs: list[dict]
    total: int


@router.post(
    "",
    response_model=SyncQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[AdminOnly],
)
async def trigger_sync_all(
    settings: AppSettings,
    request: SyncRequest | None = None,
) -> SyncQueuedResponse:
    """Queue a sync of every configured market."""
    request = request or SyncRequest()
    markets = configured_markets(settings)

    task = sync_all_markets.delay(
        force_refresh=request.force_refresh,
        enrich=request.enrich,
        trigger_reason="manual",
    )
    logger.info(f"Queued sync for {len(markets)} markets (task {task.id})")

    return SyncQueuedResponse(status="queued", task_id=task.id, markets=markets)


@router.post(
    "/{market}",
    response_model=SyncQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[AdminOnly],
)
async def trigger_sync_market(
    market: str,
    settings: AppSettings,
    request: SyncRequest | None = None,
) -> SyncQueuedResponse:
    """Queue a sync of one market."""
    request = request or SyncRequest()
    if market not in configured_markets(settings):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown market: {market}",
        )

    task = sync_market.delay(
        market,
        force_refresh=request.force_refresh,
        enrich=request.enrich,
        trigger_reason="manual",
    )
    logger.info(f"[{market}] Queued manual sync (task {task.id})")

    return SyncQueuedResponse(status="queued", task_id=task.id, markets=[market])


@router.get("/runs", response_model=SyncRunListResponse)
async def list_sync_runs(
    db: DbSession,
    market: str | None = None,
    limit: int = Query(50, ge=1, le=500),
) -> SyncRunListResponse:
    """Recent sync runs, newest first."""
    runs = await PostgresSyncRunRepository(db).get_recent(market=market, limit=limit)
    return SyncRunListResponse(runs=[run.to_dict() for run in runs], total=len(runs))
