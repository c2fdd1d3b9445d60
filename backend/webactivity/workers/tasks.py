"""Celery task definitions.

These tasks are thin wrappers that call into the service layer.
The actual business logic lives in the services module.
"""

import logging
import time
from collections.abc import Callable

from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from webactivity.config import get_settings
from webactivity.database import create_sync_session_factory
from webactivity.exceptions import PersistenceError, UnknownMarketError
from webactivity.markets import configured_markets
from webactivity.models import SyncRun
from webactivity.repositories.snapshot_store import SnapshotStore
from webactivity.services.enrichment import get_enricher
from webactivity.services.fetcher import FirecrawlFetcher
from webactivity.services.reconciler import ReconcileOptions, ReconciliationResult, Reconciler
from webactivity.services.sitemap import SitemapReader
from webactivity.workers.celery_app import celery_app

settings = get_settings()
logger = logging.getLogger(__name__)

# Sync engine for Celery tasks (Celery doesn't support async well)
SyncSessionLocal = create_sync_session_factory(settings.database_url)

# The cooperative deadline must trip before Celery interrupts a fetch
SYNC_ALL_SOFT_LIMIT = 3300
SOFT_LIMIT_MARGIN = 60


def _deadline(seconds: float) -> Callable[[], bool]:
    """Cancellation check that trips once the time budget is spent."""
    expires_at = time.monotonic() + seconds
    return lambda: time.monotonic() >= expires_at


def _build_reconciler() -> Reconciler:
    """Wire the reconciler with the process-wide collaborators."""
    return Reconciler.from_settings(
        settings,
        store=SnapshotStore(SyncSessionLocal),
        sitemap_reader=SitemapReader(
            settings.sitemap_user_agent,
            timeout=settings.sitemap_timeout_seconds,
        ),
        fetcher=FirecrawlFetcher(settings),
        enricher=get_enricher(settings),
    )


def _record_run(session, run: SyncRun, result: ReconciliationResult) -> None:
    """Copy a reconciliation result onto its SyncRun row."""
    if result.market_error is not None:
        run.fail(str(result.market_error))
    else:
        run.complete(
            total_pages=result.total_pages,
            new_pages=result.new_pages,
            updated_pages=result.updated_pages,
            errors=result.errors,
            cancelled=result.cancelled,
        )
    session.commit()


def _fail_run(session, run: SyncRun, error: Exception) -> None:
    """Best-effort failure record; the store may be the thing that is down."""
    try:
        session.rollback()
        run.fail(str(error) or type(error).__name__)
        session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Could not record failed sync run: {e}")


@celery_app.task(bind=True, soft_time_limit=600, time_limit=660)
def sync_market(
    self,
    market: str,
    force_refresh: bool = False,
    enrich: bool = True,
    trigger_reason: str = "manual",
) -> dict:
    """Reconcile one market's sitemap with the content store."""
    session = SyncSessionLocal()
    try:
        run = SyncRun(
            market=market,
            trigger_reason=trigger_reason,
            celery_task_id=self.request.id,
        )
        run.start()
        session.add(run)
        session.commit()

        try:
            reconciler = _build_reconciler()
            result = reconciler.reconcile(
                market,
                ReconcileOptions(force_refresh=force_refresh, enrich=enrich),
                should_cancel=_deadline(settings.sync_time_budget_seconds),
            )
        except (UnknownMarketError, ValueError) as e:
            logger.error(f"sync_market failed for {market}: {e}")
            _fail_run(session, run, e)
            return {"error": str(e)}
        except (PersistenceError, SoftTimeLimitExceeded) as e:
            logger.error(f"sync_market aborted for {market}: {e!r}")
            _fail_run(session, run, e)
            raise

        _record_run(session, run, result)
        return result.to_dict()

    finally:
        session.close()


@celery_app.task(bind=True, soft_time_limit=SYNC_ALL_SOFT_LIMIT, time_limit=SYNC_ALL_SOFT_LIMIT + 100)
def sync_all_markets(
    self,
    force_refresh: bool = False,
    enrich: bool = True,
    trigger_reason: str = "scheduled",
) -> dict:
    """Reconcile every configured market, one after another.

    A market whose sitemap cannot be read is reported and skipped.
    """
    session = SyncSessionLocal()
    runs: dict[str, SyncRun] = {}

    def start_run(market: str) -> None:
        run = SyncRun(
            market=market,
            trigger_reason=trigger_reason,
            celery_task_id=self.request.id,
        )
        run.start()
        session.add(run)
        session.commit()
        runs[market] = run

    try:
        markets = configured_markets(settings)
        logger.info(f"Starting sitemap sync for {len(markets)} markets")

        try:
            reconciler = _build_reconciler()
        except ValueError as e:
            logger.error(f"sync_all_markets cannot start: {e}")
            return {"error": str(e)}

        try:
            results = reconciler.reconcile_all(
                ReconcileOptions(force_refresh=force_refresh, enrich=enrich),
                markets=markets,
                should_cancel=_deadline(min(
                    settings.sync_time_budget_seconds * len(markets),
                    SYNC_ALL_SOFT_LIMIT - SOFT_LIMIT_MARGIN,
                )),
                on_market_start=start_run,
            )
        except (PersistenceError, SoftTimeLimitExceeded) as e:
            logger.error(f"sync_all_markets aborted: {e!r}")
            for run in runs.values():
                if run.status == "running":
                    _fail_run(session, run, e)
            raise

        for market, result in results.items():
            _record_run(session, runs[market], result)

        stats = {
            "markets_processed": len(results),
            "total_new_pages": sum(r.new_pages for r in results.values()),
            "total_updated_pages": sum(r.updated_pages for r in results.values()),
            "total_errors": sum(len(r.errors) for r in results.values()),
            "failed_markets": [m for m, r in results.items() if not r.succeeded],
        }
        logger.info(f"Sitemap sync completed: {stats}")
        return {"stats": stats, "results": {m: r.to_dict() for m, r in results.items()}}

    finally:
        session.close()


@celery_app.task(soft_time_limit=600, time_limit=660)
def backfill_enrichment(market: str, limit: int = 50) -> dict:
    """Generate summaries and categories for pages that have none."""
    try:
        reconciler = Reconciler.from_settings(
            settings,
            store=SnapshotStore(SyncSessionLocal),
            sitemap_reader=SitemapReader(settings.sitemap_user_agent),
            fetcher=None,
            enricher=get_enricher(settings),
        )
        return reconciler.backfill_enrichment(market, limit=limit).to_dict()
    except UnknownMarketError as e:
        logger.error(f"backfill_enrichment failed: {e}")
        return {"error": str(e)}


@celery_app.task
def backfill_all_markets(limit: int = 50) -> dict:
    """Dispatch an enrichment backfill per configured market."""
    markets = configured_markets(settings)
    for market in markets:
        backfill_enrichment.delay(market, limit)
    logger.info(f"Dispatched enrichment backfill for {len(markets)} markets")
    return {"markets_dispatched": len(markets)}
