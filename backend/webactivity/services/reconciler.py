"""Sitemap-driven incremental content sync.

For each market, the sitemap is diffed against stored snapshots. New pages
and refresh candidates are fetched one at a time in sitemap order, with a
fixed delay between fetches. Each outcome is committed before the next URL
starts. URL and sitemap failures are collected into the result; only
storage failures are raised.
"""

import enum
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

from webactivity.config import Settings
from webactivity.exceptions import (
    EnrichmentError,
    FetchError,
    ReconciliationError,
    SitemapFetchError,
    UnknownMarketError,
)
from webactivity.markets import MARKETS, MarketConfig, configured_markets
from webactivity.models import TITLE_MAX_LENGTH, ContentPage, EventType
from webactivity.repositories.snapshot_store import SnapshotStore
from webactivity.services.enrichment import Enricher
from webactivity.services.fetcher import FetchedPage, Fetcher
from webactivity.services.page_classifier import PageClassifier, get_classifier
from webactivity.services.sitemap import SitemapEntry, SitemapReader

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def calculate_change_pct(old_word_count: int, new_word_count: int) -> int:
    """Relative word count delta in whole percent.

    A previous count of zero has no meaningful ratio and yields 0.
    """
    if old_word_count == 0:
        return 0
    return round((new_word_count - old_word_count) / old_word_count * 100)


class UrlAction(str, enum.Enum):
    """What a sitemap entry needs."""

    NEW = "new"
    REFRESH = "refresh"
    SKIP = "skip"


class OutcomeStatus(str, enum.Enum):
    """How processing a single URL ended."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ReconcileOptions:
    """Per-run switches."""
    force_refresh: bool = False
    enrich: bool = False


@dataclass
class UrlOutcome:
    """Result of processing one sitemap entry."""
    url: str
    status: OutcomeStatus
    change_pct: int = 0
    error: ReconciliationError | None = None
    warnings: list[ReconciliationError] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    """Per-market report of a reconciliation run."""
    market: str
    total_pages: int = 0
    new_pages: int = 0
    updated_pages: int = 0
    unchanged_pages: int = 0
    skipped_pages: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes: list[UrlOutcome] = field(default_factory=list)
    market_error: ReconciliationError | None = None
    cancelled: bool = False
    duration: float = 0.0

    def record(self, outcome: UrlOutcome) -> None:
        """Fold a URL outcome into the counters and error list."""
        self.outcomes.append(outcome)
        if outcome.status is OutcomeStatus.CREATED:
            self.new_pages += 1
        elif outcome.status is OutcomeStatus.UPDATED:
            self.updated_pages += 1
        elif outcome.status is OutcomeStatus.UNCHANGED:
            self.unchanged_pages += 1
        elif outcome.status is OutcomeStatus.SKIPPED:
            self.skipped_pages += 1

        if outcome.error is not None:
            self.errors.append(str(outcome.error))
        self.errors.extend(str(w) for w in outcome.warnings)

    def fail_market(self, error: ReconciliationError) -> None:
        """Record an error that prevented the market from being processed."""
        self.market_error = error
        self.errors.append(str(error))

    @property
    def succeeded(self) -> bool:
        return self.market_error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "market": self.market,
            "total_pages": self.total_pages,
            "new_pages": self.new_pages,
            "updated_pages": self.updated_pages,
            "unchanged_pages": self.unchanged_pages,
            "skipped_pages": self.skipped_pages,
            "errors": list(self.errors),
            "cancelled": self.cancelled,
            "duration": round(self.duration, 2),
        }


@dataclass
class EnrichmentReport:
    """Result of enriching stored pages that have no summary."""
    market: str
    enriched: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"market": self.market, "enriched": self.enriched, "errors": list(self.errors)}


class Reconciler:
    """Brings the content store in line with each market's sitemap."""

    def __init__(
        self,
        store: SnapshotStore,
        sitemap_reader: SitemapReader,
        fetcher: Fetcher,
        enricher: Enricher | None = None,
        *,
        markets: Mapping[str, MarketConfig] | None = None,
        classifier: PageClassifier | None = None,
        request_delay: float = 2.0,
        staleness_threshold: timedelta = timedelta(days=7),
        skip_utility_pages: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.sitemap_reader = sitemap_reader
        self.fetcher = fetcher
        self.enricher = enricher
        self.markets = markets if markets is not None else MARKETS
        self.classifier = classifier or get_classifier()
        self.request_delay = request_delay
        self.staleness_threshold = staleness_threshold
        self.skip_utility_pages = skip_utility_pages
        self.sleep = sleep
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: SnapshotStore,
        sitemap_reader: SitemapReader,
        fetcher: Fetcher,
        enricher: Enricher | None = None,
    ) -> "Reconciler":
        """Build a reconciler for the configured markets."""
        return cls(
            store,
            sitemap_reader,
            fetcher,
            enricher,
            markets={m: MARKETS[m] for m in configured_markets(settings)},
            request_delay=settings.request_delay_seconds,
            staleness_threshold=timedelta(hours=settings.staleness_threshold_hours),
            skip_utility_pages=settings.skip_utility_pages,
        )

    def _get_config(self, market: str) -> MarketConfig:
        if market not in self.markets:
            raise UnknownMarketError(market)
        return self.markets[market]

    def classify_entry(
        self,
        entry: SitemapEntry,
        snapshot: ContentPage | None,
        options: ReconcileOptions,
    ) -> UrlAction:
        """Decide whether an entry is new, due for a refresh, or up to date."""
        if snapshot is None:
            return UrlAction.NEW
        if options.force_refresh:
            return UrlAction.REFRESH

        last_crawled = as_utc(snapshot.last_crawled_at)
        if last_crawled is None or self.clock() - last_crawled > self.staleness_threshold:
            return UrlAction.REFRESH

        sitemap_lastmod = as_utc(entry.last_modified)
        stored_lastmod = as_utc(snapshot.last_modified_at)
        if sitemap_lastmod and (stored_lastmod is None or sitemap_lastmod > stored_lastmod):
            return UrlAction.REFRESH

        return UrlAction.SKIP

    def reconcile(
        self,
        market: str,
        options: ReconcileOptions | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> ReconciliationResult:
        """Sync one market's sitemap into the content store.

        Raises:
            UnknownMarketError: If the market is not configured.
            PersistenceError: If the content store rejects a write.
        """
        options = options or ReconcileOptions()
        config = self._get_config(market)
        result = ReconciliationResult(market=market)
        started = time.monotonic()

        logger.info(f"[{market}] Starting sitemap sync for {config.url}")

        try:
            entries = list(self.sitemap_reader.iter_entries(market))
        except SitemapFetchError as e:
            logger.error(f"[{market}] Skipping market: {e}")
            result.fail_market(e)
            result.duration = time.monotonic() - started
            return result

        result.total_pages = len(entries)
        logger.info(f"[{market}] Found {len(entries)} pages in sitemap")

        fetched = 0
        for entry in entries:
            if should_cancel is not None and should_cancel():
                logger.warning(f"[{market}] Sync cancelled after {fetched} fetches")
                result.cancelled = True
                break

            if self.skip_utility_pages and entry.content_type == "utility":
                result.record(UrlOutcome(entry.url, OutcomeStatus.SKIPPED))
                continue

            snapshot = self.store.get_by_url(entry.url)
            action = self.classify_entry(entry, snapshot, options)
            if action is UrlAction.SKIP:
                result.record(UrlOutcome(entry.url, OutcomeStatus.SKIPPED))
                continue

            # Rate limit the crawling API
            if fetched and self.request_delay > 0:
                self.sleep(self.request_delay)
            fetched += 1

            result.record(self._sync_url(market, config, entry, snapshot, options))

        result.duration = time.monotonic() - started
        logger.info(
            f"[{market}] Completed in {result.duration:.0f}s - "
            f"New: {result.new_pages}, Updated: {result.updated_pages}, "
            f"Unchanged: {result.unchanged_pages}, Errors: {len(result.errors)}"
        )
        return result

    def reconcile_all(
        self,
        options: ReconcileOptions | None = None,
        markets: Iterable[str] | None = None,
        should_cancel: CancelCheck | None = None,
        on_market_start: Callable[[str], None] | None = None,
    ) -> dict[str, ReconciliationResult]:
        """Sync every market; a failing market never stops the others.

        Markets not reached before cancellation are left out of the result.
        `on_market_start` is called with each market id just before it is
        reconciled.
        """
        results: dict[str, ReconciliationResult] = {}
        for market in list(markets) if markets is not None else list(self.markets):
            if should_cancel is not None and should_cancel():
                logger.warning(f"Sync cancelled before market {market}")
                break
            if on_market_start is not None:
                on_market_start(market)
            try:
                results[market] = self.reconcile(market, options, should_cancel)
            except UnknownMarketError as e:
                logger.error(str(e))
                results[market] = ReconciliationResult(market=market)
                results[market].fail_market(e)
        return results

    def _sync_url(
        self,
        market: str,
        config: MarketConfig,
        entry: SitemapEntry,
        snapshot: ContentPage | None,
        options: ReconcileOptions,
    ) -> UrlOutcome:
        """Fetch one URL and persist what changed."""
        try:
            page = self.fetcher.fetch(entry.url)
        except FetchError as e:
            logger.error(f"[{market}] {e}")
            return UrlOutcome(entry.url, OutcomeStatus.FAILED, error=e)
        except Exception as e:
            logger.error(f"[{market}] Unexpected fetch error for {entry.url}: {e}")
            return UrlOutcome(entry.url, OutcomeStatus.FAILED, error=FetchError(entry.url, e))

        now = self.clock()
        new_hash = page.content_hash

        if snapshot is not None and snapshot.content_hash == new_hash:
            self.store.mark_crawled(entry.url, now)
            logger.info(f"[{market}] No changes: {entry.url}")
            return UrlOutcome(entry.url, OutcomeStatus.UNCHANGED)

        values = self._snapshot_values(market, config, entry, page, now)

        warnings: list[ReconciliationError] = []
        if options.enrich and self.enricher is not None:
            enriched, warnings = self._enrich(page, config.language)
            values.update(enriched)

        if snapshot is None:
            change_pct = 0
            values["created_at"] = now
            event = {
                "event_type": EventType.CREATED.value,
                "change_pct": change_pct,
                "event_at": entry.last_modified or now,
            }
            status = OutcomeStatus.CREATED
        else:
            change_pct = calculate_change_pct(snapshot.word_count, page.word_count)
            values["updated_at"] = now
            event = {
                "event_type": EventType.UPDATED.value,
                "change_pct": change_pct,
                "event_at": now,
            }
            status = OutcomeStatus.UPDATED

        self.store.upsert(values, event)
        logger.info(f"[{market}] {status.value.capitalize()} page ({change_pct:+d}%): {entry.url}")
        return UrlOutcome(entry.url, status, change_pct=change_pct, warnings=warnings)

    def _snapshot_values(
        self,
        market: str,
        config: MarketConfig,
        entry: SitemapEntry,
        page: FetchedPage,
        now: datetime,
    ) -> dict[str, Any]:
        """Column values for a freshly fetched page."""
        parsed = urlparse(entry.url)
        return {
            "url": entry.url,
            "market": market,
            "language": config.language,
            "domain": parsed.hostname,
            "path": parsed.path,
            "title": page.title[:TITLE_MAX_LENGTH] if page.title else page.title,
            "description": page.description,
            "text_content": page.text,
            "word_count": page.word_count,
            "content_hash": page.content_hash,
            "is_article": entry.is_article,
            "publish_date": entry.last_modified,
            "signals": self.classifier.extract_signals(entry.url, page.text, page.html),
            "content_type": self.classifier.detect_content_type(entry.url, page.text),
            # Enrichment describes the previous content until regenerated
            "summary": None,
            "summary_en": None,
            "category": None,
            "confidence": None,
            "keywords": None,
            "last_crawled_at": now,
            "last_modified_at": entry.last_modified or now,
        }

    def _enrich(
        self,
        page: FetchedPage,
        language: str,
    ) -> tuple[dict[str, Any], list[ReconciliationError]]:
        """Run both enrichment hooks, collecting failures instead of raising."""
        fields: dict[str, Any] = {}
        failures: list[ReconciliationError] = []

        try:
            summary = self.enricher.summarize(page.text, language)
            fields["summary"] = summary.original
            fields["summary_en"] = summary.english
        except Exception as e:
            logger.warning(f"Failed to summarize {page.url}: {e}")
            failures.append(EnrichmentError(page.url, "summarization", e))

        try:
            categorization = self.enricher.categorize(page.text, page.title, page.url)
            fields["category"] = categorization.category
            fields["content_type"] = categorization.content_type
            fields["confidence"] = categorization.confidence
            fields["keywords"] = categorization.keywords
        except Exception as e:
            logger.warning(f"Failed to categorize {page.url}: {e}")
            failures.append(EnrichmentError(page.url, "categorization", e))

        return fields, failures

    def backfill_enrichment(self, market: str, limit: int = 50) -> EnrichmentReport:
        """Enrich stored pages that have no summary yet.

        Raises:
            UnknownMarketError: If the market is not configured.
            PersistenceError: If the content store rejects a write.
        """
        config = self._get_config(market)
        report = EnrichmentReport(market=market)
        if self.enricher is None:
            return report

        for snapshot in self.store.list_unenriched(market, limit=limit):
            page = FetchedPage(
                url=snapshot.url,
                title=snapshot.title or "",
                description=snapshot.description or "",
                text=snapshot.text_content or "",
            )
            if not page.text.strip():
                continue

            fields, failures = self._enrich(page, config.language)
            report.errors.extend(str(f) for f in failures)
            if fields:
                self.store.update_fields(snapshot.url, fields)
                report.enriched += 1

        logger.info(f"[{market}] Enrichment backfill: {report.enriched} pages, {len(report.errors)} errors")
        return report
