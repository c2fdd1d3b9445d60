"""Business logic services."""

from webactivity.services.enrichment import KeywordEnricher, LLMEnricher, get_enricher
from webactivity.services.fetcher import FetchedPage, FirecrawlFetcher
from webactivity.services.health import HealthScorer
from webactivity.services.reconciler import (
    ReconcileOptions,
    ReconciliationResult,
    Reconciler,
)
from webactivity.services.sitemap import SitemapEntry, SitemapReader

__all__ = [
    "FetchedPage",
    "FirecrawlFetcher",
    "HealthScorer",
    "KeywordEnricher",
    "LLMEnricher",
    "ReconcileOptions",
    "ReconciliationResult",
    "Reconciler",
    "SitemapEntry",
    "SitemapReader",
    "get_enricher",
]
