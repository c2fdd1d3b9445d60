import os

# The async engine is created at import time, so point it at SQLite first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "development"
os.environ.pop("ADMIN_TOKEN", None)
os.environ.pop("ENABLED_MARKETS", None)

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from webactivity.database import Base
from webactivity.exceptions import FetchError, SitemapFetchError
from webactivity.markets import MarketConfig
from webactivity.models import PageEvent
from webactivity.repositories.snapshot_store import SnapshotStore
from webactivity.services.enrichment import Categorization, Summary
from webactivity.services.fetcher import FetchedPage
from webactivity.services.reconciler import Reconciler

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

TEST_MARKETS = {
    "de": MarketConfig("https://de.example.com/", "de", "Europe/Berlin", "Germany"),
    "uk": MarketConfig("https://uk.example.com/", "en", "Europe/London", "United Kingdom"),
}


def words(count: int, token: str = "word") -> str:
    """Page text with an exact word count."""
    return " ".join(f"{token}{i}" for i in range(count))


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeSitemapReader:
    """Serves fixed entry lists; markets in `failing` raise SitemapFetchError."""

    def __init__(self, entries=None, failing=()):
        self.entries = entries or {}
        self.failing = set(failing)
        self.calls = []

    def iter_entries(self, market):
        self.calls.append(market)
        if market in self.failing:
            raise SitemapFetchError(market, "HTTP 503")
        return iter(list(self.entries.get(market, [])))


class FakeFetcher:
    """Serves page text by URL; URLs in `failing` raise FetchError."""

    def __init__(self, pages=None, failing=()):
        self.pages = dict(pages or {})
        self.failing = set(failing)
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        if url in self.failing:
            raise FetchError(url, "HTTP 500")
        return FetchedPage(url=url, title=f"Title of {url}", description="", text=self.pages[url])


class FakeEnricher:
    def __init__(self, fail_summary=False, fail_category=False):
        self.fail_summary = fail_summary
        self.fail_category = fail_category

    def summarize(self, text, language):
        if self.fail_summary:
            raise RuntimeError("rate limited")
        return Summary(original=f"[{language}] summary", english="english summary")

    def categorize(self, text, title, url):
        if self.fail_category:
            raise RuntimeError("rate limited")
        return Categorization(category="BMI", content_type="tool", confidence=0.9, keywords=["bmi"])


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SnapshotStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def build_reconciler(store, clock, sleeps):
    def build(reader, fetcher, enricher=None, **kwargs) -> Reconciler:
        kwargs.setdefault("markets", TEST_MARKETS)
        kwargs.setdefault("request_delay", 2.0)
        kwargs.setdefault("staleness_threshold", timedelta(days=7))
        return Reconciler(
            store,
            reader,
            fetcher,
            enricher,
            sleep=sleeps.append,
            clock=clock,
            **kwargs,
        )

    return build


@pytest.fixture
def list_events(session_factory):
    def fetch(url=None):
        with session_factory() as session:
            query = select(PageEvent).order_by(PageEvent.created_at)
            if url:
                query = query.where(PageEvent.url == url)
            return list(session.execute(query).scalars().all())

    return fetch
