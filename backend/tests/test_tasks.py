import pytest
from celery.exceptions import SoftTimeLimitExceeded
from sqlalchemy import select

from conftest import FakeFetcher, FakeSitemapReader, words
from webactivity.models import SyncRun
from webactivity.services.sitemap import SitemapEntry
from webactivity.workers import tasks

DE_HOME = "https://de.example.com/"
UK_HOME = "https://uk.example.com/"


class RunCheckingReader(FakeSitemapReader):
    """Records which SyncRun rows exist when a market's sitemap is read."""

    def __init__(self, session_factory, **kwargs):
        super().__init__(**kwargs)
        self.session_factory = session_factory
        self.runs_at_start = {}

    def iter_entries(self, market):
        with self.session_factory() as session:
            runs = session.execute(select(SyncRun).where(SyncRun.market == market)).scalars().all()
            self.runs_at_start[market] = [(run.status, run.started_at is not None) for run in runs]
        return super().iter_entries(market)


class TimingOutReader(FakeSitemapReader):
    def iter_entries(self, market):
        raise SoftTimeLimitExceeded()


@pytest.fixture
def worker(monkeypatch, session_factory, build_reconciler):
    """Point the tasks at the test database and a reconciler built from fakes."""
    monkeypatch.setattr(tasks, "SyncSessionLocal", session_factory)
    monkeypatch.setattr(tasks, "configured_markets", lambda settings: ["de", "uk"])

    def use(reader, fetcher=None):
        fetcher = fetcher or FakeFetcher({DE_HOME: words(10), UK_HOME: words(20)})
        monkeypatch.setattr(tasks, "_build_reconciler", lambda: build_reconciler(reader, fetcher))

    return use


def list_runs(session_factory):
    with session_factory() as session:
        return {run.market: run for run in session.execute(select(SyncRun)).scalars().all()}


def test_bulk_sync_starts_each_run_before_its_market(worker, session_factory):
    reader = RunCheckingReader(
        session_factory,
        entries={"de": [SitemapEntry(DE_HOME)], "uk": [SitemapEntry(UK_HOME)]},
        failing={"uk"},
    )
    worker(reader)

    output = tasks.sync_all_markets(trigger_reason="manual")

    assert reader.runs_at_start == {"de": [("running", True)], "uk": [("running", True)]}
    assert output["stats"]["failed_markets"] == ["uk"]

    runs = list_runs(session_factory)
    assert runs["de"].status == "completed"
    assert runs["de"].new_pages == 1
    assert runs["uk"].status == "failed"
    assert {run.trigger_reason for run in runs.values()} == {"manual"}
    assert runs["de"].started_at <= runs["de"].completed_at


def test_bulk_sync_defaults_to_scheduled(worker, session_factory):
    worker(FakeSitemapReader({"de": [], "uk": []}))

    tasks.sync_all_markets()

    assert {run.trigger_reason for run in list_runs(session_factory).values()} == {"scheduled"}


def test_soft_time_limit_fails_the_market_run(worker, session_factory):
    worker(TimingOutReader())

    with pytest.raises(SoftTimeLimitExceeded):
        tasks.sync_market("de")

    run = list_runs(session_factory)["de"]
    assert run.status == "failed"
    assert "SoftTimeLimitExceeded" in run.errors[0]
    assert run.completed_at is not None


def test_soft_time_limit_fails_the_running_bulk_run(worker, session_factory):
    worker(TimingOutReader())

    with pytest.raises(SoftTimeLimitExceeded):
        tasks.sync_all_markets()

    runs = list_runs(session_factory)
    # The limit hit during the first market, so the second never started
    assert set(runs) == {"de"}
    assert runs["de"].status == "failed"
