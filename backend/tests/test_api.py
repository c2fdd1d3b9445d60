from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from webactivity.api.routes import sync as sync_routes
from webactivity.config import Settings, get_settings
from webactivity.database import Base, get_db
from webactivity.main import app
from webactivity.markets import MARKETS
from webactivity.models import ContentPage, PageEvent, SyncRun


class FakeTask:
    def __init__(self):
        self.calls = []

    def delay(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return type("AsyncResult", (), {"id": "task-123"})()


@pytest.fixture
def db(tmp_path):
    """File-backed SQLite shared by the app's async sessions and test seeding."""
    db_path = tmp_path / "api.db"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)

    async_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    async_session = async_sessionmaker(async_engine, expire_on_commit=False)

    async def override_get_db():
        async with async_session() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_get_db
    yield sessionmaker(bind=sync_engine)
    app.dependency_overrides.clear()
    sync_engine.dispose()


@pytest.fixture
def client(db):
    return TestClient(app)


def use_settings(**kwargs) -> Settings:
    settings = Settings(**kwargs)
    app.dependency_overrides[get_settings] = lambda: settings
    return settings


def seed_page(session, url, market="de", crawled_days_ago=0, modified_days_ago=0, events=()):
    now = datetime.now(timezone.utc)
    page = ContentPage(
        url=url,
        market=market,
        language=MARKETS[market].language,
        title=f"Title {url}",
        word_count=100,
        last_crawled_at=now - timedelta(days=crawled_days_ago),
        last_modified_at=now - timedelta(days=modified_days_ago),
        created_at=now - timedelta(days=60),
    )
    session.add(page)
    session.flush()
    for event_type, days_ago in events:
        session.add(PageEvent(
            page_id=page.id,
            url=url,
            market=market,
            language=page.language,
            title=page.title,
            event_type=event_type,
            change_pct=0,
            event_at=now - timedelta(days=days_ago),
        ))
    return page


def test_health_and_root(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["docs"] == "/docs"


def test_list_markets(client):
    use_settings(enabled_markets=["de", "fr"])

    data = client.get("/api/markets").json()

    assert data["total"] == len(MARKETS)
    enabled = {m["id"] for m in data["markets"] if m["enabled"]}
    assert enabled == {"de", "fr"}


def test_market_status(client, db):
    with db() as session:
        seed_page(session, "https://de.example.com/a", crawled_days_ago=1)
        seed_page(session, "https://de.example.com/b", crawled_days_ago=10)
        seed_page(session, "https://ie.example.com/a", market="ie")
        session.add(SyncRun(market="de", status="completed", new_pages=2))
        session.commit()

    data = client.get("/api/markets/de/status").json()

    assert data["total_pages"] == 2
    assert data["stale_pages"] == 1
    assert data["last_crawled_at"] is not None
    assert data["last_run"]["status"] == "completed"


def test_market_status_unknown_market(client):
    response = client.get("/api/markets/xx/status")

    assert response.status_code == 404
    assert response.json()["detail"] == "Unknown market: xx"


def test_events_feed_filters_and_orders(client, db):
    with db() as session:
        seed_page(session, "https://de.example.com/a", events=[("created", 20), ("updated", 2)])
        seed_page(session, "https://ie.example.com/a", market="ie", events=[("created", 1)])
        session.commit()

    data = client.get("/api/web-activity/events").json()
    assert data["count"] == 3
    assert [e["url"] for e in data["events"]] == [
        "https://ie.example.com/a",
        "https://de.example.com/a",
        "https://de.example.com/a",
    ]

    data = client.get("/api/web-activity/events", params={"market": "de", "event_type": "updated"}).json()
    assert data["count"] == 1
    assert data["events"][0]["event_type"] == "updated"

    data = client.get("/api/web-activity/events", params={"days": 7}).json()
    assert data["count"] == 2


def test_stats(client, db):
    with db() as session:
        seed_page(session, "https://de.example.com/a", events=[("created", 40), ("updated", 3)])
        seed_page(session, "https://ie.example.com/a", market="ie", events=[("created", 1)])
        session.commit()

    stats = client.get("/api/web-activity/stats").json()

    assert stats["total_pages"] == 2
    assert stats["total_changes"] == 2
    assert stats["markets_tracked"] == 2
    assert stats["changes_by_market"] == {"de": 1, "ie": 1}
    assert stats["changes_by_type"] == {"created": 1, "updated": 1}
    assert stats["last_crawl"] is not None


def test_health_scores(client, db):
    use_settings(enabled_markets=["de", "ie"], health_expected_pages=2)
    with db() as session:
        seed_page(session, "https://de.example.com/a", events=[("updated", 1), ("updated", 2)])
        seed_page(session, "https://de.example.com/b", modified_days_ago=45)
        session.commit()

    data = client.get("/api/web-activity/health-scores").json()

    scores = {s["market"]: s for s in data["scores"]}
    assert set(scores) == {"de", "ie"}
    assert scores["de"]["content_freshness"] == 50
    assert scores["de"]["content_coverage"] == 100
    assert scores["de"]["update_frequency"] == 20
    assert scores["de"]["trend"] == "up"
    assert scores["ie"]["overall_score"] == 0
    assert data["scores"][0]["market"] == "de"


def test_sync_requires_admin_token(client, monkeypatch):
    use_settings(admin_token="s3cret", environment="production")
    task = FakeTask()
    monkeypatch.setattr(sync_routes, "sync_market", task)

    assert client.post("/api/sync/de").status_code == 401
    assert client.post("/api/sync/de", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert task.calls == []


def test_sync_closed_without_token_outside_development(client):
    use_settings(admin_token=None, environment="production")

    assert client.post("/api/sync").status_code == 403


def test_trigger_market_sync(client, monkeypatch):
    use_settings(admin_token="s3cret")
    task = FakeTask()
    monkeypatch.setattr(sync_routes, "sync_market", task)

    response = client.post(
        "/api/sync/de",
        headers={"Authorization": "Bearer s3cret"},
        json={"force_refresh": True},
    )

    assert response.status_code == 202
    assert response.json() == {"status": "queued", "task_id": "task-123", "markets": ["de"]}
    args, kwargs = task.calls[0]
    assert args == ("de",)
    assert kwargs["force_refresh"] is True
    assert kwargs["trigger_reason"] == "manual"


def test_trigger_unknown_market(client, monkeypatch):
    use_settings()
    monkeypatch.setattr(sync_routes, "sync_market", FakeTask())

    assert client.post("/api/sync/xx").status_code == 404


def test_trigger_all_markets(client, monkeypatch):
    use_settings(enabled_markets=["de", "ie"])
    task = FakeTask()
    monkeypatch.setattr(sync_routes, "sync_all_markets", task)

    response = client.post("/api/sync")

    assert response.status_code == 202
    assert response.json()["markets"] == ["de", "ie"]
    assert task.calls == [((), {"force_refresh": False, "enrich": True, "trigger_reason": "manual"})]


def test_sync_runs(client, db):
    with db() as session:
        session.add(SyncRun(market="de", status="completed"))
        session.add(SyncRun(market="ie", status="failed"))
        session.commit()

    data = client.get("/api/sync/runs", params={"market": "ie"}).json()

    assert data["total"] == 1
    assert data["runs"][0]["status"] == "failed"
