import pytest

from conftest import T0
from webactivity.exceptions import PersistenceError
from webactivity.services.reconciler import as_utc

URL = "https://de.example.com/bmi-rechner"


def page_values(**overrides) -> dict:
    values = {
        "url": URL,
        "market": "de",
        "language": "de",
        "title": "BMI Rechner",
        "text_content": "bmi rechner text",
        "word_count": 3,
        "content_hash": "abc",
        "last_crawled_at": T0,
        "last_modified_at": T0,
        "created_at": T0,
    }
    values.update(overrides)
    return values


def test_upsert_creates_page_and_event(store, list_events):
    page = store.upsert(
        page_values(summary="Zusammenfassung", summary_en="Summary"),
        {"event_type": "created", "change_pct": 0, "event_at": T0},
    )

    assert page.id
    stored = store.get_by_url(URL)
    assert stored.id == page.id
    assert stored.title == "BMI Rechner"

    events = list_events()
    assert len(events) == 1
    assert events[0].page_id == page.id
    assert events[0].market == "de"
    # Activity feeds show the English summary when there is one
    assert events[0].summary == "Summary"


def test_upsert_overwrites_existing_snapshot(store, list_events):
    first = store.upsert(page_values(), {"event_type": "created", "change_pct": 0, "event_at": T0})
    second = store.upsert(
        page_values(word_count=6, content_hash="def"),
        {"event_type": "updated", "change_pct": 100, "event_at": T0},
    )

    assert second.id == first.id
    assert store.get_by_url(URL).word_count == 6
    assert [e.event_type for e in list_events()] == ["created", "updated"]


def test_upsert_without_event_writes_no_event(store, list_events):
    store.upsert(page_values())
    assert list_events() == []


def test_mark_crawled_only_moves_crawl_time(store):
    store.upsert(page_values())
    later = T0.replace(day=5)

    store.mark_crawled(URL, later)

    page = store.get_by_url(URL)
    assert as_utc(page.last_crawled_at) == later
    assert as_utc(page.last_modified_at) == T0
    assert page.content_hash == "abc"


def test_mark_crawled_unknown_url_raises(store):
    with pytest.raises(PersistenceError):
        store.mark_crawled("https://de.example.com/missing", T0)


def test_database_errors_become_persistence_errors(store):
    with pytest.raises(PersistenceError):
        store.upsert({"url": URL, "market": None, "last_crawled_at": T0})
    assert store.get_by_url(URL) is None


def test_list_unenriched(store):
    store.upsert(page_values())
    store.upsert(page_values(url="https://de.example.com/done", summary="fertig"))
    store.upsert(page_values(url="https://uk.example.com/", market="uk"))

    pages = store.list_unenriched("de")

    assert [p.url for p in pages] == [URL]


def test_update_fields(store):
    store.upsert(page_values())

    store.update_fields(URL, {"category": "BMI", "summary": "s"})

    page = store.get_by_url(URL)
    assert page.category == "BMI"
    assert page.is_enriched
