"""Content snapshot store used by the reconciler.

Uses sync sessions so it can run inside Celery workers. Each write commits
on its own, so a page's snapshot and event are durable before the next page
is processed. Storage failures surface as PersistenceError.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from webactivity.exceptions import PersistenceError
from webactivity.models import ContentPage, PageEvent

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Keyed-by-URL store of content snapshots and their change events."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        # Snapshots are handed back detached, so keep their loaded state
        session = self.session_factory(expire_on_commit=False)
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Content store write failed: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def get_by_url(self, url: str) -> ContentPage | None:
        """Get the snapshot for a URL."""
        with self._session() as session:
            return session.execute(
                select(ContentPage).where(ContentPage.url == url)
            ).scalar_one_or_none()

    def upsert(
        self,
        values: dict[str, Any],
        event: dict[str, Any] | None = None,
    ) -> ContentPage:
        """Insert or overwrite the snapshot for values["url"].

        When ``event`` is given, a PageEvent for the page is written in the
        same transaction.
        """
        with self._session() as session:
            page = session.execute(
                select(ContentPage).where(ContentPage.url == values["url"])
            ).scalar_one_or_none()

            if page is None:
                page = ContentPage(**values)
                session.add(page)
            else:
                for key, value in values.items():
                    setattr(page, key, value)

            if event is not None:
                session.flush()
                session.add(PageEvent(
                    page_id=page.id,
                    url=page.url,
                    market=page.market,
                    language=page.language,
                    title=page.title,
                    summary=page.summary_en or page.summary,
                    category=page.category,
                    **event,
                ))
            return page

    def mark_crawled(self, url: str, crawled_at: datetime) -> None:
        """Record a fetch that found no content change."""
        with self._session() as session:
            page = session.execute(
                select(ContentPage).where(ContentPage.url == url)
            ).scalar_one_or_none()
            if page is None:
                raise PersistenceError(f"No snapshot for {url}")
            page.last_crawled_at = crawled_at

    def update_fields(self, url: str, values: dict[str, Any]) -> ContentPage:
        """Update selected columns of an existing snapshot."""
        with self._session() as session:
            page = session.execute(
                select(ContentPage).where(ContentPage.url == url)
            ).scalar_one_or_none()
            if page is None:
                raise PersistenceError(f"No snapshot for {url}")
            for key, value in values.items():
                setattr(page, key, value)
            return page

    def list_unenriched(self, market: str, limit: int = 50) -> list[ContentPage]:
        """Snapshots of a market that have no summary yet."""
        with self._session() as session:
            result = session.execute(
                select(ContentPage)
                .where(
                    ContentPage.market == market,
                    ContentPage.summary.is_(None),
                    ContentPage.summary_en.is_(None),
                )
                .order_by(ContentPage.last_crawled_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
