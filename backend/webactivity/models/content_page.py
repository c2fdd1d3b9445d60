"""Content page model: the latest snapshot of a market URL."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from webactivity.database import Base


URL_MAX_LENGTH = 2048
TITLE_MAX_LENGTH = 512


class ContentPage(Base):
    """Most recently fetched representation of a single URL."""

    __tablename__ = "content_pages"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Identity
    url: Mapped[str] = mapped_column(String(URL_MAX_LENGTH), unique=True)
    market: Mapped[str] = mapped_column(String(32), index=True)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)
    path: Mapped[str | None] = mapped_column(String(URL_MAX_LENGTH), nullable=True)

    # Page data
    title: Mapped[str | None] = mapped_column(String(TITLE_MAX_LENGTH), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    text_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    is_article: Mapped[bool] = mapped_column(Boolean, default=False)
    publish_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Change signal
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Enrichment (best effort, may lag behind the snapshot)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    content_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    keywords: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    signals: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Timing
    last_crawled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    last_modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    events: Mapped[list["PageEvent"]] = relationship(
        "PageEvent", back_populates="page", order_by="desc(PageEvent.event_at)"
    )

    @property
    def is_enriched(self) -> bool:
        """Whether a summary has been generated for the current content."""
        return bool(self.summary or self.summary_en)

    def to_dict(self) -> dict:
        """Serialize for API responses (without the raw text)."""
        return {
            "id": self.id,
            "url": self.url,
            "market": self.market,
            "language": self.language,
            "title": self.title,
            "description": self.description,
            "word_count": self.word_count,
            "category": self.category,
            "content_type": self.content_type,
            "summary": self.summary,
            "summary_en": self.summary_en,
            "last_crawled_at": self.last_crawled_at.isoformat() if self.last_crawled_at else None,
            "last_modified_at": self.last_modified_at.isoformat() if self.last_modified_at else None,
        }


# Forward reference
from webactivity.models.page_event import PageEvent  # noqa: E402
