"""Append-only change events for content pages."""

import enum
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from webactivity.database import Base


class EventType(str, enum.Enum):
    """Kinds of change recorded for a page."""

    CREATED = "created"
    UPDATED = "updated"


class PageEvent(Base):
    """An immutable record of a page being created or modified."""

    __tablename__ = "page_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    page_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("content_pages.id", ondelete="CASCADE"),
        index=True,
    )

    # Denormalized for activity feeds
    url: Mapped[str] = mapped_column(String(2048))
    market: Mapped[str] = mapped_column(String(32), index=True)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    event_type: Mapped[str] = mapped_column(String(20), index=True)  # created, updated
    change_pct: Mapped[int] = mapped_column(Integer, default=0)

    event_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    page: Mapped["ContentPage"] = relationship("ContentPage", back_populates="events")

    def to_dict(self) -> dict:
        """Serialize for the activity feed."""
        return {
            "id": self.id,
            "page_id": self.page_id,
            "url": self.url,
            "market": self.market,
            "language": self.language,
            "title": self.title,
            "summary": self.summary,
            "category": self.category,
            "event_type": self.event_type,
            "change_pct": self.change_pct,
            "event_at": self.event_at.isoformat() if self.event_at else None,
        }


# Forward reference
from webactivity.models.content_page import ContentPage  # noqa: E402
