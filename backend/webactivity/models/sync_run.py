"""SyncRun model for tracking per-market reconciliation runs."""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from webactivity.database import Base


class SyncRun(Base):
    """One reconciliation run for one market."""

    __tablename__ = "sync_runs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    market: Mapped[str] = mapped_column(String(32), index=True)

    # Run status
    status: Mapped[str] = mapped_column(
        String(50), default="pending"
    )  # pending, running, completed, cancelled, failed
    trigger_reason: Mapped[str] = mapped_column(
        String(100), default="scheduled"
    )  # scheduled, manual, backfill

    # Outcome
    total_pages: Mapped[int] = mapped_column(Integer, default=0)
    new_pages: Mapped[int] = mapped_column(Integer, default=0)
    updated_pages: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    # Timing
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # Celery task ID for status tracking
    celery_task_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def start(self) -> None:
        """Mark the run as started."""
        self.status = "running"
        self.started_at = datetime.now(timezone.utc)

    def complete(
        self,
        total_pages: int = 0,
        new_pages: int = 0,
        updated_pages: int = 0,
        errors: list[str] | None = None,
        cancelled: bool = False,
    ) -> None:
        """Mark the run as completed (or cancelled with partial counts)."""
        self.status = "cancelled" if cancelled else "completed"
        self.completed_at = datetime.now(timezone.utc)
        self.total_pages = total_pages
        self.new_pages = new_pages
        self.updated_pages = updated_pages
        self.errors = errors or []

    def fail(self, error_message: str) -> None:
        """Mark the run as failed."""
        self.status = "failed"
        self.completed_at = datetime.now(timezone.utc)
        self.errors = [*(self.errors or []), error_message]

    def to_dict(self) -> dict:
        """Serialize for the run log endpoint."""
        return {
            "id": self.id,
            "market": self.market,
            "status": self.status,
            "trigger_reason": self.trigger_reason,
            "total_pages": self.total_pages,
            "new_pages": self.new_pages,
            "updated_pages": self.updated_pages,
            "errors": self.errors or [],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
