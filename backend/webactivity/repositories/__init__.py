"""Repository implementations for data access."""

from webactivity.repositories.postgres import (
    MarketStatus,
    PostgresContentPageRepository,
    PostgresPageEventRepository,
    PostgresSyncRunRepository,
)
from webactivity.repositories.snapshot_store import SnapshotStore

__all__ = [
    "MarketStatus",
    "PostgresContentPageRepository",
    "PostgresPageEventRepository",
    "PostgresSyncRunRepository",
    "SnapshotStore",
]
