"""SQLAlchemy models."""

from webactivity.models.content_page import TITLE_MAX_LENGTH, URL_MAX_LENGTH, ContentPage
from webactivity.models.page_event import EventType, PageEvent
from webactivity.models.sync_run import SyncRun

__all__ = [
    "ContentPage",
    "TITLE_MAX_LENGTH",
    "URL_MAX_LENGTH",
    "PageEvent",
    "EventType",
    "SyncRun",
]
