"""Outcome of a client sync cycle — the view model handed to presentation."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from handbook_kernel.models.view import HandbookView


class SyncStatus(str, Enum):
    LOADED_FROM_SERVER = "loaded_from_server"
    SERVED_FROM_CACHE_AFTER_ERROR = "served_from_cache_after_error"
    SERVED_FROM_CACHE = "served_from_cache"
    SERVED_STALE_CACHE = "served_stale_cache"
    UNAVAILABLE = "unavailable"


class SyncResult(BaseModel):
    """
    Immutable result of one sync cycle.

    `message` is the user-facing provenance text; `error` carries the failure
    description when a fetch or the whole cycle failed. Neither is ever a raw
    exception.
    """

    model_config = ConfigDict(frozen=True)

    status: SyncStatus
    message: str
    view: Optional[HandbookView] = None
    last_updated: Optional[datetime] = None
    error: Optional[str] = None
    cache_age_hours: Optional[int] = None

    @property
    def has_data(self) -> bool:
        return self.view is not None

    @property
    def is_stale(self) -> bool:
        return self.status == SyncStatus.SERVED_STALE_CACHE

    def apply_query(self, query: str) -> HandbookView:
        """Filter the view for a search box value."""
        from handbook_kernel.transform.pipeline import filter_view

        if self.view is None:
            return HandbookView()
        return filter_view(self.view, query)
