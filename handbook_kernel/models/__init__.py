"""Handbook Kernel data models."""

from handbook_kernel.models.config import (
    CACHE_KEY,
    ClientConfig,
    ReloadFailurePolicy,
    ServerConfig,
)
from handbook_kernel.models.directory import (
    DEFAULT_SORT_PRIORITY,
    MISSING_NUMBER,
    UNASSIGNED_DEPARTMENT,
    Person,
    Room,
    Snapshot,
)
from handbook_kernel.models.errors import (
    ConfigError,
    FetchError,
    FetchTimeoutError,
    HandbookError,
    LoadError,
    SourceAbsentError,
    SourceMalformedError,
)
from handbook_kernel.models.sync import SyncResult, SyncStatus
from handbook_kernel.models.view import (
    CachedEnvelope,
    DepartmentGroup,
    HandbookResponse,
    HandbookView,
    HealthStatus,
)

__all__ = [
    "CACHE_KEY",
    "CachedEnvelope",
    "ClientConfig",
    "ConfigError",
    "DEFAULT_SORT_PRIORITY",
    "DepartmentGroup",
    "FetchError",
    "FetchTimeoutError",
    "HandbookError",
    "HandbookResponse",
    "HandbookView",
    "HealthStatus",
    "LoadError",
    "MISSING_NUMBER",
    "Person",
    "ReloadFailurePolicy",
    "Room",
    "ServerConfig",
    "Snapshot",
    "SourceAbsentError",
    "SourceMalformedError",
    "SyncResult",
    "SyncStatus",
    "UNASSIGNED_DEPARTMENT",
]
