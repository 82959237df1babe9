"""Derived views and the envelopes that carry them between tiers."""

from typing import Dict, List, Literal, Optional

from handbook_kernel.models.directory import MISSING_NUMBER, Person, Room, Snapshot, WireModel


class DepartmentGroup(WireModel):
    """
    A department's members in display order plus its shared extension.

    The shared extension comes from the first member after sorting; members
    that disagree are not reconciled.
    """

    employees: List[Person] = []
    general_number: str = MISSING_NUMBER


class HandbookView(WireModel):
    """Grouped office and sorted cabinets, ready for presentation."""

    office: Dict[str, DepartmentGroup] = {}
    cabinets: List[Room] = []

    @property
    def is_empty(self) -> bool:
        return not self.office and not self.cabinets


class CachedEnvelope(WireModel):
    """
    The client's durable record of the last successful fetch.

    Overwritten wholesale on each successful fetch, never merged.
    """

    data: HandbookView
    timestamp: float                        # Source freshness key of the snapshot
    fetch_time: float                       # Local wall clock, ms since epoch


class HandbookResponse(WireModel):
    """JSON envelope served at the handbook endpoint."""

    status: Literal["success", "error"]
    data: Optional[Snapshot] = None
    message: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class HealthStatus(WireModel):
    """Liveness report."""

    status: str = "ok"
    uptime: float
    cache_status: Literal["active", "empty"]
