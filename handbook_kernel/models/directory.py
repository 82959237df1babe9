"""Directory records — the people and rooms parsed from the source workbook."""

from typing import List

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


DEFAULT_SORT_PRIORITY = 99          # Rows without a numeric priority sort last
UNASSIGNED_DEPARTMENT = "Unassigned"
MISSING_NUMBER = "—"


class WireModel(BaseModel):
    """Immutable record serialized with camelCase keys on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Person(WireModel):
    """One staff member row. Identity is positional; duplicates are kept."""

    department: str = ""                    # Empty = grouped as unassigned
    sort_priority: int = DEFAULT_SORT_PRIORITY
    position: str = ""
    full_name: str = ""
    internal_number: str = ""               # Personal extension
    general_number: str = ""                # Department's shared extension


class Room(WireModel):
    """One room / office location row."""

    city: str = ""
    address: str = ""
    internal_number: str = ""


class Snapshot(WireModel):
    """
    One fully parsed view of the source.

    `timestamp` is the freshness key (source mtime in milliseconds) the
    snapshot was built from.
    """

    timestamp: float
    office: List[Person] = []
    cabinets: List[Room] = []
