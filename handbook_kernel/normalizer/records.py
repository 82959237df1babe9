"""
Record Normalizer — raw workbook rows to typed Person / Room records.

This is the only place external text is sanitized: every cell passes through
sanitize_text() before it can be cached, served or rendered.

Row layout (header row already removed, column A first):
  people: department, sort priority, position, full name, extension, dept. extension
  rooms:  city, address, extension
"""

import re
from typing import Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup

from handbook_kernel.models.directory import DEFAULT_SORT_PRIORITY, Person, Room, Snapshot
from handbook_kernel.source.workbook import SheetRows

PERSON_COLUMNS = 6
ROOM_COLUMNS = 3

# Elements whose text content is dropped, not just their tags.
_DISCARDED_ELEMENTS = ["script", "style", "textarea", "option"]
_LEADING_INT = re.compile(r"^[+-]?\d+")


def sanitize_text(value: object) -> str:
    """Strip all markup and surrounding whitespace from a cell value."""
    if value is None or value == "":
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)

    text = str(value)
    if "<" not in text and "&" not in text:
        return text.strip()

    soup = BeautifulSoup(text, "html.parser")
    for element in soup(_DISCARDED_ELEMENTS):
        element.decompose()
    return soup.get_text().strip()


def parse_sort_priority(value: object) -> int:
    """Leading integer of the cell, or DEFAULT_SORT_PRIORITY."""
    match = _LEADING_INT.match(sanitize_text(value))
    if not match:
        return DEFAULT_SORT_PRIORITY
    return int(match.group(0))


def is_blank_row(row: Optional[Sequence[object]]) -> bool:
    return not row or all(not cell for cell in row)


def _fixed_width(row: Sequence[object], width: int) -> List[object]:
    cells = list(row[:width])
    cells.extend([None] * (width - len(cells)))
    return cells


def normalize_person(row: Optional[Sequence[object]]) -> Optional[Person]:
    """Person for a non-blank row, None for a row to skip."""
    if is_blank_row(row):
        return None
    department, priority, position, full_name, internal, general = _fixed_width(
        row, PERSON_COLUMNS
    )
    return Person(
        department=sanitize_text(department),
        sort_priority=parse_sort_priority(priority),
        position=sanitize_text(position),
        full_name=sanitize_text(full_name),
        internal_number=sanitize_text(internal),
        general_number=sanitize_text(general),
    )


def normalize_room(row: Optional[Sequence[object]]) -> Optional[Room]:
    """Room for a non-blank row, None for a row to skip."""
    if is_blank_row(row):
        return None
    city, address, internal = _fixed_width(row, ROOM_COLUMNS)
    return Room(
        city=sanitize_text(city),
        address=sanitize_text(address),
        internal_number=sanitize_text(internal),
    )


def normalize_people(rows: Optional[Iterable[Sequence[object]]]) -> List[Person]:
    if rows is None:
        return []
    people = (normalize_person(row) for row in rows)
    return [p for p in people if p is not None]


def normalize_rooms(rows: Optional[Iterable[Sequence[object]]]) -> List[Room]:
    if rows is None:
        return []
    rooms = (normalize_room(row) for row in rows)
    return [r for r in rooms if r is not None]


def build_snapshot(timestamp: float, sheets: SheetRows) -> Snapshot:
    """A missing sheet contributes no records rather than failing the load."""
    return Snapshot(
        timestamp=timestamp,
        office=normalize_people(sheets.people),
        cabinets=normalize_rooms(sheets.rooms),
    )
