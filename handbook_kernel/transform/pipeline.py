"""
Transform Pipeline — grouping, sorting and search over directory records.

Pure functions, no I/O. Applied identically to freshly fetched and cached
data, and re-run on every search keystroke.

Ordering rules:
  people: sort priority ascending, then full name case-insensitive
  departments: name case-insensitive
  rooms: city, then address, case-insensitive
Every sort key ends in the raw field values so only true duplicates tie and
the output never depends on input order.
"""

from typing import Dict, Iterable, List, Sequence, Tuple, TypeVar

from pydantic import BaseModel

from handbook_kernel.models.directory import (
    MISSING_NUMBER,
    UNASSIGNED_DEPARTMENT,
    Person,
    Room,
    Snapshot,
)
from handbook_kernel.models.view import DepartmentGroup, HandbookView

T = TypeVar("T", bound=BaseModel)

PERSON_SEARCH_FIELDS: Tuple[str, ...] = (
    "department",
    "position",
    "full_name",
    "internal_number",
    "general_number",
)
ROOM_SEARCH_FIELDS: Tuple[str, ...] = ("city", "address", "internal_number")


def _person_key(person: Person) -> tuple:
    return (
        person.sort_priority,
        person.full_name.casefold(),
        person.full_name,
        person.department,
        person.position,
        person.internal_number,
        person.general_number,
    )


def _room_key(room: Room) -> tuple:
    return (
        room.city.casefold(),
        room.address.casefold(),
        room.city,
        room.address,
        room.internal_number,
    )


def unassigned_label(departments: Iterable[str]) -> str:
    """Label for people without a department, distinct from every real department."""
    taken = set(departments)
    label = UNASSIGNED_DEPARTMENT
    n = 1
    while label in taken:
        n += 1
        label = f"{UNASSIGNED_DEPARTMENT} ({n})"
    return label


def sort_people(people: Iterable[Person]) -> List[Person]:
    return sorted(people, key=_person_key)


def sort_rooms(rooms: Iterable[Room]) -> List[Room]:
    return sorted(rooms, key=_room_key)


def group_people(people: Iterable[Person]) -> Dict[str, DepartmentGroup]:
    """
    Group people by department, members and departments in display order.

    A projection: regrouping the flattened output yields the same groups.
    """
    by_department: Dict[str, List[Person]] = {}
    for person in sort_people(people):
        by_department.setdefault(person.department, []).append(person)

    blank = unassigned_label(by_department)
    members = {(name or blank): employees for name, employees in by_department.items()}

    groups: Dict[str, DepartmentGroup] = {}
    for name in sorted(members, key=lambda n: (n.casefold(), n)):
        employees = members[name]
        groups[name] = DepartmentGroup(
            employees=employees,
            general_number=employees[0].general_number or MISSING_NUMBER,
        )
    return groups


def flatten_groups(groups: Dict[str, DepartmentGroup]) -> List[Person]:
    return [person for group in groups.values() for person in group.employees]


def matches_query(record: BaseModel, query: str, fields: Sequence[str]) -> bool:
    needle = query.lower()
    return any(needle in str(getattr(record, field) or "").lower() for field in fields)


def filter_records(records: Sequence[T], query: str, fields: Sequence[str]) -> List[T]:
    """Records with any field containing the query. Empty query keeps everything."""
    if not query:
        return list(records)
    return [r for r in records if matches_query(r, query, fields)]


def filter_people(people: Sequence[Person], query: str) -> List[Person]:
    return filter_records(people, query, PERSON_SEARCH_FIELDS)


def filter_rooms(rooms: Sequence[Room], query: str) -> List[Room]:
    return filter_records(rooms, query, ROOM_SEARCH_FIELDS)


def filter_office(
    groups: Dict[str, DepartmentGroup], query: str
) -> Dict[str, DepartmentGroup]:
    """
    Filter grouped people and regroup the matches.

    Departments without matches disappear; partially matching departments
    keep only their matching members and their original shared extension.
    """
    if not query:
        return dict(groups)

    shared = {
        group.employees[0].department: group.general_number
        for group in groups.values()
        if group.employees
    }
    regrouped = group_people(filter_people(flatten_groups(groups), query))
    for name, group in regrouped.items():
        general_number = shared.get(group.employees[0].department, group.general_number)
        if general_number != group.general_number:
            regrouped[name] = group.model_copy(update={"general_number": general_number})
    return regrouped


def build_view(snapshot: Snapshot) -> HandbookView:
    return HandbookView(
        office=group_people(snapshot.office),
        cabinets=sort_rooms(snapshot.cabinets),
    )


def filter_view(view: HandbookView, query: str) -> HandbookView:
    if not query:
        return view
    return HandbookView(
        office=filter_office(view.office, query),
        cabinets=filter_rooms(view.cabinets, query),
    )
