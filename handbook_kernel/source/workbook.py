"""Workbook Reader — pulls raw row tuples out of the source .xlsx file."""

import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from handbook_kernel.models.config import DEFAULT_PEOPLE_SHEET, DEFAULT_ROOMS_SHEET
from handbook_kernel.models.errors import SourceAbsentError, SourceMalformedError

logger = logging.getLogger(__name__)

Row = Sequence[object]


@dataclass(frozen=True)
class SheetRows:
    """Header-less rows per sheet. None means the sheet is missing."""

    people: Optional[List[Row]] = None
    rooms: Optional[List[Row]] = None


class WorkbookReader:
    """Reads the people and rooms sheets; every other sheet is ignored."""

    def __init__(
        self,
        people_sheet: str = DEFAULT_PEOPLE_SHEET,
        rooms_sheet: str = DEFAULT_ROOMS_SHEET,
    ):
        self.people_sheet = people_sheet
        self.rooms_sheet = rooms_sheet

    def read(self, path: Union[str, Path]) -> SheetRows:
        path = Path(path)
        if not path.is_file():
            raise SourceAbsentError(path)

        try:
            workbook = load_workbook(path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
            raise SourceMalformedError(f"Cannot parse workbook {path}: {e}") from e

        try:
            people = self._sheet_rows(workbook, self.people_sheet)
            rooms = self._sheet_rows(workbook, self.rooms_sheet)
        finally:
            workbook.close()

        if people is None:
            logger.warning("Sheet %r not found in %s", self.people_sheet, path)
        if rooms is None:
            logger.warning("Sheet %r not found in %s", self.rooms_sheet, path)

        return SheetRows(people=people, rooms=rooms)

    def _sheet_rows(self, workbook, name: str) -> Optional[List[Row]]:
        if name not in workbook.sheetnames:
            return None
        sheet = workbook[name]
        try:
            # Row 1 is the header.
            return [tuple(row) for row in sheet.iter_rows(min_row=2, values_only=True)]
        except (KeyError, ValueError, zipfile.BadZipFile) as e:
            raise SourceMalformedError(f"Cannot read sheet {name!r}: {e}") from e
