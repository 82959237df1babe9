"""
Source Freshness Oracle — tells the server cache whether the workbook changed.

Consulted on every request, so it only stats the file and never opens it.
"""

import os
from pathlib import Path
from typing import Union

from handbook_kernel.models.errors import SourceAbsentError


class SourceFreshnessOracle:
    """Freshness key = last modification time of the source, in milliseconds."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def freshness_key(self) -> float:
        """Current freshness key. Raises SourceAbsentError if the file is gone."""
        try:
            stat = os.stat(self.path)
        except FileNotFoundError:
            raise SourceAbsentError(self.path) from None
        return stat.st_mtime_ns / 1_000_000
