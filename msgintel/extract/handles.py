"""
Session-scoped handle directory.

The handle table maps an internal ROWID to an external identifier (phone
number or email) and a country code. Every record kind needs both lookup
directions, so the directory is built once per extraction session from a
single bulk fetch and is read-only afterwards.

The entries live in one tuple; the two indexes map keys to those same entry
objects.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from msgintel.extract.normalizers import as_int, column

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandleEntry:
    """One row of chat.db's handle table."""

    row_id: int
    identifier: Optional[str]
    country: Optional[str] = None


def _entry_from_row(row: Mapping[str, Any]) -> Optional[HandleEntry]:
    row_id = as_int(column(row, "ROWID"))
    if row_id is None:
        return None
    return HandleEntry(
        row_id=row_id,
        identifier=column(row, "id"),
        country=column(row, "country"),
    )


class HandleDirectory:
    """Bidirectional handle lookup: ROWID <-> identifier."""

    def __init__(self, entries: Iterable[HandleEntry] = ()):
        self._entries: Tuple[HandleEntry, ...] = tuple(entries)
        self._by_row_id: Dict[int, HandleEntry] = {}
        self._by_identifier: Dict[str, HandleEntry] = {}

        for entry in self._entries:
            self._by_row_id[entry.row_id] = entry
            if entry.identifier is not None:
                # Later rows win, as with a map built over the full result set
                self._by_identifier[entry.identifier] = entry

    @classmethod
    def build(
        cls, rows: Optional[Iterable[Union[HandleEntry, Mapping[str, Any]]]]
    ) -> "HandleDirectory":
        """
        Build a directory from handle rows.

        Args:
            rows: HandleEntry objects or raw rows exposing ROWID, id, country.
                  None (a failed fetch) yields an empty directory.

        Returns:
            A read-only HandleDirectory.
        """
        if not rows:
            logger.debug("Building empty handle directory")
            return cls()

        entries = []
        skipped = 0
        for row in rows:
            entry = row if isinstance(row, HandleEntry) else _entry_from_row(row)
            if entry is None:
                skipped += 1
                continue
            entries.append(entry)

        if skipped:
            logger.warning(f"Skipped {skipped} handle rows without a usable ROWID")

        directory = cls(entries)
        logger.info(f"Handle directory built with {len(directory)} entries")
        return directory

    def by_row_id(self, row_id: Optional[int]) -> Optional[HandleEntry]:
        """Look up a handle by its ROWID."""
        if row_id is None:
            return None
        return self._by_row_id.get(row_id)

    def by_identifier(self, identifier: Optional[str]) -> Optional[HandleEntry]:
        """Look up a handle by its external identifier."""
        if identifier is None:
            return None
        return self._by_identifier.get(identifier)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)
