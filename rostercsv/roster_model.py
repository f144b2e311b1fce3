"""
Roster Data Model
=================
``CharacterRecord`` plus the ordering, CSV form and completeness rule
of a scraped roster.

CSV layout::

    Name,Class,iLvl,CombatPower
    Foo,Berserker,1620.00,1892.38
    Bar,,1550,

Whitespace runs inside a field are collapsed and trimmed before
writing; fields containing a comma, quote or newline are quoted with
internal quotes doubled.
"""

from __future__ import annotations

import csv
import io
import math
from dataclasses import dataclass
from typing import Iterable, List

from .utils import clean_text

CSV_HEADER = ["Name", "Class", "iLvl", "CombatPower"]


@dataclass
class CharacterRecord:
    """Stats scraped from one character page. Only ``name`` is guaranteed."""
    name: str
    character_class: str = ""
    item_level: str = ""
    combat_power: str = ""

    @property
    def has_stats(self) -> bool:
        return bool(self.item_level or self.combat_power)

    def to_row(self) -> List[str]:
        return [self.name, self.character_class, self.item_level, self.combat_power]


def item_level_sort_key(record: CharacterRecord) -> float:
    """Numeric item level; unparseable or empty sorts as minus infinity."""
    try:
        value = float(record.item_level)
    except (TypeError, ValueError):
        return -math.inf
    return -math.inf if math.isnan(value) else value


def sort_records(records: Iterable[CharacterRecord]) -> List[CharacterRecord]:
    """Descending by item level; ties keep enumeration order."""
    return sorted(records, key=item_level_sort_key, reverse=True)


def to_csv(records: Iterable[CharacterRecord]) -> str:
    """Serialize records under the fixed four-column header."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow([clean_text(v) for v in record.to_row()])
    return buffer.getvalue().rstrip("\n")


def _read_rows(csv_text: str) -> List[List[str]]:
    return list(csv.reader(io.StringIO(csv_text or "")))


def parse_csv(csv_text: str) -> List[CharacterRecord]:
    """Inverse of ``to_csv``. Rows of the wrong width are skipped."""
    rows = _read_rows(csv_text)
    if rows and rows[0] == CSV_HEADER:
        rows = rows[1:]
    return [CharacterRecord(*row) for row in rows if len(row) == len(CSV_HEADER)]


def count_rows(csv_text: str) -> int:
    """Number of data rows below the header."""
    return max(0, len(_read_rows(csv_text)) - 1)


def is_complete(csv_text: str) -> bool:
    """
    True iff there is at least one data row and every row has exactly
    four fields with non-empty name, class and item level.
    """
    rows = _read_rows(csv_text)
    data = rows[1:]
    if not data:
        return False
    for row in data:
        if len(row) != len(CSV_HEADER):
            return False
        name, character_class, item_level, _ = row
        if not (name and character_class and item_level):
            return False
    return True
