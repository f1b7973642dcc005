"""
Row/column view of a ParsedRecord.

``reshape`` rebuilds table rows from ``"<field>_<row>"`` keys for display.
The view is derived; edits go back to the record one key at a time through
``update_cell`` so rows the view hides are never touched.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .file_parsers import ParsedRecord, Scalar

MatrixRow = Dict[str, Scalar]

_ROW_SUFFIX_RE = re.compile(r"^[0-9]+$")


def split_key(key: str) -> Optional[Tuple[str, int]]:
    """
    Split a record key on its last underscore.

    Returns:
        ``(field_name, row_index)``, or None when the key has no numeric row
        suffix or no field name.
    """
    field_name, sep, suffix = key.rpartition("_")
    if not sep or not field_name or not _ROW_SUFFIX_RE.match(suffix):
        return None
    return field_name, int(suffix)


def make_key(field_name: str, row_index: int) -> str:
    return f"{field_name}_{row_index}"


def _is_empty(value: Scalar) -> bool:
    return value is None or value == ""


@dataclass
class Grid:
    """Reshaped table: visible rows, their source row indices and the columns."""

    rows: List[MatrixRow] = field(default_factory=list)
    row_indices: List[int] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)

    def key_for(self, position: int, column: str) -> str:
        """Record key behind the cell at ``position`` (0-based visible row)."""
        return make_key(column, self.row_indices[position])

    def to_record(self) -> ParsedRecord:
        """Flatten the visible non-empty cells back into a ParsedRecord."""
        record: ParsedRecord = {}
        for row_index, row in zip(self.row_indices, self.rows):
            for column, value in row.items():
                if not _is_empty(value):
                    record[make_key(column, row_index)] = value
        return record


def build_grid(record: ParsedRecord) -> Grid:
    """
    Rebuild rows from a ParsedRecord.

    Keys without a numeric row suffix are ignored. Rows are ordered by their
    numeric index and rows whose values are all empty are left out. Columns
    are every field of the surviving rows in order of first appearance. The
    record itself is not modified.
    """
    grouped: Dict[int, MatrixRow] = {}
    for key, value in record.items():
        parts = split_key(key)
        if parts is None:
            continue
        field_name, row_index = parts
        grouped.setdefault(row_index, {})[field_name] = value

    grid = Grid()
    seen_columns = set()
    for row_index in sorted(grouped):
        row = grouped[row_index]
        if all(_is_empty(value) for value in row.values()):
            continue
        grid.rows.append(row)
        grid.row_indices.append(row_index)
        for column in row:
            if column not in seen_columns:
                seen_columns.add(column)
                grid.columns.append(column)
    return grid


def reshape(record: ParsedRecord) -> List[MatrixRow]:
    """Return the visible rows of ``record`` in ascending row order."""
    return build_grid(record).rows


def update_cell(record: ParsedRecord, field_name: str, row_index: int, value: Scalar) -> str:
    """
    Set one cell on the underlying record.

    Only the key ``"<field_name>_<row_index>"`` changes; every other key is
    left as it was.

    Returns:
        The key that was written.
    """
    key = make_key(field_name, row_index)
    record[key] = value
    return key
