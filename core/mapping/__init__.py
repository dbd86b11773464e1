"""Core mapping - workbook header vocabulary.

One ColumnMap per record kind translates between the human-readable sheet
headers and the internal record field names.
"""

from core.mapping.engine import (
    ColumnMap,
    ColumnSpec,
    ColumnType,
    COLUMN_MAPS,
    column_map,
    find_column,
)

__all__ = [
    "ColumnMap",
    "ColumnSpec",
    "ColumnType",
    "COLUMN_MAPS",
    "column_map",
    "find_column",
]
