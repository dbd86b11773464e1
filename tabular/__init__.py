"""Tabular codec - .xlsx workbook encoding, decoding and sheet routing."""

from tabular.codec import (
    RawRow,
    RawWorkbook,
    StructuralError,
    XLSX_CONTENT_TYPE,
    CSV_CONTENT_TYPE,
    encode_workbook,
    encode_csv,
    decode_workbook,
    route_sheets,
    read_settings,
)
from tabular.layout import LAYOUTS, SHEET_NAMES, SheetLayout, layout_for, is_sentinel_row, select_layouts

__all__ = [
    "RawRow",
    "RawWorkbook",
    "StructuralError",
    "XLSX_CONTENT_TYPE",
    "CSV_CONTENT_TYPE",
    "encode_workbook",
    "encode_csv",
    "decode_workbook",
    "route_sheets",
    "read_settings",
    "LAYOUTS",
    "SHEET_NAMES",
    "SheetLayout",
    "layout_for",
    "is_sentinel_row",
    "select_layouts",
]
