"""Workbook codec: per-sheet header-keyed rows <-> .xlsx bytes.

Encoding writes the five record sheets of ``tabular.layout`` (plus the
optional settings sheets). Decoding reads any workbook into raw rows keyed by
the header text of the first row; ``route_sheets`` then assigns the sheets to
record kinds.
"""

import csv
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import BytesIO, StringIO
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.utils.exceptions import InvalidFileException

from core.dates import format_locale_timestamp
from core.models.records import BusinessProfile, RecordKind, TaxSettings
from core.observability.logging import get_logger
from tabular.layout import (
    BUSINESS_HEADERS,
    BUSINESS_SHEET,
    EXPORT_DATE_HEADER,
    LAYOUTS,
    TAX_HEADERS,
    TAX_SHEET,
    layout_for,
    select_layouts,
)

logger = get_logger(__name__)

RawRow = Dict[str, Any]

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_CONTENT_TYPE = "text/csv"


class StructuralError(Exception):
    """Workbook cannot be produced or read at all."""
    pass


@dataclass
class RawWorkbook:
    """Decoded workbook: sheet name -> rows, in workbook order."""
    sheets: Dict[str, List[RawRow]] = field(default_factory=dict)

    @property
    def sheet_names(self) -> List[str]:
        return list(self.sheets.keys())

    def find(self, name: str) -> Optional[List[RawRow]]:
        """Rows of a sheet by exact name, then case-insensitive name."""
        if name in self.sheets:
            return self.sheets[name]
        wanted = name.strip().lower()
        for sheet_name, rows in self.sheets.items():
            if sheet_name.strip().lower() == wanted:
                return rows
        return None


# =============================================================================
# Encoding
# =============================================================================

def _cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and value == "":
        return None
    return value


def _write_sheet(wb: Workbook, name: str, headers: Sequence[str], rows: Sequence[Mapping[str, Any]]):
    ws = wb.create_sheet(title=name)
    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([_cell(row.get(header)) for header in headers])


def encode_workbook(
    sheets: Mapping[RecordKind, Sequence[Mapping[str, Any]]],
    business: Optional[BusinessProfile] = None,
    tax: Optional[TaxSettings] = None,
    kinds: Optional[Iterable[RecordKind]] = None,
) -> bytes:
    """Build workbook bytes from header-keyed rows per record kind.

    Every selected layout sheet is written; a kind with no rows gets its
    placeholder row so the sheet survives a round trip as an empty collection.

    Args:
        sheets: Rows keyed by display header, per record kind
        business: Optional shop details for the Business Info sheet
        tax: Optional tax settings for the Tax Settings sheet
        kinds: Record kinds to write; all five when None

    Returns:
        xlsx file content

    Raises:
        StructuralError: If the workbook could not be serialized
    """
    wb = Workbook()
    wb.remove(wb.active)

    for layout in select_layouts(kinds):
        rows = list(sheets.get(layout.kind) or [])
        if not rows:
            rows = [layout.columns.sentinel_row(layout.sentinel)]
        _write_sheet(wb, layout.name, layout.columns.headers, rows)

    export_date = format_locale_timestamp(datetime.now(timezone.utc))

    if business is not None:
        row = {BUSINESS_HEADERS[k]: v for k, v in business.model_dump().items()}
        row[EXPORT_DATE_HEADER] = export_date
        _write_sheet(wb, BUSINESS_SHEET, list(row.keys()), [row])

    if tax is not None:
        row = {TAX_HEADERS["gst_rate"]: tax.gst_rate}
        row[TAX_HEADERS["making_charge_tax"]] = "Yes" if tax.making_charge_tax else "No"
        row[TAX_HEADERS["discount_before_tax"]] = "Yes" if tax.discount_before_tax else "No"
        row[EXPORT_DATE_HEADER] = export_date
        _write_sheet(wb, TAX_SHEET, list(row.keys()), [row])

    buffer = BytesIO()
    wb.save(buffer)
    data = buffer.getvalue()
    if not data:
        raise StructuralError("Workbook serialization produced an empty file")

    logger.debug(
        "Encoded workbook",
        extra_fields={"sheets": len(wb.sheetnames), "size_bytes": len(data)},
    )
    return data


def encode_csv(kind: RecordKind, rows: Sequence[Mapping[str, Any]]) -> bytes:
    """One record sheet as UTF-8 CSV (header row, then one line per record).

    Unlike the workbook, an empty collection is just the header row.
    """
    headers = layout_for(kind).columns.headers
    buffer = StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({header: _cell(row.get(header)) for header in headers})
    return buffer.getvalue().encode("utf-8")


# =============================================================================
# Decoding
# =============================================================================

def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _read_rows(ws) -> List[Tuple[Any, ...]]:
    return [
        row for row in ws.iter_rows(values_only=True)
        if not all(_is_empty(v) for v in row)
    ]


def decode_workbook(data: bytes) -> RawWorkbook:
    """Read workbook bytes into raw rows per sheet.

    The first non-blank row of a sheet is its header row. A cell contributes
    a key only when both its header and its value are non-empty. Blank rows
    are skipped and sheets with no data rows are left out.

    Raises:
        StructuralError: If the file is not a readable workbook or has no
            sheet with data
    """
    if not data:
        raise StructuralError("Empty file")

    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, ValueError, OSError) as e:
        raise StructuralError(f"Unreadable workbook: {e}") from e

    raw = RawWorkbook()
    try:
        for ws in wb.worksheets:
            rows = _read_rows(ws)
            if len(rows) <= 1:
                continue

            headers = [str(h).strip() if not _is_empty(h) else "" for h in rows[0]]
            objects = []
            for values in rows[1:]:
                obj = {}
                for header, value in zip(headers, values):
                    if header and not _is_empty(value):
                        obj[header] = value
                if obj:
                    objects.append(obj)

            if objects:
                raw.sheets[ws.title] = objects
    finally:
        wb.close()

    if not raw.sheets:
        raise StructuralError("Workbook contains no sheets with data")

    logger.debug("Decoded workbook", extra_fields={"sheets": raw.sheet_names})
    return raw


def route_sheets(raw: RawWorkbook) -> Dict[RecordKind, List[RawRow]]:
    """Assign decoded sheets to record kinds.

    Exact sheet name first, case-insensitive name second. Kinds whose sheet
    is missing are absent from the result.
    """
    routed = {}
    for layout in LAYOUTS:
        rows = raw.find(layout.name)
        if rows is not None:
            routed[layout.kind] = rows
    return routed


def _yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("yes", "true", "1")


def read_settings(raw: RawWorkbook) -> Tuple[Optional[BusinessProfile], Optional[TaxSettings]]:
    """Read the optional Business Info / Tax Settings sheets."""
    business = None
    rows = raw.find(BUSINESS_SHEET)
    if rows:
        row = rows[0]
        business = BusinessProfile(**{
            key: str(row[header]) for key, header in BUSINESS_HEADERS.items() if header in row
        })

    tax = None
    rows = raw.find(TAX_SHEET)
    if rows:
        row = rows[0]
        values: Dict[str, Any] = {}
        if TAX_HEADERS["gst_rate"] in row:
            try:
                values["gst_rate"] = float(row[TAX_HEADERS["gst_rate"]])
            except (TypeError, ValueError):
                logger.warning("Ignoring unreadable GST rate", extra_fields={"value": row[TAX_HEADERS["gst_rate"]]})
        for key in ("making_charge_tax", "discount_before_tax"):
            if TAX_HEADERS[key] in row:
                values[key] = _yes(row[TAX_HEADERS[key]])
        tax = TaxSettings(**values)

    return business, tax
