"""Column mapping between workbook headers and record fields.

Every record kind has one ``ColumnMap``: an ordered, bidirectional table of
display header <-> internal field name. Export writes rows keyed by display
header; import reads a value by display header first, then by internal field
name (rows produced by other tools), then by legacy header aliases.

The header texts are part of the workbook format and must not change.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.dates import format_locale_timestamp
from core.models.records import RecordKind


class ColumnType(str, Enum):
    """How a column value is rendered on export."""
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    INTEGER = "INTEGER"
    DATE = "DATE"
    ITEMS = "ITEMS"     # list of line items, JSON text in the cell


@dataclass(frozen=True)
class ColumnSpec:
    """A single column of a sheet.

    Attributes:
        field: Internal record field name
        header: Display header written on export
        column_type: Rendering/coercion type
        aliases: Other headers accepted on import (older exports)
    """
    field: str
    header: str
    column_type: ColumnType = ColumnType.TEXT
    aliases: Tuple[str, ...] = ()

    def keys(self) -> Tuple[str, ...]:
        """Lookup order for this column in a raw row."""
        return (self.header, self.field) + self.aliases

    def render(self, value: Any) -> Any:
        """Convert a record value to its cell form."""
        if value is None:
            return ""
        if self.column_type is ColumnType.DATE:
            return format_locale_timestamp(value)
        if self.column_type is ColumnType.ITEMS:
            if isinstance(value, str):
                return value
            items = list(value or [])
            return json.dumps(items, default=str) if items else ""
        return value


@dataclass
class ColumnMap:
    """Bidirectional header <-> field table for one record kind.

    Attributes:
        kind: Record collection this map describes
        columns: Columns in sheet order
        primary: Field that carries the sentinel text for an empty sheet
        companion: Identifying field that is absent on a sentinel row
    """
    kind: RecordKind
    columns: List[ColumnSpec]
    primary: str
    companion: str
    _by_field: Dict[str, ColumnSpec] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._by_field = {c.field: c for c in self.columns}

    @property
    def headers(self) -> List[str]:
        return [c.header for c in self.columns]

    @property
    def primary_header(self) -> str:
        return self._by_field[self.primary].header

    def column(self, field_name: str) -> ColumnSpec:
        return self._by_field[field_name]

    def fields(self) -> List[str]:
        return [c.field for c in self.columns]

    def lookup(self, row: Mapping[str, Any], field_name: str) -> Any:
        """Read a field from a raw row; None when no key carries a value."""
        spec = self._by_field.get(field_name)
        keys: Iterable[str] = spec.keys() if spec else (field_name,)
        for key in keys:
            value = row.get(key)
            if value is None:
                continue
            if isinstance(value, str) and value.strip() == "":
                continue
            return value
        return None

    def canonicalize(self, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Re-key a raw row by internal field name, dropping unknown keys."""
        result = {}
        for spec in self.columns:
            value = self.lookup(row, spec.field)
            if value is not None:
                result[spec.field] = value
        return result

    def to_row(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Render a record (keyed by field name) as a header-keyed row."""
        return {spec.header: spec.render(record.get(spec.field)) for spec in self.columns}

    def sentinel_row(self, message: str) -> Dict[str, Any]:
        """Placeholder row for an empty collection."""
        row = {header: "" for header in self.headers}
        row[self.primary_header] = message
        return row


# =============================================================================
# Vocabulary
# =============================================================================

_ID = ColumnSpec("id", "ID")
_CREATED = ColumnSpec("created_at", "Created At", ColumnType.DATE)
_UPDATED = ColumnSpec("updated_at", "Updated At", ColumnType.DATE)

PRODUCT_COLUMNS = ColumnMap(
    kind=RecordKind.PRODUCTS,
    primary="name",
    companion="sku",
    columns=[
        _ID,
        ColumnSpec("name", "Product Name", aliases=("Name",)),
        ColumnSpec("category", "Category"),
        ColumnSpec("sku", "SKU"),
        ColumnSpec("barcode", "Barcode"),
        ColumnSpec("weight", "Weight (g)", ColumnType.NUMBER, aliases=("Weight",)),
        ColumnSpec("purity", "Purity"),
        ColumnSpec("material_type", "Material Type"),
        ColumnSpec("making_charge", "Making Charge (₹)", ColumnType.NUMBER, aliases=("Making Charge",)),
        ColumnSpec("current_rate", "Current Rate (₹/g)", ColumnType.NUMBER, aliases=("Current Rate",)),
        ColumnSpec("stock_quantity", "Stock Quantity", ColumnType.INTEGER),
        ColumnSpec("min_stock_level", "Min Stock Level", ColumnType.INTEGER),
        ColumnSpec("status", "Status"),
        _CREATED,
        _UPDATED,
    ],
)

CUSTOMER_COLUMNS = ColumnMap(
    kind=RecordKind.CUSTOMERS,
    primary="name",
    companion="phone",
    columns=[
        _ID,
        ColumnSpec("name", "Customer Name", aliases=("Name",)),
        ColumnSpec("phone", "Phone"),
        ColumnSpec("email", "Email"),
        ColumnSpec("address", "Address"),
        ColumnSpec("city", "City"),
        ColumnSpec("state", "State"),
        ColumnSpec("pincode", "Pincode"),
        ColumnSpec("gst_number", "GST Number", aliases=("GSTIN",)),
        ColumnSpec("customer_type", "Customer Type"),
        ColumnSpec("status", "Status"),
        _CREATED,
    ],
)

_AMOUNT_COLUMNS = [
    ColumnSpec("customer_name", "Customer Name"),
    ColumnSpec("customer_phone", "Customer Phone"),
    ColumnSpec("subtotal", "Subtotal (₹)", ColumnType.NUMBER, aliases=("Subtotal",)),
    ColumnSpec("tax_percentage", "Tax %", ColumnType.NUMBER),
    ColumnSpec("tax_amount", "Tax Amount (₹)", ColumnType.NUMBER, aliases=("Tax Amount",)),
    ColumnSpec("discount_percentage", "Discount %", ColumnType.NUMBER),
    ColumnSpec("discount_amount", "Discount Amount (₹)", ColumnType.NUMBER, aliases=("Discount Amount",)),
    ColumnSpec("total_amount", "Total Amount (₹)", ColumnType.NUMBER, aliases=("Total Amount",)),
    ColumnSpec("payment_method", "Payment Method"),
    ColumnSpec("payment_status", "Payment Status"),
    ColumnSpec("amount_paid", "Amount Paid (₹)", ColumnType.NUMBER, aliases=("Amount Paid",)),
    ColumnSpec("items", "Items", ColumnType.ITEMS),
]

INVOICE_COLUMNS = ColumnMap(
    kind=RecordKind.INVOICES,
    primary="invoice_number",
    companion="customer_name",
    columns=[
        _ID,
        ColumnSpec("invoice_number", "Invoice Number"),
        *_AMOUNT_COLUMNS,
        _CREATED,
        _UPDATED,
    ],
)

# Store records name the bill number invoice_number
_BILL_NUMBER = ColumnSpec("bill_number", "Bill Number", aliases=("invoice_number",))

BILL_COLUMNS = ColumnMap(
    kind=RecordKind.BILLS,
    primary="bill_number",
    companion="customer_name",
    columns=[
        _ID,
        _BILL_NUMBER,
        *_AMOUNT_COLUMNS,
        _CREATED,
        _UPDATED,
    ],
)

EXCHANGE_BILL_COLUMNS = ColumnMap(
    kind=RecordKind.EXCHANGE_BILLS,
    primary="bill_number",
    companion="customer_name",
    columns=[
        _ID,
        _BILL_NUMBER,
        *_AMOUNT_COLUMNS,
        ColumnSpec("old_gold_weight", "Old Gold Weight (g)", ColumnType.NUMBER),
        ColumnSpec("old_gold_purity", "Old Gold Purity"),
        ColumnSpec("old_gold_rate", "Old Gold Rate (₹/g)", ColumnType.NUMBER),
        ColumnSpec("old_gold_value", "Old Gold Value (₹)", ColumnType.NUMBER),
        ColumnSpec("exchange_rate", "Exchange Rate (₹/g)", ColumnType.NUMBER),
        ColumnSpec("exchange_difference", "Exchange Difference (₹)", ColumnType.NUMBER),
        _CREATED,
        _UPDATED,
    ],
)

COLUMN_MAPS: Dict[RecordKind, ColumnMap] = {
    RecordKind.PRODUCTS: PRODUCT_COLUMNS,
    RecordKind.CUSTOMERS: CUSTOMER_COLUMNS,
    RecordKind.INVOICES: INVOICE_COLUMNS,
    RecordKind.BILLS: BILL_COLUMNS,
    RecordKind.EXCHANGE_BILLS: EXCHANGE_BILL_COLUMNS,
}


def column_map(kind: RecordKind) -> ColumnMap:
    """Get the column map of a record kind."""
    return COLUMN_MAPS[RecordKind(kind)]


def find_column(kind: RecordKind, header: str) -> Optional[ColumnSpec]:
    """Find the column a header (or field name / alias) belongs to."""
    for spec in column_map(kind).columns:
        if header in spec.keys():
            return spec
    return None
