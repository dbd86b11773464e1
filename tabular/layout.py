"""Fixed workbook layout.

A full export always carries these five sheets, in this order and with these
exact names. Business Info and Tax Settings are optional extras.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple

from core.mapping.engine import ColumnMap, column_map
from core.models.records import RecordKind


@dataclass(frozen=True)
class SheetLayout:
    """One record sheet of the workbook."""
    name: str
    kind: RecordKind
    sentinel: str

    @property
    def columns(self) -> ColumnMap:
        return column_map(self.kind)


LAYOUTS = (
    SheetLayout("Products", RecordKind.PRODUCTS, "No products found"),
    SheetLayout("Customers", RecordKind.CUSTOMERS, "No customers found"),
    SheetLayout("Invoices", RecordKind.INVOICES, "No invoices found"),
    SheetLayout("Bills", RecordKind.BILLS, "No bills found"),
    SheetLayout("Exchange Bills", RecordKind.EXCHANGE_BILLS, "No exchange bills found"),
)

SHEET_NAMES = tuple(layout.name for layout in LAYOUTS)

BUSINESS_SHEET = "Business Info"
TAX_SHEET = "Tax Settings"

BUSINESS_HEADERS = {
    "name": "Business Name",
    "address": "Address",
    "phone": "Phone",
    "email": "Email",
    "gstin": "GSTIN",
    "license": "BIS License",
}

TAX_HEADERS = {
    "gst_rate": "GST Rate (%)",
    "making_charge_tax": "Apply Tax on Making Charges",
    "discount_before_tax": "Apply Discount Before Tax",
}

EXPORT_DATE_HEADER = "Export Date"


def layout_for(kind: RecordKind) -> SheetLayout:
    kind = RecordKind(kind)
    for layout in LAYOUTS:
        if layout.kind is kind:
            return layout
    raise KeyError(kind)


def is_sentinel_row(kind: RecordKind, row: Mapping[str, Any]) -> bool:
    """Check whether a raw row is the placeholder written for an empty sheet.

    The primary column must hold the placeholder text and the companion
    identifying field must be absent; a real record that happens to be named
    "No products found" still has a SKU.
    """
    layout = layout_for(kind)
    columns = layout.columns
    primary: Optional[Any] = columns.lookup(row, columns.primary)
    if primary is None or str(primary).strip() != layout.sentinel:
        return False
    return columns.lookup(row, columns.companion) is None


def select_layouts(kinds: Optional[Iterable[Any]] = None) -> Tuple[SheetLayout, ...]:
    """Layouts for ``kinds`` in workbook order; every layout when ``kinds`` is None.

    Raises:
        ValueError: Unknown kind, or an empty selection
    """
    if kinds is None:
        return LAYOUTS
    wanted = {RecordKind(kind) for kind in kinds}
    if not wanted:
        raise ValueError("Select at least one record kind to export")
    return tuple(layout for layout in LAYOUTS if layout.kind in wanted)
