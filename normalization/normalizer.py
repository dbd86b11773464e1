"""Raw workbook rows -> canonical ledger records, and back.

The normalizer is pure: it performs no I/O, never raises for a bad row and
reports what it dropped. Rows that cannot become a valid record are
rejected; placeholder rows written for empty sheets are skipped as
sentinels and never counted as errors.

Export shaping (``shape_rows``) is the inverse direction: Store records to
header-keyed rows, using the same ColumnMap vocabulary.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from core.dates import interpret_date
from core.mapping.engine import ColumnMap, column_map
from core.models.records import (
    UNKNOWN_CUSTOMER,
    BillVariant,
    BusinessProfile,
    Customer,
    EntityKind,
    ExchangeBill,
    Invoice,
    LedgerRecord,
    Product,
    RecordKind,
    RegularBill,
    TaxSettings,
    bill_number_of,
    bill_variant,
    ensure_exchange_prefix,
)
from core.observability.logging import get_logger
from normalization.coerce import coerce_choice, coerce_int, coerce_items, coerce_number, coerce_text
from tabular.layout import is_sentinel_row

logger = get_logger(__name__)

RawRow = Mapping[str, Any]

DEFAULT_CATEGORY = "Chains"
DEFAULT_PURITY = "22K"
DEFAULT_MATERIAL = "gold"
DEFAULT_STATUS = "active"
DEFAULT_MIN_STOCK = 1
DEFAULT_CUSTOMER_TYPE = "individual"
DEFAULT_PAYMENT_METHOD = "cash"
DEFAULT_PAYMENT_STATUS = "pending"

_EXCHANGE_FIELDS = (
    "old_gold_weight",
    "old_gold_rate",
    "old_gold_value",
    "exchange_rate",
    "exchange_difference",
)


# =============================================================================
# Results
# =============================================================================

@dataclass
class NormalizationReport:
    """Rows dropped during normalization, per record kind."""
    rejected: Dict[str, int] = field(default_factory=dict)
    sentinels: Dict[str, int] = field(default_factory=dict)

    def reject(self, kind: RecordKind):
        key = RecordKind(kind).value
        self.rejected[key] = self.rejected.get(key, 0) + 1

    def sentinel(self, kind: RecordKind):
        key = RecordKind(kind).value
        self.sentinels[key] = self.sentinels.get(key, 0) + 1

    def rejected_for(self, kind: RecordKind) -> int:
        return self.rejected.get(RecordKind(kind).value, 0)

    def sentinels_for(self, kind: RecordKind) -> int:
        return self.sentinels.get(RecordKind(kind).value, 0)

    @property
    def total_rejected(self) -> int:
        return sum(self.rejected.values())


@dataclass
class NormalizedDataset:
    """Canonical records per collection.

    A collection is None when its sheet was absent or had no rows.
    ``bills`` may contain exchange bills found on the Bills sheet.
    """
    products: Optional[List[Product]] = None
    customers: Optional[List[Customer]] = None
    invoices: Optional[List[Invoice]] = None
    bills: Optional[List[LedgerRecord]] = None
    exchange_bills: Optional[List[ExchangeBill]] = None
    business: Optional[BusinessProfile] = None
    tax: Optional[TaxSettings] = None

    def collection(self, kind: RecordKind) -> Optional[List[LedgerRecord]]:
        return getattr(self, RecordKind(kind).value)

    def bills_for_persistence(self) -> List[LedgerRecord]:
        """Bills and exchange bills as one list, in sheet order."""
        return list(self.bills or []) + list(self.exchange_bills or [])

    def counts(self) -> Dict[str, int]:
        return {
            kind.value: len(self.collection(kind) or [])
            for kind in RecordKind
        }

    @property
    def is_empty(self) -> bool:
        return all(not self.collection(kind) for kind in RecordKind)


# =============================================================================
# Normalizer
# =============================================================================

class RecordNormalizer:
    """Turns raw rows into canonical records.

    Usage:
        normalizer = RecordNormalizer()
        dataset, report = normalizer.normalize(route_sheets(raw))
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            clock: Returns epoch seconds; used for generated document numbers
        """
        self._clock = clock or time.time
        self._sequence = 0

    # -------------------------------------------------------------------------
    # Numbering
    # -------------------------------------------------------------------------

    def generate_number(self, prefix: str) -> str:
        """``<prefix>-<year>-<6 digits>`` from the clock, unique within this normalizer."""
        now = self._clock()
        year = datetime.fromtimestamp(now, tz=timezone.utc).year
        millis = int(now * 1000) + self._sequence
        self._sequence += 1
        return f"{prefix}-{year}-{millis % 1_000_000:06d}"

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def normalize(
        self,
        routed: Mapping[RecordKind, Iterable[RawRow]],
        business: Optional[BusinessProfile] = None,
        tax: Optional[TaxSettings] = None,
    ) -> Tuple[NormalizedDataset, NormalizationReport]:
        """Normalize every routed sheet.

        Args:
            routed: Raw rows per record kind (see ``tabular.route_sheets``)
            business: Business Info carried through unchanged
            tax: Tax Settings carried through unchanged

        Returns:
            Tuple of (dataset, report)
        """
        dataset = NormalizedDataset(business=business, tax=tax)
        report = NormalizationReport()

        for kind, rows in routed.items():
            kind = RecordKind(kind)
            rows = list(rows or [])
            if not rows:
                continue
            setattr(dataset, kind.value, self.normalize_rows(kind, rows, report))

        logger.info(
            "Normalized workbook",
            extra_fields={
                "counts": dataset.counts(),
                "rejected": report.rejected,
                "sentinels": report.sentinels,
            },
        )
        return dataset, report

    def normalize_rows(
        self,
        kind: RecordKind,
        rows: Iterable[RawRow],
        report: NormalizationReport,
    ) -> List[LedgerRecord]:
        """Normalize the rows of one sheet, recording drops in ``report``."""
        kind = RecordKind(kind)
        records = []
        for index, row in enumerate(rows):
            if is_sentinel_row(kind, row):
                report.sentinel(kind)
                continue
            record = self.normalize_row(kind, row)
            if record is None:
                report.reject(kind)
                logger.debug(
                    "Row rejected",
                    extra_fields={"record_kind": kind.value, "row": index + 2},
                )
                continue
            records.append(record)
        return records

    def normalize_row(self, kind: RecordKind, row: RawRow) -> Optional[LedgerRecord]:
        """Normalize a single row; None when the row is invalid."""
        kind = RecordKind(kind)
        try:
            if kind is RecordKind.PRODUCTS:
                return self.normalize_product(row)
            if kind is RecordKind.CUSTOMERS:
                return self.normalize_customer(row)
            if kind is RecordKind.INVOICES:
                return self.normalize_invoice(row)
            if kind is RecordKind.BILLS:
                return self.normalize_bill(row, from_exchange_sheet=False)
            return self.normalize_bill(row, from_exchange_sheet=True)
        except ValidationError as e:
            logger.debug(
                "Row failed validation",
                extra_fields={"record_kind": kind.value, "errors": e.error_count()},
            )
            return None

    # -------------------------------------------------------------------------
    # Kinds
    # -------------------------------------------------------------------------

    def normalize_product(self, row: RawRow) -> Optional[Product]:
        columns = column_map(RecordKind.PRODUCTS)
        get = lambda f: columns.lookup(row, f)

        name = coerce_text(get("name"))
        weight = coerce_number(get("weight"))
        if not name or weight <= 0:
            return None

        created_at = interpret_date(get("created_at"))
        return Product(
            name=name,
            category=coerce_text(get("category"), DEFAULT_CATEGORY),
            sku=coerce_text(get("sku")) or f"SKU-{uuid.uuid4().hex[:8].upper()}",
            barcode=coerce_text(get("barcode")),
            weight=weight,
            purity=coerce_text(get("purity"), DEFAULT_PURITY),
            material_type=coerce_choice(get("material_type"), DEFAULT_MATERIAL),
            making_charge=coerce_number(get("making_charge")),
            current_rate=coerce_number(get("current_rate")),
            stock_quantity=coerce_int(get("stock_quantity")),
            min_stock_level=coerce_int(get("min_stock_level"), DEFAULT_MIN_STOCK),
            status=coerce_choice(get("status"), DEFAULT_STATUS),
            created_at=created_at,
            updated_at=interpret_date(get("updated_at"), fallback=created_at),
        )

    def normalize_customer(self, row: RawRow) -> Optional[Customer]:
        columns = column_map(RecordKind.CUSTOMERS)
        get = lambda f: columns.lookup(row, f)

        name = coerce_text(get("name"))
        phone = coerce_text(get("phone"))
        if not name or not phone:
            return None

        return Customer(
            name=name,
            phone=phone,
            email=coerce_text(get("email")),
            address=coerce_text(get("address")),
            city=coerce_text(get("city")),
            state=coerce_text(get("state")),
            pincode=coerce_text(get("pincode")),
            gst_number=coerce_text(get("gst_number")),
            customer_type=coerce_choice(get("customer_type"), DEFAULT_CUSTOMER_TYPE),
            status=coerce_choice(get("status"), DEFAULT_STATUS),
            created_at=interpret_date(get("created_at")),
        )

    def _sales_fields(self, columns: ColumnMap, row: RawRow) -> Dict[str, Any]:
        get = lambda f: columns.lookup(row, f)
        created_at = interpret_date(get("created_at"))
        return {
            "customer_name": coerce_text(get("customer_name"), UNKNOWN_CUSTOMER),
            "customer_phone": coerce_text(get("customer_phone")),
            "subtotal": coerce_number(get("subtotal")),
            "tax_percentage": coerce_number(get("tax_percentage")),
            "tax_amount": coerce_number(get("tax_amount")),
            "discount_percentage": coerce_number(get("discount_percentage")),
            "discount_amount": coerce_number(get("discount_amount")),
            "total_amount": coerce_number(get("total_amount")),
            "payment_method": coerce_choice(get("payment_method"), DEFAULT_PAYMENT_METHOD),
            "payment_status": coerce_choice(get("payment_status"), DEFAULT_PAYMENT_STATUS),
            "amount_paid": coerce_number(get("amount_paid")),
            "items": coerce_items(get("items")),
            "created_at": created_at,
            "updated_at": interpret_date(get("updated_at"), fallback=created_at),
        }

    def normalize_invoice(self, row: RawRow) -> Optional[Invoice]:
        columns = column_map(RecordKind.INVOICES)
        number = coerce_text(columns.lookup(row, "invoice_number")) or self.generate_number("INV")

        invoice = Invoice(invoice_number=number, **self._sales_fields(columns, row))
        if invoice.settle_total() <= 0:
            return None
        return invoice

    def normalize_bill(self, row: RawRow, from_exchange_sheet: bool) -> Optional[LedgerRecord]:
        """Normalize a Bills or Exchange Bills row.

        Exchange Bills rows always get the ``EXCH-`` prefix. Bills rows that
        already carry it become exchange bills too.
        """
        kind = RecordKind.EXCHANGE_BILLS if from_exchange_sheet else RecordKind.BILLS
        columns = column_map(kind)
        number = coerce_text(columns.lookup(row, "bill_number"))

        if from_exchange_sheet:
            number = ensure_exchange_prefix(number) if number else self.generate_number("EXCH")
        elif not number:
            number = self.generate_number("BILL")
        elif bill_variant(number) is BillVariant.EXCHANGE:
            number = ensure_exchange_prefix(number)

        fields = self._sales_fields(columns, row)
        if bill_variant(number) is BillVariant.EXCHANGE:
            exchange_columns = column_map(RecordKind.EXCHANGE_BILLS)
            for name in _EXCHANGE_FIELDS:
                fields[name] = coerce_number(exchange_columns.lookup(row, name))
            fields["old_gold_purity"] = coerce_text(exchange_columns.lookup(row, "old_gold_purity"))
            bill = ExchangeBill(bill_number=number, **fields)
        else:
            bill = RegularBill(bill_number=number, **fields)

        if bill.settle_total() <= 0:
            return None
        return bill


def normalize_workbook(
    routed: Mapping[RecordKind, Iterable[RawRow]],
    business: Optional[BusinessProfile] = None,
    tax: Optional[TaxSettings] = None,
) -> Tuple[NormalizedDataset, NormalizationReport]:
    """Normalize routed sheets with a fresh normalizer."""
    return RecordNormalizer().normalize(routed, business=business, tax=tax)


# =============================================================================
# Export shaping
# =============================================================================

def partition_bills(records: Iterable[Mapping[str, Any]]) -> Tuple[List[Mapping[str, Any]], List[Mapping[str, Any]]]:
    """Split Store bill records into (regular, exchange) by number prefix."""
    regular, exchange = [], []
    for record in records:
        if bill_variant(bill_number_of(record)) is BillVariant.EXCHANGE:
            exchange.append(record)
        else:
            regular.append(record)
    return regular, exchange


def _as_mapping(record: Any) -> Dict[str, Any]:
    if isinstance(record, LedgerRecord):
        return record.model_dump(mode="json")
    return dict(record)


def shape_rows(kind: RecordKind, records: Iterable[Any]) -> List[Dict[str, Any]]:
    """Store records (or canonical models) of one kind -> header-keyed rows.

    For BILLS and EXCHANGE_BILLS, records of the other variant are left out,
    so the whole bills table can be passed for either sheet.
    """
    kind = RecordKind(kind)
    columns = column_map(kind)
    records = [_as_mapping(r) for r in records]

    if kind in (RecordKind.BILLS, RecordKind.EXCHANGE_BILLS):
        regular, exchange = partition_bills(records)
        records = exchange if kind is RecordKind.EXCHANGE_BILLS else regular
        records = [{**r, "bill_number": bill_number_of(r)} for r in records]

    return [columns.to_row(record) for record in records]


def shape_dataset(data: Mapping[EntityKind, Iterable[Any]]) -> Dict[RecordKind, List[Dict[str, Any]]]:
    """Store tables -> header-keyed rows for each of the five sheets."""
    tables = {EntityKind(k): list(v or []) for k, v in data.items()}
    bills = tables.get(EntityKind.BILLS, [])
    return {
        RecordKind.PRODUCTS: shape_rows(RecordKind.PRODUCTS, tables.get(EntityKind.PRODUCTS, [])),
        RecordKind.CUSTOMERS: shape_rows(RecordKind.CUSTOMERS, tables.get(EntityKind.CUSTOMERS, [])),
        RecordKind.INVOICES: shape_rows(RecordKind.INVOICES, tables.get(EntityKind.INVOICES, [])),
        RecordKind.BILLS: shape_rows(RecordKind.BILLS, bills),
        RecordKind.EXCHANGE_BILLS: shape_rows(RecordKind.EXCHANGE_BILLS, bills),
    }
