"""Core data models - canonical ledger records and operation reports."""

from core.models.records import (
    EXCHANGE_PREFIX,
    UNKNOWN_CUSTOMER,
    EntityKind,
    RecordKind,
    BillVariant,
    bill_variant,
    ensure_exchange_prefix,
    bill_number_of,
    LedgerRecord,
    Product,
    Customer,
    LineItem,
    SalesDocument,
    Invoice,
    BillBase,
    RegularBill,
    ExchangeBill,
    Bill,
    SalesRecord,
    BusinessProfile,
    TaxSettings,
)

from core.models.refs import (
    DataReference,
    ImportStatus,
    KindTally,
    ImportReport,
    ExportReport,
    ClearReport,
)

__all__ = [
    "EXCHANGE_PREFIX",
    "UNKNOWN_CUSTOMER",
    "EntityKind",
    "RecordKind",
    "BillVariant",
    "bill_variant",
    "ensure_exchange_prefix",
    "bill_number_of",
    "LedgerRecord",
    "Product",
    "Customer",
    "LineItem",
    "SalesDocument",
    "Invoice",
    "BillBase",
    "RegularBill",
    "ExchangeBill",
    "Bill",
    "SalesRecord",
    "BusinessProfile",
    "TaxSettings",
    "DataReference",
    "ImportStatus",
    "KindTally",
    "ImportReport",
    "ExportReport",
    "ClearReport",
]
