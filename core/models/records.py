"""Canonical ledger record models.

These models represent a fully typed, validated record ready for the Store.
Raw spreadsheet rows are turned into these by ``normalization.normalizer``;
the Store adapters receive ``to_store_payload()`` dictionaries.

Bills are a tagged union: a regular bill and an exchange bill live in the same
Store table and differ only by the ``EXCH-`` number prefix.
``bill_variant()`` is the one place that prefix is interpreted.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, List, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Annotated


EXCHANGE_PREFIX = "EXCH-"
UNKNOWN_CUSTOMER = "Unknown Customer"


# =============================================================================
# Enums
# =============================================================================

class EntityKind(str, Enum):
    """Store tables."""
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    INVOICES = "invoices"
    BILLS = "bills"


class RecordKind(str, Enum):
    """Record collections of the workbook (one sheet each)."""
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    INVOICES = "invoices"
    BILLS = "bills"
    EXCHANGE_BILLS = "exchange_bills"

    @property
    def entity_kind(self) -> EntityKind:
        """Store table that persists this collection."""
        if self is RecordKind.EXCHANGE_BILLS:
            return EntityKind.BILLS
        return EntityKind(self.value)


class BillVariant(str, Enum):
    REGULAR = "regular"
    EXCHANGE = "exchange"


def bill_variant(number: Optional[str]) -> BillVariant:
    """Classify a bill number. ``EXCH-`` prefixed numbers are exchange bills."""
    if number and str(number).strip().upper().startswith(EXCHANGE_PREFIX):
        return BillVariant.EXCHANGE
    return BillVariant.REGULAR


def ensure_exchange_prefix(number: str) -> str:
    """Return ``number`` carrying exactly one ``EXCH-`` prefix."""
    text = str(number).strip()
    if bill_variant(text) is BillVariant.EXCHANGE:
        return EXCHANGE_PREFIX + text[len(EXCHANGE_PREFIX):]
    return EXCHANGE_PREFIX + text


def bill_number_of(record: Dict[str, Any]) -> Optional[str]:
    """Bill number of a Store record (the Store may call it invoice_number)."""
    return record.get("bill_number") or record.get("invoice_number")


# =============================================================================
# Base
# =============================================================================

class LedgerRecord(BaseModel):
    """Base model for all canonical records."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Never sent to the Store on create: the Store assigns ids
    STORE_EXCLUDE: ClassVar[Set[str]] = {"id"}

    def to_store_payload(self) -> Dict[str, Any]:
        """Dictionary submitted to ``Store.insert``."""
        return self.model_dump(mode="json", exclude=self.STORE_EXCLUDE)


# =============================================================================
# Products & Customers
# =============================================================================

class Product(LedgerRecord):
    """An inventory item. Weight is in grams; rates are per gram."""
    id: Optional[str] = None
    name: str
    category: str = "Chains"
    sku: str
    barcode: str = ""
    weight: float = Field(..., gt=0)
    purity: str = Field(..., min_length=1)
    material_type: str = "gold"
    making_charge: float = 0.0
    current_rate: float = 0.0
    stock_quantity: int = 0
    min_stock_level: int = 1
    status: str = "active"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Customer(LedgerRecord):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    gst_number: str = ""
    customer_type: str = "individual"
    status: str = "active"
    created_at: Optional[str] = None


# =============================================================================
# Sales documents
# =============================================================================

class LineItem(BaseModel):
    """A product line on an invoice or bill."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[int, str]] = None
    product_id: Optional[Union[int, str]] = None
    product_name: str = ""
    weight: float = 0.0
    rate: float = 0.0
    making_charge: float = 0.0
    quantity: int = 1
    total: float = 0.0


class SalesDocument(LedgerRecord):
    """Amounts and payment fields shared by invoices and bills."""
    customer_name: str = UNKNOWN_CUSTOMER
    customer_phone: str = ""
    subtotal: float = 0.0
    tax_percentage: float = 0.0
    tax_amount: float = 0.0
    discount_percentage: float = 0.0
    discount_amount: float = 0.0
    total_amount: float = 0.0
    payment_method: str = "cash"
    payment_status: str = "pending"
    amount_paid: float = 0.0
    items: List[LineItem] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def settle_total(self) -> float:
        """Recompute a missing/zero total from its parts and return it."""
        if self.total_amount <= 0:
            self.total_amount = round(self.subtotal + self.tax_amount - self.discount_amount, 2)
        return self.total_amount


class Invoice(SalesDocument):
    id: Optional[str] = None
    invoice_number: str
    customer_id: Optional[Union[int, str]] = None

    @property
    def number(self) -> str:
        return self.invoice_number


class BillBase(SalesDocument):
    id: Optional[str] = None
    bill_number: str

    STORE_EXCLUDE: ClassVar[Set[str]] = {"id", "kind"}

    @property
    def number(self) -> str:
        return self.bill_number

    @property
    def variant(self) -> BillVariant:
        return bill_variant(self.bill_number)

    def to_store_payload(self) -> Dict[str, Any]:
        """The Store's bills endpoint names the bill number invoice_number."""
        payload = super().to_store_payload()
        payload["invoice_number"] = payload.pop("bill_number")
        return payload


class RegularBill(BillBase):
    kind: Literal["regular"] = "regular"


class ExchangeBill(BillBase):
    """Old gold taken in against a new purchase."""
    kind: Literal["exchange"] = "exchange"
    old_gold_weight: float = 0.0
    old_gold_purity: str = ""
    old_gold_rate: float = 0.0
    old_gold_value: float = 0.0
    exchange_rate: float = 0.0
    exchange_difference: float = 0.0


Bill = Annotated[Union[RegularBill, ExchangeBill], Field(discriminator="kind")]

SalesRecord = Union[Invoice, RegularBill, ExchangeBill]


# =============================================================================
# Business settings (optional workbook sheets)
# =============================================================================

class BusinessProfile(BaseModel):
    """Shop details carried in the optional Business Info sheet."""
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    gstin: str = ""
    license: str = ""


class TaxSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    gst_rate: float = 3.0
    making_charge_tax: bool = True
    discount_before_tax: bool = True
