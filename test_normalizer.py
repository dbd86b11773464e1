"""Normalization tests: raw rows -> canonical records, and export shaping."""

import json

import pytest

from core.models.records import (
    UNKNOWN_CUSTOMER,
    EntityKind,
    ExchangeBill,
    Invoice,
    Product,
    RecordKind,
    RegularBill,
)
from normalization.coerce import coerce_choice, coerce_int, coerce_items, coerce_number, coerce_text
from normalization.normalizer import (
    NormalizationReport,
    RecordNormalizer,
    partition_bills,
    shape_dataset,
    shape_rows,
)

# 2023-11-14T22:13:20Z
FIXED_CLOCK = lambda: 1700000000.0


@pytest.fixture
def normalizer():
    return RecordNormalizer(clock=FIXED_CLOCK)


class TestCoercion:

    @pytest.mark.parametrize("value,expected", [
        ("₹1,250.50", 1250.5),
        ("Rs. 900", 900.0),
        ("12 %", 12.0),
        (7, 7.0),
        ("", 0.0),
        (None, 0.0),
        ("abc", 0.0),
        (float("nan"), 0.0),
        (True, 0.0),
    ])
    def test_number(self, value, expected):
        assert coerce_number(value) == expected

    def test_int_rounds(self):
        assert coerce_int("2.6") == 3
        assert coerce_int("x", default=1) == 1

    def test_text_drops_float_suffix(self):
        assert coerce_text(9845012345.0) == "9845012345"
        assert coerce_text("  Asha ") == "Asha"
        assert coerce_text(None, "fallback") == "fallback"

    def test_choice(self):
        assert coerce_choice("UPI", "cash") == "upi"
        assert coerce_choice("", "cash") == "cash"
        assert coerce_choice("cheque", "cash", choices=("cash", "card")) == "cash"

    def test_items_from_json(self):
        items = coerce_items(json.dumps([
            {"product_name": "Ring", "weight": 4.2, "rate": 6000, "total": 25200},
            "not an item",
            {"weight": "heavy"},
        ]))
        assert len(items) == 1
        assert items[0].product_name == "Ring"
        assert items[0].quantity == 1

    def test_items_unreadable(self):
        assert coerce_items("{not json") == []
        assert coerce_items(None) == []


class TestProducts:

    def test_full_row(self, normalizer):
        product = normalizer.normalize_row(RecordKind.PRODUCTS, {
            "Product Name": "Rope Chain",
            "SKU": "CH-001",
            "Weight (g)": "12.5",
            "Purity": "22K",
            "Making Charge (₹)": "₹1,250",
            "Stock Quantity": 3.0,
            "Material Type": "GOLD",
            "Created At": "21/3/2024, 5:30:00 pm",
        })
        assert product.name == "Rope Chain"
        assert product.weight == 12.5
        assert product.making_charge == 1250.0
        assert product.stock_quantity == 3
        assert product.material_type == "gold"
        assert product.created_at == "2024-03-21T17:30:00.000Z"
        # Missing update stamp falls back to creation
        assert product.updated_at == product.created_at

    def test_defaults(self, normalizer):
        product = normalizer.normalize_row(RecordKind.PRODUCTS, {"Name": "Bangle", "Weight": 20})
        assert product.category == "Chains"
        assert product.purity == "22K"
        assert product.status == "active"
        assert product.min_stock_level == 1
        assert product.sku.startswith("SKU-")
        assert len(product.sku) == 12

    @pytest.mark.parametrize("row", [
        {"Product Name": "Ring"},
        {"Product Name": "Ring", "Weight (g)": 0},
        {"Product Name": "Ring", "Weight (g)": "-2"},
        {"SKU": "X", "Weight (g)": 3},
    ])
    def test_rejected(self, normalizer, row):
        assert normalizer.normalize_row(RecordKind.PRODUCTS, row) is None

    def test_payload_excludes_id(self):
        product = Product(id="5", name="Chain", sku="CH-1", weight=10, purity="22K")
        payload = product.to_store_payload()
        assert "id" not in payload
        assert payload["sku"] == "CH-1"
        assert "STORE_EXCLUDE" not in Product.model_fields


class TestCustomers:

    def test_phone_from_numeric_cell(self, normalizer):
        customer = normalizer.normalize_row(RecordKind.CUSTOMERS, {
            "Customer Name": "Asha Rao",
            "Phone": 9845012345.0,
            "Pincode": 560001.0,
        })
        assert customer.phone == "9845012345"
        assert customer.pincode == "560001"
        assert customer.customer_type == "individual"

    def test_missing_phone_rejected(self, normalizer):
        assert normalizer.normalize_row(RecordKind.CUSTOMERS, {"Customer Name": "Asha"}) is None


class TestInvoices:

    def test_total_recomputed_when_zero(self, normalizer):
        invoice = normalizer.normalize_row(RecordKind.INVOICES, {
            "Invoice Number": "INV-9",
            "Customer Name": "Asha Rao",
            "Subtotal (₹)": 1000,
            "Tax Amount (₹)": 30,
            "Discount Amount (₹)": 10,
            "Total Amount (₹)": 0,
        })
        assert invoice.total_amount == 1020.0

    def test_zero_everything_rejected(self, normalizer):
        assert normalizer.normalize_row(RecordKind.INVOICES, {"Invoice Number": "INV-1"}) is None

    def test_defaults_and_generated_number(self, normalizer):
        invoice = normalizer.normalize_row(RecordKind.INVOICES, {"Total Amount (₹)": "500"})
        assert isinstance(invoice, Invoice)
        assert invoice.invoice_number == "INV-2023-000000"
        assert invoice.customer_name == UNKNOWN_CUSTOMER
        assert invoice.payment_method == "cash"
        assert invoice.payment_status == "pending"

    def test_generated_numbers_unique(self, normalizer):
        first = normalizer.generate_number("INV")
        second = normalizer.generate_number("INV")
        assert first != second


class TestBills:

    def test_regular_bill(self, normalizer):
        bill = normalizer.normalize_row(RecordKind.BILLS, {"Bill Number": "B-7", "Total Amount (₹)": 900})
        assert isinstance(bill, RegularBill)
        assert bill.to_store_payload()["invoice_number"] == "B-7"
        assert "bill_number" not in bill.to_store_payload()

    def test_prefixed_bill_on_bills_sheet_is_exchange(self, normalizer):
        bill = normalizer.normalize_row(RecordKind.BILLS, {"Bill Number": "EXCH-3", "Total Amount (₹)": 900})
        assert isinstance(bill, ExchangeBill)

    def test_lowercase_prefix_on_bills_sheet_is_canonical(self, normalizer):
        bill = normalizer.normalize_row(RecordKind.BILLS, {"Bill Number": "exch-7", "Total Amount (₹)": 900})
        assert isinstance(bill, ExchangeBill)
        assert bill.bill_number == "EXCH-7"
        assert bill.to_store_payload()["invoice_number"] == "EXCH-7"

    def test_payload_excludes_id_and_kind(self):
        bill = ExchangeBill(id="9", bill_number="EXCH-1", old_gold_weight=2.0)
        payload = bill.to_store_payload()
        assert "id" not in payload
        assert "kind" not in payload
        assert payload["old_gold_weight"] == 2.0

    def test_exchange_sheet_adds_prefix(self, normalizer):
        bill = normalizer.normalize_row(RecordKind.EXCHANGE_BILLS, {
            "Bill Number": "B-7",
            "Total Amount (₹)": 900,
            "Old Gold Weight (g)": "5.2",
            "Old Gold Purity": "18K",
        })
        assert isinstance(bill, ExchangeBill)
        assert bill.bill_number == "EXCH-B-7"
        assert bill.old_gold_weight == 5.2
        assert bill.old_gold_purity == "18K"

    def test_exchange_prefix_not_doubled(self, normalizer):
        bill = normalizer.normalize_row(RecordKind.EXCHANGE_BILLS, {"Bill Number": "exch-4", "Total Amount (₹)": 1})
        assert bill.bill_number == "EXCH-4"

    def test_exchange_without_number(self, normalizer):
        bill = normalizer.normalize_row(RecordKind.EXCHANGE_BILLS, {"Total Amount (₹)": 10})
        assert bill.bill_number == "EXCH-2023-000000"


class TestBatch:

    def test_sentinels_are_not_rejections(self, normalizer):
        dataset, report = normalizer.normalize({
            RecordKind.PRODUCTS: [{"Product Name": "No products found"}],
            RecordKind.CUSTOMERS: [
                {"Customer Name": "Asha", "Phone": "1"},
                {"Customer Name": "Nobody"},
            ],
        })
        assert dataset.products == []
        assert len(dataset.customers) == 1
        assert report.sentinels_for(RecordKind.PRODUCTS) == 1
        assert report.rejected_for(RecordKind.PRODUCTS) == 0
        assert report.rejected_for(RecordKind.CUSTOMERS) == 1

    def test_absent_sheets_stay_none(self, normalizer):
        dataset, _ = normalizer.normalize({RecordKind.INVOICES: [{"Total Amount (₹)": 5}]})
        assert dataset.products is None
        assert dataset.bills is None
        assert len(dataset.invoices) == 1

    def test_bills_merged_for_persistence(self, normalizer):
        dataset, _ = normalizer.normalize({
            RecordKind.BILLS: [{"Bill Number": "B-1", "Total Amount (₹)": 1}],
            RecordKind.EXCHANGE_BILLS: [{"Bill Number": "2", "Total Amount (₹)": 1}],
        })
        numbers = [b.bill_number for b in dataset.bills_for_persistence()]
        assert numbers == ["B-1", "EXCH-2"]

    def test_report_counts(self):
        report = NormalizationReport()
        report.reject(RecordKind.BILLS)
        report.reject("bills")
        assert report.rejected_for(RecordKind.BILLS) == 2
        assert report.total_rejected == 2


class TestShaping:

    STORE_BILLS = [
        {"id": 1, "bill_number": "B-1", "customer_name": "Asha", "total_amount": 100},
        {"id": 2, "invoice_number": "EXCH-2", "customer_name": "Ravi", "total_amount": 200,
         "old_gold_weight": 4.5},
    ]

    def test_partition_by_prefix(self):
        regular, exchange = partition_bills(self.STORE_BILLS)
        assert [r["id"] for r in regular] == [1]
        assert [r["id"] for r in exchange] == [2]

    def test_exchange_rows_carry_number_and_old_gold(self):
        rows = shape_rows(RecordKind.EXCHANGE_BILLS, self.STORE_BILLS)
        assert len(rows) == 1
        assert rows[0]["Bill Number"] == "EXCH-2"
        assert rows[0]["Old Gold Weight (g)"] == 4.5

    def test_dates_rendered_for_people(self):
        rows = shape_rows(RecordKind.CUSTOMERS, [
            {"name": "Asha", "phone": "1", "created_at": "2024-03-21T17:30:00.000Z"},
        ])
        assert rows[0]["Created At"] == "21/3/2024, 5:30:00 pm"

    def test_dataset_has_every_sheet(self):
        sheets = shape_dataset({EntityKind.BILLS: self.STORE_BILLS})
        assert set(sheets) == set(RecordKind)
        assert sheets[RecordKind.PRODUCTS] == []
        assert len(sheets[RecordKind.BILLS]) == 1
