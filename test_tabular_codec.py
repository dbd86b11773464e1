"""Workbook codec tests: encoding, decoding, sheet routing, settings sheets."""

from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from core.mapping.engine import column_map, find_column
from core.models.records import BusinessProfile, RecordKind, TaxSettings
from tabular.codec import (
    StructuralError,
    decode_workbook,
    encode_workbook,
    read_settings,
    route_sheets,
)
from tabular.layout import SHEET_NAMES, is_sentinel_row


def _xlsx(sheets):
    """Build workbook bytes from {sheet name: [row tuples]}."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


PRODUCT_ROW = {
    "Product Name": "Rope Chain",
    "SKU": "CH-001",
    "Weight (g)": 12.5,
    "Purity": "22K",
    "Making Charge (₹)": 850,
}


class TestEncode:

    def test_all_five_sheets_in_order(self):
        data = encode_workbook({RecordKind.PRODUCTS: [PRODUCT_ROW]})
        wb = load_workbook(BytesIO(data))
        assert wb.sheetnames == list(SHEET_NAMES)

    def test_header_row_is_bold_and_complete(self):
        data = encode_workbook({})
        ws = load_workbook(BytesIO(data))["Products"]
        headers = [c.value for c in ws[1]]
        assert headers == column_map(RecordKind.PRODUCTS).headers
        assert ws["A1"].font.bold

    def test_empty_collection_gets_sentinel_row(self):
        data = encode_workbook({})
        ws = load_workbook(BytesIO(data))["Exchange Bills"]
        rows = list(ws.iter_rows(values_only=True))
        assert len(rows) == 2
        header_index = rows[0].index("Bill Number")
        assert rows[1][header_index] == "No exchange bills found"

    def test_settings_sheets_only_when_given(self):
        data = encode_workbook({}, business=BusinessProfile(name="Lakshmi Jewellers"), tax=TaxSettings())
        names = load_workbook(BytesIO(data)).sheetnames
        assert names[-2:] == ["Business Info", "Tax Settings"]

        names = load_workbook(BytesIO(encode_workbook({}))).sheetnames
        assert "Business Info" not in names


class TestDecode:

    def test_rows_keyed_by_header(self):
        raw = decode_workbook(encode_workbook({RecordKind.PRODUCTS: [PRODUCT_ROW]}))
        rows = raw.sheets["Products"]
        assert len(rows) == 1
        assert rows[0]["Product Name"] == "Rope Chain"
        assert rows[0]["Weight (g)"] == 12.5
        # Empty cells contribute no key
        assert "Barcode" not in rows[0]

    def test_blank_rows_skipped(self):
        data = _xlsx({"Customers": [
            ("Customer Name", "Phone"),
            (None, None),
            ("Asha Rao", "9845012345"),
            ("", "   "),
        ]})
        raw = decode_workbook(data)
        assert raw.sheets["Customers"] == [{"Customer Name": "Asha Rao", "Phone": "9845012345"}]

    def test_header_only_sheet_left_out(self):
        data = _xlsx({
            "Products": [("Product Name", "SKU")],
            "Customers": [("Customer Name", "Phone"), ("Asha", "1")],
        })
        assert decode_workbook(data).sheet_names == ["Customers"]

    def test_empty_buffer(self):
        with pytest.raises(StructuralError):
            decode_workbook(b"")

    def test_not_a_workbook(self):
        with pytest.raises(StructuralError):
            decode_workbook(b"this is not a zip file")

    def test_workbook_without_data(self):
        with pytest.raises(StructuralError):
            decode_workbook(_xlsx({"Sheet1": [("Only", "Headers")]}))


class TestRouting:

    def test_case_insensitive_sheet_names(self):
        data = _xlsx({
            "products": [("Product Name", "SKU"), ("Ring", "R-1")],
            "EXCHANGE BILLS": [("Bill Number", "Total Amount (₹)"), ("EXCH-1", 100)],
        })
        routed = route_sheets(decode_workbook(data))
        assert set(routed) == {RecordKind.PRODUCTS, RecordKind.EXCHANGE_BILLS}
        assert routed[RecordKind.PRODUCTS][0]["SKU"] == "R-1"

    def test_unknown_sheets_ignored(self):
        data = _xlsx({
            "Notes": [("Text",), ("hello",)],
            "Invoices": [("Invoice Number", "Total Amount (₹)"), ("INV-1", 500)],
        })
        assert list(route_sheets(decode_workbook(data))) == [RecordKind.INVOICES]

    def test_sentinel_rows_survive_round_trip(self):
        routed = route_sheets(decode_workbook(encode_workbook({})))
        assert len(routed) == 5
        for kind, rows in routed.items():
            assert len(rows) == 1
            assert is_sentinel_row(kind, rows[0])


class TestSentinelDetection:

    def test_real_record_with_sentinel_name_is_not_sentinel(self):
        row = {"Product Name": "No products found", "SKU": "ODD-1"}
        assert not is_sentinel_row(RecordKind.PRODUCTS, row)

    def test_sentinel_by_field_name(self):
        assert is_sentinel_row(RecordKind.CUSTOMERS, {"name": "No customers found"})

    def test_other_text_is_not_sentinel(self):
        assert not is_sentinel_row(RecordKind.BILLS, {"Bill Number": "No invoices found"})


class TestSettingsSheets:

    def test_round_trip(self):
        business = BusinessProfile(
            name="Lakshmi Jewellers",
            address="12 MG Road, Bengaluru",
            phone="08012345678",
            gstin="29ABCDE1234F1Z5",
        )
        tax = TaxSettings(gst_rate=3.0, making_charge_tax=False, discount_before_tax=True)
        raw = decode_workbook(encode_workbook({}, business=business, tax=tax))

        read_business, read_tax = read_settings(raw)
        assert read_business.name == "Lakshmi Jewellers"
        assert read_business.gstin == "29ABCDE1234F1Z5"
        assert read_tax == tax

    def test_absent(self):
        assert read_settings(decode_workbook(encode_workbook({}))) == (None, None)


class TestColumnVocabulary:

    def test_lookup_prefers_header_then_field_then_alias(self):
        columns = column_map(RecordKind.PRODUCTS)
        assert columns.lookup({"Product Name": "A", "name": "B"}, "name") == "A"
        assert columns.lookup({"name": "B", "Name": "C"}, "name") == "B"
        assert columns.lookup({"Name": "C"}, "name") == "C"
        assert columns.lookup({"Product Name": "  "}, "name") is None

    def test_bill_number_alias(self):
        assert find_column(RecordKind.BILLS, "invoice_number").field == "bill_number"

    def test_items_rendered_as_json(self):
        columns = column_map(RecordKind.INVOICES)
        row = columns.to_row({"items": [{"product_name": "Ring", "weight": 4.0}]})
        assert row["Items"] == '[{"product_name": "Ring", "weight": 4.0}]'
        assert columns.to_row({"items": []})["Items"] == ""
