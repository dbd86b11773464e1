"""Import orchestration tests against the in-memory Store.

Covers full import, selective import, restore and clear: foreign-key order,
customer resolution, per-record failure accounting, confirmation gating and
progress reporting.
"""

import asyncio
from io import BytesIO

import pytest
from openpyxl import Workbook

from connectors.memory_store import MemoryStore
from connectors.store_base import StoreError
from core.config import Settings
from core.mapping.engine import column_map
from core.models.records import UNKNOWN_CUSTOMER, EntityKind, Invoice, Product, RecordKind
from core.models.refs import ImportStatus
from tabular.codec import StructuralError, encode_workbook
from workflows.context import ConfirmationRequired, OperationContext
from workflows.import_workflow import (
    clear_all,
    import_all,
    import_kind,
    prepare_sales_record,
    ready_for_submission,
    restore,
)
from workflows.progress import ProgressTracker


# =============================================================================
# Fixtures
# =============================================================================

PRODUCTS = [
    {"name": "Rope Chain", "sku": "CH-001", "weight": 12.5, "purity": "22K", "making_charge": 850},
    {"name": "Stud Earrings", "sku": "ER-002", "weight": 4.0, "purity": "18K"},
    {"name": "Broken Row", "sku": "BAD-1", "weight": 0},
]

CUSTOMERS = [
    {"name": "Asha Rao", "phone": "9845012345", "email": "asha@example.com"},
    {"name": "Ravi Kumar", "phone": "9000000001"},
]

INVOICES = [
    {
        "invoice_number": "INV-1",
        "customer_name": "Asha Rao",
        "customer_phone": "9845012345",
        "subtotal": 60000,
        "tax_amount": 1800,
        "total_amount": 61800,
        "items": [{"product_id": 1, "product_name": "Rope Chain", "weight": 12.5, "rate": 4800, "total": 60000}],
    },
    {"invoice_number": "INV-2", "customer_name": "Walk-in Guest", "total_amount": 1500},
]

BILLS = [{"bill_number": "B-1", "customer_name": "Ravi Kumar", "total_amount": 2500}]

EXCHANGE_BILLS = [
    {
        "bill_number": "X-9",
        "customer_name": "Asha Rao",
        "total_amount": 4000,
        "old_gold_weight": 3.1,
        "old_gold_purity": "22K",
    },
]


def workbook(products=(), customers=(), invoices=(), bills=(), exchange_bills=()) -> bytes:
    """Workbook bytes from field-keyed records per sheet."""
    collections = {
        RecordKind.PRODUCTS: products,
        RecordKind.CUSTOMERS: customers,
        RecordKind.INVOICES: invoices,
        RecordKind.BILLS: bills,
        RecordKind.EXCHANGE_BILLS: exchange_bills,
    }
    return encode_workbook({
        kind: [column_map(kind).to_row(record) for record in records]
        for kind, records in collections.items()
    })


def full_workbook() -> bytes:
    return workbook(PRODUCTS, CUSTOMERS, INVOICES, BILLS, EXCHANGE_BILLS)


def single_sheet(name, rows) -> bytes:
    wb = Workbook()
    wb.active.title = name
    for row in rows:
        wb.active.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def seeded_store() -> MemoryStore:
    return MemoryStore(seed={
        "products": [{"name": "Old Ring", "sku": "OLD-1", "weight": 3.0, "purity": "22K"}],
        "customers": [{"name": "Old Customer", "phone": "1"}],
        "invoices": [{"invoice_number": "OLD-INV", "customer_id": 1, "customer_name": "Old Customer",
                      "total_amount": 10, "payment_method": "cash",
                      "items": [{"product_id": 1, "product_name": "Old Ring"}]}],
        "bills": [{"bill_number": "OLD-B", "customer_name": "Old Customer", "total_amount": 5,
                   "payment_method": "cash"}],
    })


def context(store, values=None) -> OperationContext:
    listener = values.append if values is not None else None
    return OperationContext.create(store, settings=Settings(progress_reset_delay=0), listener=listener)


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# Full import
# =============================================================================

class TestImportAll:

    def test_every_kind_persisted(self):
        store = MemoryStore()
        report = run(import_all(context(store), full_workbook()))

        assert report.kinds["products"].imported == 2
        assert report.kinds["products"].rejected == 1
        assert report.kinds["customers"].imported == 2
        assert report.kinds["invoices"].imported == 2
        assert report.kinds["bills"].imported == 2

        assert report.imported == 8
        assert report.total == 9
        assert report.errors == 1
        assert report.status == ImportStatus.PARTIAL
        assert report.summary() == "Imported 8 out of 9 records (1 errors)"

    def test_invoices_linked_to_customers(self):
        store = MemoryStore()

        async def scenario():
            await import_all(context(store), full_workbook())
            return (
                await store.query_all(EntityKind.CUSTOMERS),
                await store.query_all(EntityKind.INVOICES),
            )

        customers, invoices = run(scenario())
        by_id = {c["id"]: c for c in customers}

        # Walk-in Guest was created during the invoice phase
        assert len(customers) == 3
        asha = next(i for i in invoices if i["invoice_number"] == "INV-1")
        guest = next(i for i in invoices if i["invoice_number"] == "INV-2")
        assert by_id[asha["customer_id"]]["name"] == "Asha Rao"
        assert by_id[guest["customer_id"]]["name"] == "Walk-in Guest"
        assert by_id[guest["customer_id"]]["phone"].startswith("PHONE-")
        assert asha["items"][0]["product_name"] == "Rope Chain"

    def test_exchange_bills_keep_prefix(self):
        store = MemoryStore()

        async def scenario():
            await import_all(context(store), full_workbook())
            return await store.query_all(EntityKind.BILLS)

        bills = run(scenario())
        assert sorted(b["bill_number"] for b in bills) == ["B-1", "EXCH-X-9"]
        exchange = next(b for b in bills if b["bill_number"] == "EXCH-X-9")
        assert exchange["old_gold_weight"] == 3.1

    def test_store_failures_counted_and_batch_continues(self):
        store = MemoryStore()
        duplicated = [PRODUCTS[0], dict(PRODUCTS[0], name="Copy"), PRODUCTS[1]]
        report = run(import_all(context(store), workbook(products=duplicated)))

        tally = report.kinds["products"]
        assert tally.imported == 2
        assert tally.failed == 1
        assert report.failures == ["products CH-001: Duplicate SKU: CH-001"]
        assert report.status == ImportStatus.PARTIAL

    def test_everything_refused_is_failed(self):
        class RefusingStore(MemoryStore):
            async def insert(self, kind, record):
                raise StoreError("API error 500: boom", 500)

        report = run(import_all(context(RefusingStore()), workbook(products=PRODUCTS[:2])))
        assert report.imported == 0
        assert report.status == ImportStatus.FAILED

    def test_empty_export_imports_nothing(self):
        report = run(import_all(context(MemoryStore()), workbook()))
        assert report.total == 0
        assert report.status == ImportStatus.SUCCESS
        assert report.summary() == "No records found to import"
        assert report.kinds["products"].sentinels == 1

    def test_unreadable_file(self):
        with pytest.raises(StructuralError):
            run(import_all(context(MemoryStore()), b"not a workbook"))


# =============================================================================
# Selective import
# =============================================================================

class TestImportKind:

    def test_only_selected_kind(self):
        store = MemoryStore()

        async def scenario():
            report = await import_kind(context(store), full_workbook(), RecordKind.PRODUCTS)
            return report, await store.query_all(EntityKind.CUSTOMERS)

        report, customers = run(scenario())
        assert list(report.kinds) == ["products"]
        assert report.kinds["products"].imported == 2
        assert report.errors == 1
        assert customers == []

    def test_invoices_resolve_existing_customers(self):
        store = MemoryStore(seed={"customers": [{"name": "Asha Rao", "phone": "9845012345"}]})

        async def scenario():
            report = await import_kind(context(store), workbook(invoices=INVOICES[:1]), "invoices")
            return report, await store.query_all(EntityKind.CUSTOMERS)

        report, customers = run(scenario())
        assert report.imported == 1
        assert len(customers) == 1

    def test_bills_include_exchange_sheet(self):
        store = MemoryStore()
        report = run(import_kind(context(store), full_workbook(), RecordKind.BILLS))
        assert report.kinds["bills"].imported == 2

    def test_missing_sheet(self):
        data = single_sheet("Customers", [("Customer Name", "Phone"), ("Asha", "1")])
        with pytest.raises(StructuralError, match="No products found"):
            run(import_kind(context(MemoryStore()), data, RecordKind.PRODUCTS))

    def test_placeholder_only_sheet(self):
        report = run(import_kind(context(MemoryStore()), workbook(), RecordKind.CUSTOMERS))
        assert report.total == 0
        assert report.status == ImportStatus.SUCCESS
        assert report.kinds["customers"].sentinels == 1

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            run(import_kind(context(MemoryStore()), workbook(), "widgets"))


# =============================================================================
# Restore & clear
# =============================================================================

class TestRestore:

    def test_requires_confirmation(self):
        store = seeded_store()
        for confirmed in (False, None, "yes", 1):
            with pytest.raises(ConfirmationRequired):
                run(restore(context(store), full_workbook(), confirmed=confirmed))
        assert store.calls == []

    def test_structural_failure_before_any_delete(self):
        store = seeded_store()
        with pytest.raises(StructuralError):
            run(restore(context(store), b"garbage", confirmed=True))
        assert not any(call[0] == "delete" for call in store.calls)

    def test_clears_children_first_then_imports(self):
        store = seeded_store()

        async def scenario():
            report = await restore(context(store), full_workbook(), confirmed=True)
            return report, await store.query_all(EntityKind.PRODUCTS)

        report, products = run(scenario())
        deletes = [call[1] for call in store.calls if call[0] == "delete"]
        assert deletes == ["bills", "invoices", "customers", "products"]
        assert report.cleared == {"bills": 1, "invoices": 1, "customers": 1, "products": 1}
        assert sorted(p["sku"] for p in products) == ["CH-001", "ER-002"]
        assert report.imported == 8

    def test_delete_failures_reported_and_import_continues(self):
        class LockedCustomers(MemoryStore):
            async def delete(self, kind, record_id, cascade=False):
                if kind == EntityKind.CUSTOMERS:
                    raise StoreError("locked", 423)
                await super().delete(kind, record_id, cascade=cascade)

        store = LockedCustomers(seed={"customers": [{"name": "Old Customer", "phone": "1"}]})
        report = run(restore(context(store), full_workbook(), confirmed=True))

        assert report.cleared["customers"] == 0
        assert report.failures == ["delete customers 1: locked"]
        assert report.kinds["customers"].imported == 2

    def test_restore_is_repeatable(self):
        store = MemoryStore()

        async def scenario():
            await restore(context(store), full_workbook(), confirmed=True)
            await restore(context(store), full_workbook(), confirmed=True)
            return {kind: len(await store.query_all(kind)) for kind in EntityKind}

        counts = run(scenario())
        assert counts == {
            EntityKind.PRODUCTS: 2,
            EntityKind.CUSTOMERS: 3,
            EntityKind.INVOICES: 2,
            EntityKind.BILLS: 2,
        }


class TestClearAll:

    def test_requires_confirmation(self):
        with pytest.raises(ConfirmationRequired):
            run(clear_all(context(seeded_store())))

    def test_deletes_everything(self):
        store = seeded_store()

        async def scenario():
            report = await clear_all(context(store), confirmed=True)
            return report, {kind: await store.query_all(kind) for kind in EntityKind}

        report, tables = run(scenario())
        assert report.total_deleted == 4
        assert report.failures == []
        assert all(records == [] for records in tables.values())


# =============================================================================
# Per-record preparation
# =============================================================================

class TestSubmissionChecks:

    def test_invoice_needs_customer_id(self):
        invoice = Invoice(invoice_number="INV-1", total_amount=10)
        assert ready_for_submission(invoice) == ["customer_id"]
        invoice.customer_id = 4
        assert ready_for_submission(invoice) == []

    def test_product_fields(self):
        product = Product(name=" ", sku="", weight=1, purity="22K")
        assert ready_for_submission(product) == ["name", "sku"]

    def test_prepare_injects_defaults_and_total(self):
        invoice = Invoice(
            invoice_number="INV-1",
            customer_name="  ",
            payment_method="",
            subtotal=100,
            tax_amount=3,
        )
        prepare_sales_record(invoice)
        assert invoice.customer_name == UNKNOWN_CUSTOMER
        assert invoice.payment_method == "cash"
        assert invoice.total_amount == 103.0


# =============================================================================
# Progress
# =============================================================================

class TestProgress:

    def test_monotonic_then_reset(self):
        values = []

        async def scenario():
            ctx = context(MemoryStore(), values)
            await import_all(ctx, full_workbook())
            await asyncio.sleep(0.05)
            return ctx.progress.value

        final = run(scenario())
        running = values[:-1]
        assert running == sorted(running)
        assert running[-1] == 100.0
        for boundary in (20.0, 40.0, 60.0, 70.0, 80.0, 90.0):
            assert boundary in running
        assert values[-1] == 0.0
        assert final == 0.0

    def test_reset_after_failure(self):
        values = []

        async def scenario():
            ctx = context(MemoryStore(), values)
            with pytest.raises(StructuralError):
                await import_all(ctx, b"")
            await asyncio.sleep(0.05)
            return ctx.progress.value

        assert run(scenario()) == 0.0

    def test_zero_delay_resets_immediately(self):
        async def scenario():
            tracker = ProgressTracker(reset_delay=0)
            tracker.start()
            tracker.finish()
            return tracker.value, tracker.history

        value, history = run(scenario())
        assert value == 0.0
        assert history[-2:] == [100.0, 0.0]

    def test_positive_delay_holds_completion(self):
        async def scenario():
            tracker = ProgressTracker(reset_delay=0.01)
            tracker.finish()
            held = tracker.value
            await asyncio.sleep(0.05)
            return held, tracker.value

        assert run(scenario()) == (100.0, 0.0)

    def test_new_reset_replaces_pending_one(self):
        async def scenario():
            tracker = ProgressTracker(reset_delay=0.05)
            tracker.finish()
            await asyncio.sleep(0.03)
            tracker.finish()
            await asyncio.sleep(0.03)
            held = tracker.value
            await asyncio.sleep(0.05)
            return held, tracker.value

        assert run(scenario()) == (100.0, 0.0)
