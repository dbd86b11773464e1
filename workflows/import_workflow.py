"""Import orchestration.

Reconciles a workbook back into the Store:

- import_kind: one record kind, the rest of the workbook is ignored
- import_all: every kind, foreign-key order
- restore: clear the Store, then import_all
- clear_all: the delete step of a restore on its own

Order of persistence:
    Products -> Customers -> (customer index) -> Invoices -> Bills

Records are inserted one at a time. A Store failure is logged with the
record's identity, counted, and the batch continues. Nothing is retried and
there is no rollback.
"""

import time
from typing import Any, List, Optional, Tuple

from connectors.store_base import StoreError
from core.models.records import (
    UNKNOWN_CUSTOMER,
    BillBase,
    Customer,
    EntityKind,
    Invoice,
    LedgerRecord,
    Product,
    RecordKind,
    SalesDocument,
)
from core.models.refs import ClearReport, ImportReport, KindTally
from core.observability.logging import (
    get_logger,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
    with_correlation,
)
from customer_resolver import CustomerResolver
from normalization.coerce import coerce_number
from normalization.normalizer import NormalizationReport, NormalizedDataset, RecordNormalizer
from tabular.codec import StructuralError, decode_workbook, read_settings, route_sheets
from workflows import progress as phases
from workflows.context import OperationContext

logger = get_logger(__name__)

# Children before parents
CLEAR_ORDER = (
    EntityKind.BILLS,
    EntityKind.INVOICES,
    EntityKind.CUSTOMERS,
    EntityKind.PRODUCTS,
)

# Record kinds feeding each Store collection
_SOURCES = {
    EntityKind.PRODUCTS: (RecordKind.PRODUCTS,),
    EntityKind.CUSTOMERS: (RecordKind.CUSTOMERS,),
    EntityKind.INVOICES: (RecordKind.INVOICES,),
    EntityKind.BILLS: (RecordKind.BILLS, RecordKind.EXCHANGE_BILLS),
}


def record_ref(record: LedgerRecord) -> str:
    """Human identity of a record for logs and failure messages."""
    for attr in ("invoice_number", "bill_number", "sku", "name"):
        value = getattr(record, attr, None)
        if value:
            return str(value)
    return "?"


# =============================================================================
# Per-record preparation
# =============================================================================

def prepare_sales_record(record: SalesDocument) -> SalesDocument:
    """Coerce amounts, inject defaults and recompute a missing total."""
    for name in (
        "subtotal",
        "tax_percentage",
        "tax_amount",
        "discount_percentage",
        "discount_amount",
        "total_amount",
        "amount_paid",
    ):
        setattr(record, name, coerce_number(getattr(record, name)))
    record.customer_name = (record.customer_name or "").strip() or UNKNOWN_CUSTOMER
    record.customer_phone = (record.customer_phone or "").strip()
    record.payment_method = (record.payment_method or "").strip() or "cash"
    record.settle_total()
    return record


def ready_for_submission(record: LedgerRecord) -> List[str]:
    """Problems that would make the Store refuse ``record``.

    Returns:
        Missing or invalid field names; empty when the record can be inserted
    """
    problems = []
    if isinstance(record, Product):
        if not record.name.strip():
            problems.append("name")
        if not record.sku:
            problems.append("sku")
        if record.weight <= 0:
            problems.append("weight")
    elif isinstance(record, Customer):
        if not record.name.strip():
            problems.append("name")
        if not record.phone.strip():
            problems.append("phone")
    elif isinstance(record, SalesDocument):
        number = record.invoice_number if isinstance(record, Invoice) else record.bill_number
        if not (number or "").strip():
            problems.append("invoice_number" if isinstance(record, Invoice) else "bill_number")
        if not record.customer_name.strip():
            problems.append("customer_name")
        if record.total_amount <= 0:
            problems.append("total_amount")
        if not record.payment_method:
            problems.append("payment_method")
        if isinstance(record, Invoice) and record.customer_id is None:
            problems.append("customer_id")
    return problems


# =============================================================================
# Phases
# =============================================================================

def read_workbook(
    ctx: OperationContext,
    data: bytes,
) -> Tuple[NormalizedDataset, NormalizationReport]:
    """Decode and normalize a workbook. Raises StructuralError before any mutation."""
    ctx.progress.advance(phases.READ)
    raw = decode_workbook(data)
    ctx.progress.advance(phases.PARSED)

    business, tax = read_settings(raw)
    dataset, report = RecordNormalizer().normalize(route_sheets(raw), business=business, tax=tax)
    ctx.progress.advance(phases.NORMALIZED)

    logger.info(
        "Workbook normalized",
        extra_fields={"sheets": raw.sheet_names, "counts": dataset.counts(), "rejected": report.rejected},
    )
    return dataset, report


def _count_normalization(tally: KindTally, norm: NormalizationReport, kind: EntityKind) -> None:
    for source in _SOURCES[kind]:
        tally.rejected += norm.rejected_for(source)
        tally.sentinels += norm.sentinels_for(source)


async def _persist(
    ctx: OperationContext,
    kind: EntityKind,
    record: LedgerRecord,
    tally: KindTally,
    report: ImportReport,
) -> Optional[dict]:
    ref = record_ref(record)
    with with_correlation(record_kind=kind.value, record_ref=ref):
        try:
            stored = await ctx.store.insert(kind, record.to_store_payload())
        except StoreError as e:
            tally.failed += 1
            report.failures.append(f"{kind.value} {ref}: {e}")
            logger.error(
                "Store refused record",
                extra_fields={"error": str(e), "status_code": e.status_code},
            )
            return None
    tally.imported += 1
    return stored


async def _import_records(
    ctx: OperationContext,
    kind: EntityKind,
    records: List[LedgerRecord],
    span: Tuple[float, float],
    report: ImportReport,
    resolver: Optional[CustomerResolver] = None,
) -> KindTally:
    tally = report.tally(kind.value)
    count = len(records)

    for index, record in enumerate(records):
        ctx.progress.step(span, index, count)

        if isinstance(record, SalesDocument):
            prepare_sales_record(record)

        if isinstance(record, Invoice) and resolver is not None:
            resolution = await resolver.resolve(record.customer_name, record.customer_phone)
            if not resolution.is_resolved:
                tally.failed += 1
                report.failures.append(
                    f"{kind.value} {record_ref(record)}: customer '{record.customer_name}' unavailable"
                )
                continue
            record.customer_id = resolution.customer_id

        problems = ready_for_submission(record)
        if problems:
            tally.rejected += 1
            logger.debug(
                "Record not ready for submission",
                extra_fields={"record_kind": kind.value, "record_ref": record_ref(record), "missing": problems},
            )
            continue

        await _persist(ctx, kind, record, tally, report)

    ctx.progress.advance(span[1])
    logger.info(
        f"Imported {tally.imported}/{tally.total} {kind.value}",
        extra_fields={"record_kind": kind.value, "errors": tally.errors},
    )
    return tally


async def _new_resolver(ctx: OperationContext) -> CustomerResolver:
    resolver = CustomerResolver(ctx.store)
    await resolver.build_index()
    return resolver


async def import_dataset(
    ctx: OperationContext,
    dataset: NormalizedDataset,
    norm: NormalizationReport,
    report: ImportReport,
) -> ImportReport:
    """Persist every collection of a normalized dataset in foreign-key order."""
    for kind in (EntityKind.PRODUCTS, EntityKind.CUSTOMERS, EntityKind.INVOICES, EntityKind.BILLS):
        _count_normalization(report.tally(kind.value), norm, kind)

    await _import_records(ctx, EntityKind.PRODUCTS, dataset.products or [], phases.PRODUCTS, report)
    await _import_records(ctx, EntityKind.CUSTOMERS, dataset.customers or [], phases.CUSTOMERS, report)

    # Index built after the customer phase so imported customers are matched
    resolver = await _new_resolver(ctx)
    await _import_records(
        ctx, EntityKind.INVOICES, dataset.invoices or [], phases.INVOICES, report, resolver
    )
    await _import_records(
        ctx, EntityKind.BILLS, dataset.bills_for_persistence(), phases.BILLS, report
    )
    return report


async def _clear(ctx: OperationContext, failures: List[str]) -> dict:
    deleted = {}
    for kind in CLEAR_ORDER:
        records = await ctx.store.query_all(kind)
        count = 0
        for record in records:
            record_id = record.get("id")
            try:
                await ctx.store.delete(kind, record_id, cascade=kind is EntityKind.PRODUCTS)
                count += 1
            except StoreError as e:
                failures.append(f"delete {kind.value} {record_id}: {e}")
                logger.error(
                    "Delete failed",
                    extra_fields={"record_kind": kind.value, "id": record_id, "error": str(e)},
                )
        deleted[kind.value] = count
        logger.info(f"Cleared {count}/{len(records)} {kind.value}")
    return deleted


# =============================================================================
# Operations
# =============================================================================

async def import_kind(ctx: OperationContext, data: bytes, kind: Any) -> ImportReport:
    """Import a single record kind from a workbook.

    Args:
        ctx: Operation context
        data: Workbook bytes
        kind: RecordKind (or its value); exchange bills import into the
            bills collection together with the Bills sheet

    Raises:
        StructuralError: Unreadable workbook, or no sheet for ``kind``
    """
    kind = RecordKind(kind)
    entity = kind.entity_kind
    operation = "import_kind"
    report = ImportReport(operation=operation, operation_id=ctx.operation_id)
    start_time = time.time()
    ctx.progress.start()

    with with_correlation(operation_id=ctx.operation_id, operation=operation, record_kind=entity.value):
        log_operation_start(operation, record_kind=entity.value)
        try:
            dataset, norm = read_workbook(ctx, data)
            if entity is EntityKind.BILLS:
                present = dataset.bills is not None or dataset.exchange_bills is not None
                records = dataset.bills_for_persistence()
            else:
                records = dataset.collection(kind)
                present = records is not None
            if not present:
                raise StructuralError(f"Invalid file format. No {entity.value} found.")

            _count_normalization(report.tally(entity.value), norm, entity)
            resolver = await _new_resolver(ctx) if entity is EntityKind.INVOICES else None
            await _import_records(ctx, entity, records or [], phases.SELECTIVE, report, resolver)
        except (StructuralError, StoreError) as e:
            log_operation_error(operation, str(e), record_kind=entity.value)
            ctx.progress.schedule_reset()
            raise

        ctx.progress.finish()
        log_operation_complete(
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            status=report.status.value,
            summary=report.summary(),
        )
    return report


async def import_all(ctx: OperationContext, data: bytes) -> ImportReport:
    """Import every record kind present in a workbook, without clearing."""
    operation = "import_all"
    report = ImportReport(operation=operation, operation_id=ctx.operation_id)
    start_time = time.time()
    ctx.progress.start()

    with with_correlation(operation_id=ctx.operation_id, operation=operation):
        log_operation_start(operation)
        try:
            dataset, norm = read_workbook(ctx, data)
            await import_dataset(ctx, dataset, norm, report)
        except (StructuralError, StoreError) as e:
            log_operation_error(operation, str(e))
            ctx.progress.schedule_reset()
            raise

        ctx.progress.finish()
        log_operation_complete(
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            status=report.status.value,
            summary=report.summary(),
        )
    return report


async def restore(ctx: OperationContext, data: bytes, confirmed: bool = False) -> ImportReport:
    """Replace the Store's contents with the workbook's.

    The workbook is decoded and normalized first; a structural failure leaves
    the Store untouched. Deletion failures are reported and the import still
    runs.

    Raises:
        ConfirmationRequired: ``confirmed`` is not True
        StructuralError: Unreadable workbook
    """
    operation = "restore"
    ctx.require_confirmation(confirmed, operation)
    report = ImportReport(operation=operation, operation_id=ctx.operation_id)
    start_time = time.time()
    ctx.progress.start()

    with with_correlation(operation_id=ctx.operation_id, operation=operation):
        log_operation_start(operation)
        try:
            dataset, norm = read_workbook(ctx, data)
            report.cleared = await _clear(ctx, report.failures)
            await import_dataset(ctx, dataset, norm, report)
        except (StructuralError, StoreError) as e:
            log_operation_error(operation, str(e))
            ctx.progress.schedule_reset()
            raise

        ctx.progress.finish()
        log_operation_complete(
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            status=report.status.value,
            cleared=report.cleared,
            summary=report.summary(),
        )
    return report


async def clear_all(ctx: OperationContext, confirmed: bool = False) -> ClearReport:
    """Delete every record in the Store, children first.

    Raises:
        ConfirmationRequired: ``confirmed`` is not True
    """
    operation = "clear_all"
    ctx.require_confirmation(confirmed, operation)
    report = ClearReport(operation_id=ctx.operation_id)
    start_time = time.time()
    ctx.progress.start()

    with with_correlation(operation_id=ctx.operation_id, operation=operation):
        log_operation_start(operation)
        try:
            report.deleted = await _clear(ctx, report.failures)
        except StoreError as e:
            log_operation_error(operation, str(e))
            ctx.progress.schedule_reset()
            raise

        ctx.progress.finish()
        log_operation_complete(
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            deleted=report.total_deleted,
            failures=len(report.failures),
        )
    return report
