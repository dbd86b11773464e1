"""Export flows.

Store -> header-keyed rows -> workbook bytes -> file (and, for backups, the
blob transport; see backup_workflow).

A full export always writes the five layout sheets. Business Info and Tax
Settings sheets are added when the caller supplies them. A selective export
writes only the sheets of the chosen record kinds, as a workbook or, for a
single kind, as CSV.
"""

import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.dates import today_stamp
from core.models.records import BusinessProfile, EntityKind, RecordKind, TaxSettings
from core.models.refs import ExportReport
from core.observability.logging import (
    get_logger,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
    with_correlation,
)
from connectors.store_base import StoreError
from normalization.normalizer import shape_dataset
from tabular.codec import CSV_CONTENT_TYPE, XLSX_CONTENT_TYPE, StructuralError, encode_csv, encode_workbook
from tabular.layout import BUSINESS_SHEET, TAX_SHEET, select_layouts
from workflows.context import OperationContext

logger = get_logger(__name__)

EXPORT = "export"
BACKUP = "backup"

XLSX = "xlsx"
CSV = "csv"


def export_file_name(
    dataset: str,
    kind: str = EXPORT,
    now: Optional[datetime] = None,
    label: Optional[str] = None,
    extension: str = XLSX,
) -> str:
    """``<dataset>-export-<YYYY-MM-DD>.xlsx`` (or ``-backup-``).

    A selective export puts its label before the flavour:
    ``<dataset>-invoices-bills-export-<YYYY-MM-DD>.xlsx``.
    """
    prefix = f"{dataset}-{label}" if label else dataset
    return f"{prefix}-{kind}-{today_stamp(now)}.{extension}"


def selection_label(kinds: Iterable[RecordKind]) -> str:
    """File name label for a set of record kinds, in workbook order."""
    return "-".join(layout.kind.value.replace("_", "-") for layout in select_layouts(kinds))


async def collect(
    ctx: OperationContext,
    entities: Optional[Iterable[EntityKind]] = None,
) -> Dict[EntityKind, List[Dict[str, Any]]]:
    """Read Store collections one after another; every collection by default."""
    wanted = set(entities) if entities is not None else set(EntityKind)
    tables = {}
    for kind in EntityKind:
        if kind not in wanted:
            continue
        tables[kind] = await ctx.store.query_all(kind)
        logger.debug(f"Fetched {len(tables[kind])} {kind.value}")
    return tables


def build_workbook(
    tables: Dict[EntityKind, List[Dict[str, Any]]],
    business: Optional[BusinessProfile] = None,
    tax: Optional[TaxSettings] = None,
    kinds: Optional[Iterable[RecordKind]] = None,
) -> Tuple[bytes, Dict[str, int], List[str]]:
    """Encode Store tables as a workbook.

    Returns:
        (workbook bytes, rows per sheet kind, sheet names)
    """
    layouts = select_layouts(kinds)
    sheets = shape_dataset(tables)
    data = encode_workbook(sheets, business=business, tax=tax, kinds=[layout.kind for layout in layouts])

    counts = {layout.kind.value: len(sheets[layout.kind]) for layout in layouts}
    sheet_names = [layout.name for layout in layouts]
    if business is not None:
        sheet_names.append(BUSINESS_SHEET)
    if tax is not None:
        sheet_names.append(TAX_SHEET)
    return data, counts, sheet_names


async def export_all(
    ctx: OperationContext,
    business: Optional[BusinessProfile] = None,
    tax: Optional[TaxSettings] = None,
    write: bool = True,
    kind: str = EXPORT,
) -> Tuple[ExportReport, bytes]:
    """Export the whole Store to a workbook.

    Args:
        ctx: Operation context
        business: Shop details to include, if any
        tax: Tax settings to include, if any
        write: Also write the workbook to the export directory
        kind: File name flavour, ``export`` or ``backup``

    Returns:
        (report, workbook bytes)

    Raises:
        StoreError: A collection could not be read
        StructuralError: The workbook could not be serialized
    """
    operation = "export_all"
    start_time = time.time()
    ctx.progress.start()
    file_name = export_file_name(ctx.settings.dataset_name, kind)

    with with_correlation(operation_id=ctx.operation_id, operation=operation):
        log_operation_start(operation, file_name=file_name)
        try:
            tables = await collect(ctx)
            ctx.progress.advance(25)

            data, counts, sheet_names = build_workbook(tables, business=business, tax=tax)
            ctx.progress.advance(50)

            report = ExportReport(
                operation_id=ctx.operation_id,
                file_name=file_name,
                counts=counts,
                sheet_names=sheet_names,
            )
            if write:
                report.artifact = ctx.artifact_store().put_workbook(data, file_name)
            ctx.progress.advance(80)
        except (StoreError, StructuralError, OSError) as e:
            log_operation_error(operation, str(e))
            ctx.progress.schedule_reset()
            raise

        ctx.progress.finish()
        log_operation_complete(
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            counts=counts,
            size_bytes=len(data),
        )
    return report, data


async def export_kinds(
    ctx: OperationContext,
    kinds: Iterable[Any],
    write: bool = True,
    file_format: str = XLSX,
) -> Tuple[ExportReport, bytes]:
    """Export selected record kinds only.

    Only the Store collections behind the chosen kinds are read. Sheets for
    the chosen kinds are written in workbook order, with the placeholder row
    when empty, so the result imports like any other export.

    Args:
        ctx: Operation context
        kinds: RecordKinds (or their values), e.g. invoices + bills
        write: Also write the file to the export directory
        file_format: ``xlsx``, or ``csv`` for exactly one kind

    Returns:
        (report, file bytes)

    Raises:
        ValueError: Unknown kind, empty selection, or CSV for several kinds
        StoreError: A collection could not be read
        StructuralError: The workbook could not be serialized
    """
    layouts = select_layouts(kinds)
    selected = [layout.kind for layout in layouts]
    if file_format not in (XLSX, CSV):
        raise ValueError(f"Unknown export format '{file_format}'. Available: {[XLSX, CSV]}")
    if file_format == CSV and len(selected) != 1:
        raise ValueError("CSV export takes exactly one record kind")

    operation = "export_kinds"
    start_time = time.time()
    ctx.progress.start()
    file_name = export_file_name(
        ctx.settings.dataset_name, EXPORT, label=selection_label(selected), extension=file_format
    )
    kind_values = [kind.value for kind in selected]

    with with_correlation(operation_id=ctx.operation_id, operation=operation):
        log_operation_start(operation, file_name=file_name, kinds=kind_values)
        try:
            tables = await collect(ctx, {kind.entity_kind for kind in selected})
            ctx.progress.advance(25)

            if file_format == CSV:
                rows = shape_dataset(tables)[selected[0]]
                data = encode_csv(selected[0], rows)
                counts = {selected[0].value: len(rows)}
                sheet_names = [layouts[0].name]
                content_type = CSV_CONTENT_TYPE
            else:
                data, counts, sheet_names = build_workbook(tables, kinds=selected)
                content_type = XLSX_CONTENT_TYPE
            ctx.progress.advance(50)

            report = ExportReport(
                operation_id=ctx.operation_id,
                file_name=file_name,
                counts=counts,
                sheet_names=sheet_names,
            )
            if write:
                report.artifact = ctx.artifact_store().put_workbook(data, file_name, content_type=content_type)
            ctx.progress.advance(80)
        except (StoreError, StructuralError, OSError) as e:
            log_operation_error(operation, str(e), kinds=kind_values)
            ctx.progress.schedule_reset()
            raise

        ctx.progress.finish()
        log_operation_complete(
            operation,
            duration_ms=(time.time() - start_time) * 1000,
            counts=counts,
            size_bytes=len(data),
        )
    return report, data
